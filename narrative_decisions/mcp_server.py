"""FastMCP server exposing the decision cycle as MCP tools.

Tools:
  - detect_decision_point(snapshot, character)   — gate check, no side effects
  - generate_decision(snapshot, character)       — produce a PlayerDecision
  - record_decision(decision_id, option_id, outcome)
  - decision_history()                           — decisions made so far

The orchestrator is module state replaced via set_orchestrator() for tests,
or built from the AI_* / DECISION_* environment when run as __main__.
One MCP server process serves a single game session, so it holds a single
orchestrator.

Usage:
    python -m narrative_decisions.mcp_server
"""

from mcp.server.fastmcp import FastMCP

from narrative_decisions.config import ServiceConfig
from narrative_decisions.models import CharacterSummary, NarrativeSnapshot
from narrative_decisions.pipeline.orchestrator import DecisionOrchestrator

mcp = FastMCP("narrative-decisions")

_orchestrator: DecisionOrchestrator | None = None


def set_orchestrator(orchestrator: DecisionOrchestrator) -> None:
    """Replace the active orchestrator (used in tests)."""
    global _orchestrator
    _orchestrator = orchestrator


def get_orchestrator() -> DecisionOrchestrator:
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = DecisionOrchestrator(ServiceConfig.from_env())
    return _orchestrator


@mcp.tool()
def detect_decision_point(snapshot: NarrativeSnapshot, character: CharacterSummary) -> dict:
    """Check whether the story has reached a point worth offering a choice."""
    return get_orchestrator().detect_decision_point(snapshot, character).model_dump()


@mcp.tool()
async def generate_decision(snapshot: NarrativeSnapshot, character: CharacterSummary) -> dict:
    """Generate a player decision for the current scene."""
    decision = await get_orchestrator().generate_decision(snapshot, character)
    return decision.model_dump(by_alias=True)


@mcp.tool()
def record_decision(decision_id: str, option_id: str, outcome: str = "") -> dict:
    """Record the option the player picked. Returns the stored history entry."""
    return get_orchestrator().record_decision(decision_id, option_id, outcome).model_dump()


@mcp.tool()
def decision_history() -> dict:
    """Return the decisions made so far, oldest first."""
    return {"entries": [e.model_dump() for e in get_orchestrator().decision_history()]}


if __name__ == "__main__":
    mcp.run()
