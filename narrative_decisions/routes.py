"""FastAPI endpoints under /api.

The orchestrator lives on app.state, one per app instance (one game
session). Bodies use the game's camelCase keys.

  GET  /health                              liveness
  POST /decisions/detect                    gate check, no side effects
  POST /decisions/generate                  generate a PlayerDecision
  POST /decisions/{decision_id}/record      report the chosen option
  GET  /decisions/history                   decisions made so far
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from narrative_decisions.models import CharacterSummary, NarrativeSnapshot
from narrative_decisions.pipeline.orchestrator import DecisionOrchestrator

router = APIRouter()


class DecisionBody(BaseModel):
    snapshot: NarrativeSnapshot
    character: CharacterSummary = Field(default_factory=CharacterSummary)


class RecordBody(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    option_id: str
    outcome: str = ""


def get_orchestrator(request: Request) -> DecisionOrchestrator:
    return request.app.state.orchestrator


@router.get("/health")
async def health():
    """Health check."""
    return {"status": "ok"}


@router.post("/decisions/detect")
async def detect_decision(
    body: DecisionBody, orchestrator: DecisionOrchestrator = Depends(get_orchestrator)
) -> dict[str, Any]:
    """Evaluate the decision gate for the posted snapshot."""
    return orchestrator.detect_decision_point(body.snapshot, body.character).model_dump()


@router.post("/decisions/generate")
async def generate_decision(
    body: DecisionBody, orchestrator: DecisionOrchestrator = Depends(get_orchestrator)
) -> dict[str, Any]:
    """Generate a decision for the posted snapshot."""
    decision = await orchestrator.generate_decision(body.snapshot, body.character)
    return decision.model_dump(by_alias=True)


@router.post("/decisions/{decision_id}/record")
async def record_decision(
    decision_id: str,
    body: RecordBody,
    orchestrator: DecisionOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    """Record the option the player picked and what came of it."""
    entry = orchestrator.record_decision(decision_id, body.option_id, body.outcome)
    return entry.model_dump()


@router.get("/decisions/history")
async def decision_history(
    orchestrator: DecisionOrchestrator = Depends(get_orchestrator),
) -> list[dict[str, Any]]:
    return [entry.model_dump() for entry in orchestrator.decision_history()]
