"""Tests for the MCP tool server, driven through an in-memory client session."""

import json

import pytest
from mcp.shared.memory import create_connected_server_and_client_session

import narrative_decisions.mcp_server as mcp_server
from narrative_decisions.config import ServiceConfig
from narrative_decisions.pipeline.orchestrator import DecisionOrchestrator

SNAPSHOT = {
    "currentStoryPoint": {"id": "camp-1", "type": "decision", "content": "Coyotes howl nearby."},
    "narrativeHistory": ["You make camp.", "The fire crackles.", "Night falls."],
}
CHARACTER = {"name": "Wes", "attributes": {"bravery": 2}}


@pytest.fixture(autouse=True)
def fresh_orchestrator(clock):
    """Each test gets its own offline orchestrator so history doesn't bleed across tests."""
    orchestrator = DecisionOrchestrator(ServiceConfig(), clock=clock)
    mcp_server.set_orchestrator(orchestrator)
    return orchestrator


async def _call(tool: str, args: dict) -> dict:
    async with create_connected_server_and_client_session(mcp_server.mcp) as client:
        result = await client.call_tool(tool, args)
    assert not result.isError
    return json.loads(result.content[0].text)


async def test_detect_tool():
    body = await _call("detect_decision_point", {"snapshot": SNAPSHOT, "character": CHARACTER})
    assert body["present"] is True


async def test_generate_then_record(fresh_orchestrator):
    decision = await _call("generate_decision", {"snapshot": SNAPSHOT, "character": CHARACTER})
    assert decision["aiGenerated"] is True
    assert fresh_orchestrator.last_decision_time is not None

    option = decision["options"][0]
    entry = await _call("record_decision", {
        "decision_id": decision["id"], "option_id": option["id"], "outcome": "You sleep soundly.",
    })
    assert entry["choice"] == option["text"]

    history = await _call("decision_history", {})
    assert [e["decision_id"] for e in history["entries"]] == [decision["id"]]


def test_tools_callable_directly(fresh_orchestrator):
    entry = mcp_server.record_decision("d1", "o1", "Nothing happens.")
    assert entry["prompt"] == "d1"
    assert mcp_server.decision_history()["entries"][0]["outcome"] == "Nothing happens."
