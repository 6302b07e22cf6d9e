from collections.abc import Callable
from unittest.mock import AsyncMock

import pytest

from narrative_decisions.config import ServiceConfig
from narrative_decisions.models import (
    CharacterSummary,
    ImpactState,
    NarrativeContext,
    NarrativeSnapshot,
    StoryPoint,
)

START_MS = 1_700_000_000_000.0


class FakeClock:
    """Epoch-millis clock that only moves when told to."""

    def __init__(self, now: float = START_MS) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sleep() -> AsyncMock:
    """Stand-in for asyncio.sleep so retries never wait."""
    return AsyncMock(return_value=None)


@pytest.fixture
def config() -> ServiceConfig:
    return ServiceConfig(
        api_key="test-key",
        endpoint="https://ai.example.test/v1/chat/completions",
        model_name="test-model",
    )


@pytest.fixture
def character() -> CharacterSummary:
    return CharacterSummary(
        name="Wes",
        attributes={"bravery": 9, "speed": 5, "accuracy": 8},
    )


@pytest.fixture
def make_snapshot() -> Callable[..., NarrativeSnapshot]:
    def _make(
        content: str = "The saloon falls quiet as you step inside.",
        type: str = "narrative",
        history: list[str] | None = None,
        world_context: str = "",
        character_focus: list[str] | None = None,
        important_events: list[str] | None = None,
        impact_state: ImpactState | None = None,
        location: str | None = None,
    ) -> NarrativeSnapshot:
        return NarrativeSnapshot(
            current_story_point=StoryPoint(
                id="scene-1", type=type, content=content, location_change=location,
            ),
            narrative_history=history if history is not None else [
                "You ride into Redemption at dusk.",
                "The stable boy takes your horse.",
                "Music drifts out of the saloon.",
            ],
            narrative_context=NarrativeContext(
                world_context=world_context,
                character_focus=character_focus or [],
                important_events=important_events or [],
                impact_state=impact_state,
            ),
        )

    return _make
