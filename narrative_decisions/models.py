"""Core domain models.

Inbound types (NarrativeSnapshot, CharacterSummary) are read-only views of
game state owned by the narrative layer. They accept the game's camelCase
JSON keys as well as snake_case names, so the shape is resolved once here
and the rest of the package only ever sees these models.

Pydantic is used for validation and serialisation at every data boundary.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

StoryPointType = Literal["narrative", "dialogue", "decision"]
Pacing = Literal["slow", "medium", "fast"]
Importance = Literal["critical", "significant", "moderate", "minor"]

IMPORTANCE_LEVELS: tuple[str, ...] = ("critical", "significant", "moderate", "minor")
PACING_LEVELS: tuple[str, ...] = ("slow", "medium", "fast")


class _GameModel(BaseModel):
    """Base for models exchanged with the game (camelCase on the wire)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Narrative snapshot
# ---------------------------------------------------------------------------

class StoryPoint(_GameModel):
    """The scene currently shown to the player."""

    id: str = "unknown"
    type: StoryPointType = "narrative"
    content: str = ""
    location_change: str | None = None


class ImpactState(_GameModel):
    reputation_impacts: dict[str, int] = Field(default_factory=dict)
    # source -> target -> value; the player's row is keyed "Player"
    relationship_impacts: dict[str, dict[str, int]] = Field(default_factory=dict)
    world_state_impacts: dict[str, int] = Field(default_factory=dict)


class ActiveDecision(_GameModel):
    id: str = ""
    prompt: str = ""


class NarrativeContext(_GameModel):
    world_context: str = ""
    character_focus: list[str] = Field(default_factory=list)
    important_events: list[str] = Field(default_factory=list)
    active_decision: ActiveDecision | None = None
    impact_state: ImpactState | None = None


class NarrativeSnapshot(_GameModel):
    """Read-only view of the story at decision time."""

    current_story_point: StoryPoint | None = None
    narrative_history: list[str] = Field(default_factory=list)  # most recent last
    visited_points: list[str] = Field(default_factory=list)
    narrative_context: NarrativeContext | None = None


# ---------------------------------------------------------------------------
# Character summary
# ---------------------------------------------------------------------------

class CharacterSummary(_GameModel):
    """The attributes of the player character that shape decision options."""

    name: str = ""
    is_npc: bool = False
    attributes: dict[str, int] = Field(default_factory=dict)
    traits: list[str] = Field(default_factory=list)
    relationships: dict[str, str] = Field(default_factory=dict)

    @field_validator("attributes", mode="before")
    @classmethod
    def _fold_legacy_attributes(cls, value: object) -> object:
        # Older saves name the accuracy attribute "gunAccuracy"
        if isinstance(value, dict) and "gunAccuracy" in value:
            value = dict(value)
            legacy = value.pop("gunAccuracy")
            value.setdefault("accuracy", legacy)
        return value


# ---------------------------------------------------------------------------
# Decision prompt (built fresh per generation, never persisted)
# ---------------------------------------------------------------------------

class CharacterInfo(BaseModel):
    traits: list[str] = Field(default_factory=list)
    history: str = ""
    relationships: dict[str, str] = Field(default_factory=dict)


class GameState(BaseModel):
    location: str = "Unknown"
    current_scene: str = "unknown"
    recent_events: list[str] = Field(default_factory=list)


class PreviousDecision(BaseModel):
    prompt: str
    choice: str
    outcome: str
    timestamp: float


class DecisionPrompt(BaseModel):
    narrative_context: str = ""
    character_info: CharacterInfo = Field(default_factory=CharacterInfo)
    game_state: GameState = Field(default_factory=GameState)
    previous_decisions: list[PreviousDecision] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Decision response, as produced by the service client
# ---------------------------------------------------------------------------

class DecisionOption(BaseModel):
    id: str
    text: str
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    traits: list[str] = Field(default_factory=list)
    potential_outcomes: list[str] = Field(default_factory=list)
    impact: str = ""


class DecisionMetadata(BaseModel):
    narrative_impact: str = ""
    theme_alignment: str = ""
    pacing: Pacing = "medium"
    importance: Importance = "moderate"


class DecisionResponse(BaseModel):
    decision_id: str
    prompt: str
    options: list[DecisionOption] = Field(default_factory=list)
    relevance_score: float = Field(default=0.5, ge=0.0, le=1.0)
    metadata: DecisionMetadata = Field(default_factory=DecisionMetadata)


# ---------------------------------------------------------------------------
# Player decision: the only artifact handed to the rest of the game
# ---------------------------------------------------------------------------

class PlayerDecisionOption(_GameModel):
    id: str
    text: str
    impact: str = ""
    tags: list[str] = Field(default_factory=list)


class PlayerDecision(_GameModel):
    id: str
    prompt: str
    timestamp: float
    location: str | None = None
    options: list[PlayerDecisionOption]
    importance: Importance = "moderate"
    context: str = ""
    ai_generated: bool = True


# ---------------------------------------------------------------------------
# Bookkeeping
# ---------------------------------------------------------------------------

class HistoryEntry(BaseModel):
    """One decision the player has already made."""

    decision_id: str
    option_id: str
    prompt: str
    choice: str
    outcome: str
    timestamp: float


class RateLimitState(BaseModel):
    remaining: int
    reset_time: float  # epoch millis


class DetectionResult(BaseModel):
    present: bool
    score: float
    reason: str
