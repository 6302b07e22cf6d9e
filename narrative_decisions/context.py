"""Decision prompt assembly.

Turns a narrative snapshot, the player character and the decision history
into a DecisionPrompt: a bounded narrative-context string plus character,
game-state and previous-decision sections. Everything here is pure and
deterministic; missing optional sources degrade to whatever is available.
"""

from __future__ import annotations

from narrative_decisions.history import HistoryStore
from narrative_decisions.models import (
    CharacterInfo,
    CharacterSummary,
    DecisionPrompt,
    GameState,
    HistoryEntry,
    NarrativeSnapshot,
    PreviousDecision,
)

# Narrative lines used when there is no current scene
MAX_CONTEXT_LINES = 5
# Per-line cap for history lines folded into the narrative context
MAX_LINE_CHARS = 150
# Narrative lines and important events listed under recent events
MAX_RECENT_EVENTS = 8
MAX_IMPORTANT_EVENTS = 3
MAX_PREVIOUS_DECISIONS = 3

PLAYER_KEY = "Player"

VERY_FRIENDLY = "very friendly"
FRIENDLY = "friendly"
SLIGHTLY_FRIENDLY = "slightly friendly"
NEUTRAL = "neutral"
SLIGHTLY_UNFRIENDLY = "slightly unfriendly"
UNFRIENDLY = "unfriendly"
VERY_UNFRIENDLY = "very unfriendly"


# ---------------------------------------------------------------------------
# Public entry point
# ---------------------------------------------------------------------------

def build_decision_prompt(
    snapshot: NarrativeSnapshot,
    character: CharacterSummary,
    history: HistoryStore | list[HistoryEntry] | None = None,
) -> DecisionPrompt:
    """Assemble the prompt sections for one generation call."""
    point = snapshot.current_story_point
    entries = history.recent() if isinstance(history, HistoryStore) else list(history or [])

    return DecisionPrompt(
        narrative_context=narrative_context(snapshot),
        character_info=CharacterInfo(
            traits=character_traits(character),
            history="NPC Character" if character.is_npc else "Player Character",
            relationships=character_relationships(character, snapshot),
        ),
        game_state=GameState(
            location=(point.location_change if point and point.location_change else "Unknown"),
            current_scene=point.id if point else "unknown",
            recent_events=recent_events(snapshot),
        ),
        previous_decisions=previous_decisions(entries),
    )


# ---------------------------------------------------------------------------
# Narrative context
# ---------------------------------------------------------------------------

def narrative_context(snapshot: NarrativeSnapshot) -> str:
    parts: list[str] = []
    point = snapshot.current_story_point
    ctx = snapshot.narrative_context

    if point and point.content:
        parts.append(point.content)
    elif snapshot.narrative_history:
        lines = snapshot.narrative_history[-MAX_CONTEXT_LINES:]
        parts.append("\n".join(truncate(line) for line in lines))

    if ctx is not None:
        if ctx.active_decision and ctx.active_decision.prompt:
            parts.append(f"Current decision: {ctx.active_decision.prompt}")
        if ctx.world_context:
            parts.append(ctx.world_context)
        world_state = ctx.impact_state.world_state_impacts if ctx.impact_state else {}
        if world_state:
            lines = "\n".join(f"- {key}: {value}" for key, value in world_state.items())
            parts.append(f"World state:\n{lines}")

    return "\n\n".join(parts)


def truncate(text: str, limit: int = MAX_LINE_CHARS) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 3].rstrip() + "..."


# ---------------------------------------------------------------------------
# Character information
# ---------------------------------------------------------------------------

def character_traits(character: CharacterSummary) -> list[str]:
    """Derive trait tags from attributes and merge in the explicit ones."""
    attrs = character.attributes
    derived: list[str] = []

    bravery = attrs.get("bravery")
    if bravery is not None:
        if bravery >= 8:
            derived.append("brave")
        elif bravery <= 3:
            derived.append("cautious")
    if attrs.get("speed", 0) >= 8:
        derived.append("quick")
    if attrs.get("accuracy", 0) >= 8:
        derived.append("sharpshooter")

    traits: list[str] = []
    for trait in [*derived, *character.traits]:
        if trait not in traits:
            traits.append(trait)
    return traits


def relationship_descriptor(impact: int) -> str:
    """Map a signed relationship value onto the seven-step descriptor scale."""
    if impact > 50:
        return VERY_FRIENDLY
    if impact > 20:
        return FRIENDLY
    if impact > 10:
        return SLIGHTLY_FRIENDLY
    if impact < -50:
        return VERY_UNFRIENDLY
    if impact < -20:
        return UNFRIENDLY
    if impact < -10:
        return SLIGHTLY_UNFRIENDLY
    return NEUTRAL


def character_relationships(
    character: CharacterSummary, snapshot: NarrativeSnapshot
) -> dict[str, str]:
    """Describe how each character in focus feels about the player.

    Reputation impacts win over the player's relationship row; characters
    with neither are neutral. Explicit relationships on the character fill
    in names that are not in focus.
    """
    ctx = snapshot.narrative_context
    relationships: dict[str, str] = {}
    if ctx is not None:
        impacts = ctx.impact_state
        reputation = impacts.reputation_impacts if impacts else {}
        player_row = impacts.relationship_impacts.get(PLAYER_KEY, {}) if impacts else {}
        for name in ctx.character_focus:
            if name in reputation:
                relationships[name] = relationship_descriptor(reputation[name])
            elif name in player_row:
                relationships[name] = relationship_descriptor(player_row[name])
            else:
                relationships[name] = NEUTRAL

    for name, descriptor in character.relationships.items():
        relationships.setdefault(name, descriptor)
    return relationships


# ---------------------------------------------------------------------------
# Game state and history
# ---------------------------------------------------------------------------

def recent_events(snapshot: NarrativeSnapshot) -> list[str]:
    # Kept verbatim; only the narrative-context string is truncated
    events = list(snapshot.narrative_history[-MAX_RECENT_EVENTS:])
    ctx = snapshot.narrative_context
    if ctx is not None and ctx.important_events:
        events.extend(ctx.important_events[-MAX_IMPORTANT_EVENTS:])
    return events


def previous_decisions(
    entries: list[HistoryEntry], limit: int = MAX_PREVIOUS_DECISIONS
) -> list[PreviousDecision]:
    if limit <= 0:
        return []
    return [
        PreviousDecision(
            prompt=entry.prompt,
            choice=entry.choice,
            outcome=entry.outcome,
            timestamp=entry.timestamp,
        )
        for entry in entries[-limit:]
    ]
