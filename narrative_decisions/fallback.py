"""Fallback decisions used when the decision service fails.

The player always gets a choice: a themed template picked from the current
scene (combat, social or exploration), clamped to the configured option
count.
"""

from __future__ import annotations

import re
import uuid
from typing import Literal

from narrative_decisions.models import NarrativeSnapshot, PlayerDecision, PlayerDecisionOption

Theme = Literal["combat", "social", "exploration"]

_COMBAT_RE = re.compile(
    r"\b(?:shot|shoot|gun|draw|punch|fight|attack|duel|ambush|brawl)", re.IGNORECASE
)
_SOCIAL_MARKERS = ('"', "“", "”")

# theme -> (prompt, [(text, impact, tags), ...])
_TEMPLATES: dict[str, tuple[str, list[tuple[str, str, list[str]]]]] = {
    "combat": (
        "How do you want to approach this confrontation?",
        [
            ("Take a defensive stance",
             "You'll be better protected but may miss offensive opportunities.",
             ["defensive", "cautious"]),
            ("Look for a tactical advantage",
             "Finding the right position could give you an edge.",
             ["tactical", "smart"]),
            ("Prepare to strike decisively",
             "An aggressive approach could end this quickly but leaves you exposed.",
             ["aggressive", "brave"]),
        ],
    ),
    "social": (
        "How do you want to handle this conversation?",
        [
            ("Be diplomatic and measured",
             "A careful approach may build trust but could appear weak to some.",
             ["diplomatic", "cautious"]),
            ("Be direct and to the point",
             "Honesty can be refreshing but might offend more sensitive individuals.",
             ["direct", "honest"]),
            ("Use charm and persuasion",
             "A silver tongue might get you what you want, but people may question your sincerity.",
             ["charming", "persuasive"]),
        ],
    ),
    "exploration": (
        "How do you want to proceed?",
        [
            ("Proceed cautiously",
             "Taking a careful approach may reveal more information.",
             ["cautious"]),
            ("Take immediate action",
             "Bold moves can yield faster results but may be riskier.",
             ["brave"]),
            ("Look for another approach",
             "There might be a less obvious but advantageous solution.",
             ["resourceful"]),
        ],
    ),
}


def pick_theme(snapshot: NarrativeSnapshot) -> Theme:
    point = snapshot.current_story_point
    content = point.content if point else ""
    if _COMBAT_RE.search(content):
        return "combat"
    if (point is not None and point.type == "dialogue") or any(
        marker in content for marker in _SOCIAL_MARKERS
    ):
        return "social"
    return "exploration"


def fallback_decision(
    snapshot: NarrativeSnapshot,
    *,
    timestamp: float,
    max_options: int = 4,
    theme: Theme | None = None,
) -> PlayerDecision:
    """Build a generic, locally generated decision for the current scene."""
    prompt, options = _TEMPLATES[theme or pick_theme(snapshot)]
    point = snapshot.current_story_point
    return PlayerDecision(
        id=f"fallback-{uuid.uuid4()}",
        prompt=prompt,
        timestamp=timestamp,
        location=point.location_change if point else None,
        options=[
            PlayerDecisionOption(id=f"option-{uuid.uuid4()}", text=text, impact=impact, tags=tags)
            for text, impact, tags in options[:max_options]
        ],
        importance="moderate",
        context="Based on the current situation",
        ai_generated=False,
    )
