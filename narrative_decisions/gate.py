"""Decision gate — decides when to interrupt the narrative with a choice.

Hard refusals come first (too little story so far, or too soon after the
last decision); otherwise a weighted score is computed from the current
scene and compared against the relevance threshold. The gate never raises:
every outcome is a DetectionResult.
"""

from __future__ import annotations

import logging
import re

from narrative_decisions.clock import Clock, system_clock
from narrative_decisions.config import GateWeights
from narrative_decisions.models import CharacterSummary, DetectionResult, NarrativeSnapshot

logger = logging.getLogger(__name__)

REASON_INSUFFICIENT = "Insufficient narrative history for meaningful decisions"
REASON_TOO_SOON = "Too soon since last decision"
REASON_PRESENT = "Narrative context indicates decision point"
REASON_NOT_MET = "Decision threshold not met"

DIALOGUE_MARKERS = ('"', "“", "”")
ACTION_WORDS = ("shot", "punch", "run", "fight", "chase", "attack", "defend", "dodge")
NEW_LOCATION_MARKER = "new location"

# Word-prefix match: "fight" also catches "fighting", but not "outrun"
_ACTION_RE = re.compile(r"\b(?:" + "|".join(ACTION_WORDS) + r")", re.IGNORECASE)


class DecisionGate:
    def __init__(
        self,
        relevance_threshold: float = 0.65,
        min_decision_interval_ms: float = 30_000,
        min_narrative_entries: int = 3,
        weights: GateWeights | None = None,
        clock: Clock = system_clock,
    ) -> None:
        self.relevance_threshold = relevance_threshold
        self.min_decision_interval_ms = min_decision_interval_ms
        self.min_narrative_entries = min_narrative_entries
        self.weights = weights or GateWeights()
        self._clock = clock

    def evaluate(
        self,
        snapshot: NarrativeSnapshot,
        character: CharacterSummary,
        last_decision_time: float | None,
    ) -> DetectionResult:
        """Return whether a decision should be presented now, with its score."""
        if len(snapshot.narrative_history) < self.min_narrative_entries:
            return DetectionResult(present=False, score=0.0, reason=REASON_INSUFFICIENT)

        now = self._clock()
        if (
            last_decision_time is not None
            and now - last_decision_time < self.min_decision_interval_ms
        ):
            return DetectionResult(present=False, score=0.0, reason=REASON_TOO_SOON)

        score = self.score(snapshot, last_decision_time, now)
        present = score >= self.relevance_threshold
        logger.debug("decision gate score=%.3f present=%s", score, present)
        return DetectionResult(
            present=present,
            score=score,
            reason=REASON_PRESENT if present else REASON_NOT_MET,
        )

    def score(
        self,
        snapshot: NarrativeSnapshot,
        last_decision_time: float | None,
        now: float,
    ) -> float:
        w = self.weights
        score = w.base
        point = snapshot.current_story_point
        content = point.content if point else ""

        if any(marker in content for marker in DIALOGUE_MARKERS):
            score += w.dialogue_bonus
        if _ACTION_RE.search(content):
            score -= w.action_penalty
        if point is not None and point.type == "decision":
            score += w.decision_point_bonus

        ctx = snapshot.narrative_context
        if ctx is not None and NEW_LOCATION_MARKER in ctx.world_context.lower():
            score += w.new_location_bonus

        score += self.time_factor(last_decision_time, now) * w.time_weight
        return max(0.0, min(1.0, score))

    def time_factor(self, last_decision_time: float | None, now: float) -> float:
        """Grows from 0 to 1 over five minimum intervals since the last decision."""
        if last_decision_time is None or self.min_decision_interval_ms <= 0:
            return 1.0
        elapsed = now - last_decision_time
        return max(0.0, min(1.0, elapsed / (5 * self.min_decision_interval_ms)))
