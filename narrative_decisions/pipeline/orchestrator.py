"""Decision orchestrator — the game-facing entry point.

One orchestrator is owned by each game session. Decision cycle:
  1. detect_decision_point() — read-only gate check; may be polled freely.
  2. generate_decision() — build the prompt, call the service, convert the
     response into a PlayerDecision. Any failure falls back to a themed
     template, so the caller always gets a usable decision.
  3. record_decision() — the caller reports the chosen option and outcome;
     the next prompt includes it under previous decisions.

Only a generated decision (or an explicit mark_presented) advances the
last-decision clock. Overlapping generate calls are queued on a lock since
they share the rate limiter and the clock.
"""

from __future__ import annotations

import asyncio
import logging

from narrative_decisions.clock import Clock, system_clock
from narrative_decisions.config import ServiceConfig
from narrative_decisions.context import build_decision_prompt
from narrative_decisions.errors import DecisionServiceError, as_service_error
from narrative_decisions.fallback import fallback_decision
from narrative_decisions.gate import DecisionGate
from narrative_decisions.history import HistoryStore
from narrative_decisions.llm import DecisionServiceClient
from narrative_decisions.models import (
    IMPORTANCE_LEVELS,
    CharacterSummary,
    DecisionResponse,
    DetectionResult,
    HistoryEntry,
    NarrativeSnapshot,
    PlayerDecision,
    PlayerDecisionOption,
    RateLimitState,
)
from narrative_decisions.responses import bound_options
from narrative_decisions.retry import Sleep

logger = logging.getLogger(__name__)


class DecisionOrchestrator:
    def __init__(
        self,
        config: ServiceConfig | None = None,
        *,
        client: DecisionServiceClient | None = None,
        history: HistoryStore | None = None,
        gate: DecisionGate | None = None,
        clock: Clock = system_clock,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.config = config or ServiceConfig()
        cfg = self.config
        self._clock = clock
        self.history = history or HistoryStore(cfg.max_history_entries, clock)
        self.gate = gate or DecisionGate(
            relevance_threshold=cfg.relevance_threshold,
            min_decision_interval_ms=cfg.min_decision_interval_ms,
            min_narrative_entries=cfg.min_narrative_entries,
            weights=cfg.gate_weights,
            clock=clock,
        )
        self.client = client or DecisionServiceClient(cfg, clock=clock, sleep=sleep)
        self.last_decision_time: float | None = None
        self.last_error: DecisionServiceError | None = None
        self._lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Detection
    # ------------------------------------------------------------------

    def detect_decision_point(
        self, snapshot: NarrativeSnapshot, character: CharacterSummary
    ) -> DetectionResult:
        return self.gate.evaluate(snapshot, character, self.last_decision_time)

    def mark_presented(self, at: float | None = None) -> None:
        """Advance the last-decision clock (defaults to now)."""
        self.last_decision_time = self._clock() if at is None else at

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    async def generate_decision(
        self, snapshot: NarrativeSnapshot, character: CharacterSummary
    ) -> PlayerDecision:
        async with self._lock:
            point = snapshot.current_story_point
            location = point.location_change if point else None
            try:
                prompt = build_decision_prompt(snapshot, character, self.history)
                response = await self.client.send(prompt)
                decision = self.to_player_decision(response, location)
                self.last_error = None
            except Exception as e:
                self.last_error = as_service_error(e)
                logger.warning(
                    "Decision generation failed (%s: %s); using fallback decision",
                    self.last_error.kind, self.last_error.message,
                )
                decision = fallback_decision(
                    snapshot,
                    timestamp=self._clock(),
                    max_options=self.config.max_options_per_decision,
                )

            self.history.remember(decision)
            self.mark_presented(decision.timestamp)
            return decision

    async def process_narrative_state(
        self, snapshot: NarrativeSnapshot, character: CharacterSummary
    ) -> PlayerDecision | None:
        """Detect and, when the gate opens, generate in one call."""
        result = self.detect_decision_point(snapshot, character)
        if not result.present:
            logger.debug("no decision: %s (score=%.3f)", result.reason, result.score)
            return None
        return await self.generate_decision(snapshot, character)

    def to_player_decision(
        self, response: DecisionResponse, location: str | None
    ) -> PlayerDecision:
        response = bound_options(response, self.config.max_options_per_decision)
        importance = response.metadata.importance
        if importance not in IMPORTANCE_LEVELS:
            importance = "moderate"
        return PlayerDecision(
            id=response.decision_id,
            prompt=response.prompt,
            timestamp=self._clock(),
            location=location,
            options=[
                PlayerDecisionOption(
                    id=opt.id, text=opt.text, impact=opt.impact, tags=list(opt.traits)
                )
                for opt in response.options
            ],
            importance=importance,
            context=response.metadata.narrative_impact,
            ai_generated=True,
        )

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    def record_decision(self, decision_id: str, option_id: str, outcome: str) -> HistoryEntry:
        return self.history.record(decision_id, option_id, outcome)

    def decision_history(self) -> list[HistoryEntry]:
        return self.history.entries()

    @property
    def rate_limit_state(self) -> RateLimitState:
        return self.client.rate_limit_state
