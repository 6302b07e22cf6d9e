from __future__ import annotations

from collections import OrderedDict, deque

from narrative_decisions.clock import Clock, system_clock
from narrative_decisions.models import HistoryEntry, PlayerDecision


class HistoryStore:
    """Keeps a rolling window of the decisions the player has made.

    Entries are append-only; once more than `max_entries` are recorded the
    oldest are dropped first. Access is always "most recent N".
    """

    def __init__(self, max_entries: int = 10, clock: Clock = system_clock) -> None:
        self.max_entries = max_entries
        self._clock = clock
        self._entries: deque[HistoryEntry] = deque(maxlen=max_entries)
        # Decisions shown to the player, used to resolve prompt/choice text
        self._presented: OrderedDict[str, PlayerDecision] = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def remember(self, decision: PlayerDecision) -> None:
        self._presented[decision.id] = decision
        self._presented.move_to_end(decision.id)
        while len(self._presented) > self.max_entries:
            self._presented.popitem(last=False)

    def record(self, decision_id: str, option_id: str, outcome: str) -> HistoryEntry:
        prompt, choice = decision_id, option_id
        decision = self._presented.get(decision_id)
        if decision is not None:
            prompt = decision.prompt
            choice = next(
                (opt.text for opt in decision.options if opt.id == option_id), option_id
            )
        entry = HistoryEntry(
            decision_id=decision_id,
            option_id=option_id,
            prompt=prompt,
            choice=choice,
            outcome=outcome,
            timestamp=self._clock(),
        )
        self._entries.append(entry)
        return entry

    def recent(self, n: int | None = None) -> list[HistoryEntry]:
        entries = list(self._entries)
        if n is None:
            return entries
        if n <= 0:
            return []
        return entries[-n:]

    def entries(self) -> list[HistoryEntry]:
        return list(self._entries)

    def clear(self) -> None:
        self._entries.clear()
        self._presented.clear()


__all__ = ["HistoryStore"]
