"""Service configuration.

ServiceConfig is immutable once built. It is normally constructed by the
game session, or from the environment (and an optional .env file) with
ServiceConfig.from_env():

    AI_API_KEY                      bearer token; empty enables offline mode
    AI_API_ENDPOINT                 chat-completion URL; empty enables offline mode
    AI_MODEL_NAME                   model identifier sent with each request
    DECISION_MAX_RETRIES            total attempts per generation
    DECISION_TIMEOUT_MS             per-attempt HTTP timeout
    DECISION_RATE_LIMIT             requests allowed per window
    DECISION_MIN_INTERVAL_MS        minimum gap between two decisions
    DECISION_RELEVANCE_THRESHOLD    gate score needed to present a decision
    DECISION_MAX_OPTIONS            options per decision (at least 2)
    DECISION_MAX_HISTORY            remembered decisions
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field


class GateWeights(BaseModel):
    """Scoring constants for the decision gate."""

    model_config = ConfigDict(frozen=True)

    base: float = 0.4
    dialogue_bonus: float = 0.15
    action_penalty: float = 0.2
    decision_point_bonus: float = 0.3
    new_location_bonus: float = 0.2
    time_weight: float = 0.25


class ServiceConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    api_key: str = ""
    endpoint: str = ""
    model_name: str = "default-model"
    max_retries: int = Field(default=3, ge=1)
    timeout_ms: int = Field(default=30_000, gt=0)
    rate_limit: int = Field(default=60, ge=1)
    rate_limit_window_ms: int = Field(default=60_000, gt=0)
    retry_base_delay_ms: int = Field(default=1_000, ge=0)
    min_decision_interval_ms: int = Field(default=30_000, ge=0)
    relevance_threshold: float = Field(default=0.65, ge=0.0, le=1.0)
    max_options_per_decision: int = Field(default=4, ge=2)
    max_history_entries: int = Field(default=10, ge=1)
    min_narrative_entries: int = Field(default=3, ge=0)
    gate_weights: GateWeights = Field(default_factory=GateWeights)

    @property
    def offline(self) -> bool:
        """True when the remote service cannot be reached by configuration."""
        return not self.api_key or not self.endpoint

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_ms / 1000

    @classmethod
    def from_env(
        cls, env_file: Path | None = None, **overrides: Any
    ) -> ServiceConfig:
        """Build a config from AI_* / DECISION_* variables.

        Values already present in the process environment win over the
        .env file. Keyword overrides win over both.
        """
        load_dotenv(env_file)
        values = _read_environ(os.environ)
        values.update(overrides)
        return cls(**values)


_ENV_FIELDS: dict[str, tuple[str, type]] = {
    "AI_API_KEY": ("api_key", str),
    "AI_API_ENDPOINT": ("endpoint", str),
    "AI_MODEL_NAME": ("model_name", str),
    "DECISION_MAX_RETRIES": ("max_retries", int),
    "DECISION_TIMEOUT_MS": ("timeout_ms", int),
    "DECISION_RATE_LIMIT": ("rate_limit", int),
    "DECISION_MIN_INTERVAL_MS": ("min_decision_interval_ms", int),
    "DECISION_RELEVANCE_THRESHOLD": ("relevance_threshold", float),
    "DECISION_MAX_OPTIONS": ("max_options_per_decision", int),
    "DECISION_MAX_HISTORY": ("max_history_entries", int),
}


def _read_environ(environ: Mapping[str, str]) -> dict[str, Any]:
    values: dict[str, Any] = {}
    for var, (field, convert) in _ENV_FIELDS.items():
        raw = environ.get(var)
        if raw is None or raw == "":
            continue
        values[field] = convert(raw)
    return values
