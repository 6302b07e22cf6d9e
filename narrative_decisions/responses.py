"""Parsing and normalization of decision service responses.

Two body shapes are accepted:

    chat completion   {"choices": [{"message": {"content": "<JSON string>"}}]}
    direct            {"decision": {...}}

Anything else is a non-retryable AI_SERVICE_ERROR. Once the decision object
is extracted, every field is coerced to a safe default so callers never see
a partially-typed response, and the option list is bounded to 2..max.
"""

from __future__ import annotations

import json
import logging
import re
import uuid
from typing import Any

from narrative_decisions.errors import service_error
from narrative_decisions.models import (
    IMPORTANCE_LEVELS,
    PACING_LEVELS,
    DecisionMetadata,
    DecisionOption,
    DecisionPrompt,
    DecisionResponse,
)

logger = logging.getLogger(__name__)

MIN_OPTIONS = 2
DEFAULT_PROMPT = "What do you want to do?"

_FENCE_RE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL)


def new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


# ---------------------------------------------------------------------------
# Body parsing
# ---------------------------------------------------------------------------

def extract_decision(data: Any) -> dict[str, Any]:
    """Pull the raw decision object out of a response body."""
    if not isinstance(data, dict):
        raise service_error("Unexpected API response format", retryable=False)

    choices = data.get("choices")
    if isinstance(choices, list) and choices:
        first = choices[0]
        message = first.get("message") if isinstance(first, dict) else None
        content = message.get("content") if isinstance(message, dict) else None
        if not isinstance(content, str):
            raise service_error("Unexpected API response format", retryable=False)
        return _decode_content(content)

    decision = data.get("decision")
    if isinstance(decision, dict):
        return decision

    raise service_error("Unexpected API response format", retryable=False)


def _decode_content(content: str) -> dict[str, Any]:
    text = content.strip()
    fenced = _FENCE_RE.match(text)
    if fenced:
        text = fenced.group(1)
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as e:
        raise service_error(f"Model returned invalid JSON: {e}", retryable=False) from e
    if not isinstance(parsed, dict):
        raise service_error(
            f"Model decision must be a JSON object, got {type(parsed).__name__}",
            retryable=False,
        )
    return parsed


# ---------------------------------------------------------------------------
# Normalization
# ---------------------------------------------------------------------------

def _field(raw: dict[str, Any], camel: str, snake: str) -> Any:
    return raw[camel] if camel in raw else raw.get(snake)


def _str_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(item) for item in value if item is not None]


def _unit(value: Any, default: float) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    return max(0.0, min(1.0, float(value)))


def _option(raw: Any) -> DecisionOption | None:
    if not isinstance(raw, dict):
        logger.warning("Dropping non-object decision option: %r", raw)
        return None
    text = raw.get("text")
    if not isinstance(text, str) or not text.strip():
        logger.warning("Dropping decision option without text: %r", raw)
        return None
    option_id = raw.get("id")
    impact = raw.get("impact")
    return DecisionOption(
        id=option_id if isinstance(option_id, str) and option_id else new_id("option"),
        text=text.strip(),
        confidence=_unit(raw.get("confidence"), 0.5),
        traits=_str_list(raw.get("traits")),
        potential_outcomes=_str_list(_field(raw, "potentialOutcomes", "potential_outcomes")),
        impact=impact if isinstance(impact, str) else "",
    )


def _metadata(raw: Any) -> DecisionMetadata:
    if not isinstance(raw, dict):
        return DecisionMetadata()
    narrative_impact = _field(raw, "narrativeImpact", "narrative_impact")
    theme_alignment = _field(raw, "themeAlignment", "theme_alignment")
    pacing = raw.get("pacing")
    importance = raw.get("importance")
    return DecisionMetadata(
        narrative_impact=narrative_impact if isinstance(narrative_impact, str) else "",
        theme_alignment=theme_alignment if isinstance(theme_alignment, str) else "",
        pacing=pacing if pacing in PACING_LEVELS else "medium",
        importance=importance if importance in IMPORTANCE_LEVELS else "moderate",
    )


def normalize_decision(raw: dict[str, Any]) -> DecisionResponse:
    """Coerce a raw decision object into a fully-typed DecisionResponse."""
    decision_id = _field(raw, "decisionId", "decision_id")
    prompt = raw.get("prompt")
    raw_options = raw.get("options")
    if not isinstance(raw_options, list):
        raw_options = []
    options = [opt for opt in (_option(item) for item in raw_options) if opt is not None]

    return DecisionResponse(
        decision_id=decision_id if isinstance(decision_id, str) and decision_id else new_id("decision"),
        prompt=prompt.strip() if isinstance(prompt, str) and prompt.strip() else DEFAULT_PROMPT,
        options=options,
        relevance_score=_unit(_field(raw, "relevanceScore", "relevance_score"), 0.5),
        metadata=_metadata(raw.get("metadata")),
    )


def _fallback_options() -> list[DecisionOption]:
    return [
        DecisionOption(
            id=new_id("fallback-1"),
            text="Continue forward cautiously",
            confidence=0.7,
            traits=["cautious"],
            potential_outcomes=["Might avoid danger"],
            impact="Slow but safe approach",
        ),
        DecisionOption(
            id=new_id("fallback-2"),
            text="Take decisive action",
            confidence=0.7,
            traits=["brave"],
            potential_outcomes=["Could lead to confrontation"],
            impact="Bold but potentially risky",
        ),
    ]


def bound_options(response: DecisionResponse, max_options: int) -> DecisionResponse:
    """Pad to two options with generic ones, or keep the most confident max_options."""
    options = list(response.options)
    if len(options) < MIN_OPTIONS:
        logger.warning(
            "Decision %s has %d option(s); adding generic options",
            response.decision_id, len(options),
        )
        for extra in _fallback_options()[len(options):]:
            options.append(extra)
    if len(options) > max_options:
        options = sorted(options, key=lambda opt: opt.confidence, reverse=True)[:max_options]
    return response.model_copy(update={"options": options})


def parse_response(data: Any, max_options: int) -> DecisionResponse:
    return bound_options(normalize_decision(extract_decision(data)), max_options)


# ---------------------------------------------------------------------------
# Offline responses
# ---------------------------------------------------------------------------

def synthesize_decision(prompt: DecisionPrompt, max_options: int) -> DecisionResponse:
    """Build a generic response locally when no service is configured."""
    summary = prompt.narrative_context[:100]
    response = DecisionResponse(
        decision_id=new_id("decision"),
        prompt="The situation demands a choice...",
        options=[
            DecisionOption(
                id=new_id("option"),
                text="Take the cautious approach",
                confidence=0.8,
                traits=["cautious", "thoughtful"],
                potential_outcomes=["Safer, but might miss opportunities"],
                impact="A measured response that minimizes risk",
            ),
            DecisionOption(
                id=new_id("option"),
                text="Act boldly and decisively",
                confidence=0.7,
                traits=["brave", "impulsive"],
                potential_outcomes=["Higher risk, higher reward"],
                impact="A bold move that could change the situation dramatically",
            ),
        ],
        relevance_score=0.9,
        metadata=DecisionMetadata(
            narrative_impact=f"Based on: {summary}..." if summary else "",
            theme_alignment="Classic western decision point",
            pacing="medium",
            importance="significant",
        ),
    )
    return bound_options(response, max_options)
