"""Provider messages for the decision service.

The system instruction is fixed and describes the JSON the model must
return. The user message is a Handlebars template rendered from the four
prompt sections; list sections are pre-formatted to strings here so the
template only substitutes values.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pybars

from narrative_decisions.models import DecisionPrompt

MAX_TOKENS = 1000
TEMPERATURE = 0.7

SYSTEM_INSTRUCTION = """\
You are the game master for a western-themed RPG called Boot Hill. Your job is to generate \
contextually appropriate decision points for the player based on the narrative context. \
Each decision should:
1. Feel natural within the western setting
2. Have 3-4 distinct and meaningful options
3. Connect to the character's traits and history
4. Consider the current narrative context

Respond in JSON format with the following structure:
{
  "decisionId": "unique-id",
  "prompt": "The decision prompt text to show the player",
  "options": [
    {
      "id": "option-1",
      "text": "Option text to display",
      "confidence": 0.8,
      "traits": ["brave", "quick"],
      "potentialOutcomes": ["Might lead to a gunfight", "Could earn respect"],
      "impact": "Brief description of impact"
    }
  ],
  "relevanceScore": 0.9,
  "metadata": {
    "narrativeImpact": "Description of narrative impact",
    "themeAlignment": "How well it fits the western theme",
    "pacing": "slow|medium|fast",
    "importance": "critical|significant|moderate|minor"
  }
}
Return only the JSON object, no other text."""

USER_TEMPLATE = """\
Generate a contextually appropriate decision point based on the following information:

NARRATIVE CONTEXT:
{{{narrative}}}

CHARACTER INFORMATION:
Traits: {{{traits}}}
History: {{{history}}}
Relationships: {{{relationships}}}

GAME STATE:
Location: {{{location}}}
Current Scene: {{{scene}}}
Recent Events: {{{events}}}

PREVIOUS DECISIONS:
{{{decisions}}}

Remember to maintain the western theme and appropriate tone."""


_compiler = pybars.Compiler()
_cache: dict[str, Callable] = {}


class PromptError(Exception):
    """Raised when a Handlebars template fails to compile or render."""


def render_prompt(template_str: str, context: dict[str, Any]) -> str:
    """Compile and render a Handlebars template with the given context.

    Templates are cached by source string to avoid recompilation.
    """
    try:
        compiled = _cache.get(template_str)
        if compiled is None:
            compiled = _compiler.compile(template_str)
            _cache[template_str] = compiled
        return str(compiled(context))
    except Exception as e:
        raise PromptError(f"Template error: {e}") from e


def prompt_context(prompt: DecisionPrompt) -> dict[str, str]:
    """Flatten a DecisionPrompt into the template variables."""
    info = prompt.character_info
    state = prompt.game_state
    relationships = ", ".join(
        f"{name} ({descriptor})" for name, descriptor in info.relationships.items()
    )
    decisions = "\n\n".join(
        f"Prompt: {d.prompt}\nChoice: {d.choice}\nOutcome: {d.outcome}"
        for d in prompt.previous_decisions
    )
    return {
        "narrative": prompt.narrative_context or "(no narrative yet)",
        "traits": ", ".join(info.traits) or "none",
        "history": info.history,
        "relationships": relationships or "none",
        "location": state.location,
        "scene": state.current_scene,
        "events": "; ".join(state.recent_events) or "none",
        "decisions": decisions or "None yet",
    }


def format_messages(prompt: DecisionPrompt) -> list[dict[str, str]]:
    return [
        {"role": "system", "content": SYSTEM_INSTRUCTION},
        {"role": "user", "content": render_prompt(USER_TEMPLATE, prompt_context(prompt))},
    ]


def build_request_body(prompt: DecisionPrompt, model_name: str) -> dict[str, Any]:
    return {
        "model": model_name,
        "messages": format_messages(prompt),
        "max_tokens": MAX_TOKENS,
        "temperature": TEMPERATURE,
    }
