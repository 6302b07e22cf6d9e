"""Decision service client — HTTP connection to a chat-completion backend.

DecisionServiceClient.send() turns a DecisionPrompt into a DecisionResponse:

  1. Offline mode: with no API key or endpoint configured, a generic response is
     synthesized locally and the network is never touched.
  2. Rate check: a spent budget fails fast with RATE_LIMITED.
  3. POST {model, messages, max_tokens, temperature} with bearer auth.
  4. Rate-limit headers update the limiter; a success without them counts
     one call against the local budget.
  5. Parse and normalize the body (see responses.py).

Connection errors, timeouts, HTTP 5xx, HTTP 429 and rate-limit bodies are
retried with exponential backoff up to `max_retries` total attempts. Other
4xx responses and unparseable bodies fail immediately.
"""

from __future__ import annotations

import asyncio
import logging

import httpx

from narrative_decisions.clock import Clock, system_clock
from narrative_decisions.config import ServiceConfig
from narrative_decisions.errors import DecisionServiceError, rate_limited, service_error
from narrative_decisions.models import DecisionPrompt, DecisionResponse, RateLimitState
from narrative_decisions.prompts import build_request_body
from narrative_decisions.rate_limiter import RateLimiter
from narrative_decisions.responses import parse_response, synthesize_decision
from narrative_decisions.retry import RetryMachine, RetryPolicy, Sleep

logger = logging.getLogger(__name__)


def is_retryable(error: Exception) -> bool:
    return (
        isinstance(error, DecisionServiceError)
        and error.kind == "AI_SERVICE_ERROR"
        and error.retryable
    )


class DecisionServiceClient:
    """Async client for the remote decision generator.

    Args:
        config:       Service configuration (endpoint, key, retry and rate settings).
        rate_limiter: Shared limiter; one is created from config if omitted.
        clock:        Epoch-millis clock, used by the default limiter.
        sleep:        Awaitable sleep used between retries.
    """

    def __init__(
        self,
        config: ServiceConfig,
        *,
        rate_limiter: RateLimiter | None = None,
        clock: Clock = system_clock,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._config = config
        self._limiter = rate_limiter or RateLimiter(
            config.rate_limit, config.rate_limit_window_ms, clock
        )
        self._sleep = sleep
        self.retry_policy = RetryPolicy(
            max_attempts=config.max_retries,
            base_delay=config.retry_base_delay_ms / 1000,
        )

    @property
    def rate_limiter(self) -> RateLimiter:
        return self._limiter

    @property
    def rate_limit_state(self) -> RateLimitState:
        return self._limiter.state

    def _headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self._config.api_key}",
        }

    async def send(self, prompt: DecisionPrompt) -> DecisionResponse:
        if self._config.offline:
            logger.info("decision service not configured; using a local decision")
            return synthesize_decision(prompt, self._config.max_options_per_decision)

        machine: RetryMachine[DecisionResponse] = RetryMachine(
            self.retry_policy, is_retryable, self._sleep
        )
        try:
            return await machine.run(lambda attempt: self._attempt(prompt, attempt))
        except DecisionServiceError as e:
            if not machine.exhausted:
                raise
            raise service_error(
                f"Decision service failed after {machine.attempt} attempts: {e.message}",
                status_code=e.status_code,
            ) from e

    async def _attempt(self, prompt: DecisionPrompt, attempt: int) -> DecisionResponse:
        if self._limiter.is_limited():
            raise rate_limited()

        url = self._config.endpoint
        body = build_request_body(prompt, self._config.model_name)
        timeout = self._config.timeout_seconds
        logger.debug("decision request attempt=%d url=%s", attempt, url)

        try:
            async with httpx.AsyncClient(timeout=timeout) as client:
                resp = await client.post(url, json=body, headers=self._headers())
                headers_seen = self._limiter.apply_headers(resp.headers)
                resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise _status_error(e.response) from e
        except httpx.TimeoutException as e:
            raise service_error(f"Decision service timed out after {timeout}s") from e
        except httpx.TransportError as e:
            raise service_error(f"Cannot connect to decision service at {url}") from e
        except httpx.HTTPError as e:
            raise service_error(
                f"Decision service request failed: {type(e).__name__}: {e}", retryable=False
            ) from e

        if not headers_seen:
            self._limiter.consume()

        try:
            data = resp.json()
        except ValueError as e:
            raise service_error("Decision service returned a non-JSON body", retryable=False) from e

        decision = parse_response(data, self._config.max_options_per_decision)
        logger.debug(
            "decision response id=%s options=%d", decision.decision_id, len(decision.options)
        )
        return decision


def _status_error(response: httpx.Response) -> DecisionServiceError:
    status = response.status_code
    detail = response.text[:200]
    retryable = status >= 500 or status == 429 or "rate limit" in detail.lower()
    return service_error(
        f"Decision service returned HTTP {status}",
        retryable=retryable,
        status_code=status,
    )
