"""Tests for narrative_decisions.llm — DecisionServiceClient."""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from narrative_decisions.config import ServiceConfig
from narrative_decisions.errors import DecisionServiceError, rate_limited, service_error
from narrative_decisions.llm import DecisionServiceClient, is_retryable
from narrative_decisions.models import DecisionPrompt
from narrative_decisions.rate_limiter import RateLimiter

DECISION = {
    "decisionId": "sheriff-1",
    "prompt": "The sheriff blocks the door. What now?",
    "options": [
        {"id": "a", "text": "Show him your papers", "confidence": 0.8, "traits": ["lawful"]},
        {"id": "b", "text": "Push past him", "confidence": 0.6, "traits": ["brave"]},
    ],
    "relevanceScore": 0.9,
    "metadata": {"narrativeImpact": "Trouble with the law", "pacing": "fast", "importance": "critical"},
}


def _chat_body(decision: dict = DECISION) -> dict:
    return {"choices": [{"message": {"role": "assistant", "content": json.dumps(decision)}}]}


def _mock_response(body: dict | None, status: int = 200, headers: dict | None = None,
                   text: str = "") -> MagicMock:
    resp = MagicMock()
    resp.status_code = status
    resp.headers = httpx.Headers(headers or {})
    resp.text = text
    if body is None:
        resp.json.side_effect = json.JSONDecodeError("Expecting value", "", 0)
    else:
        resp.json.return_value = body
    resp.raise_for_status = MagicMock(
        side_effect=None if status < 400 else httpx.HTTPStatusError(
            "", request=MagicMock(), response=resp
        )
    )
    return resp


@pytest.fixture
def prompt() -> DecisionPrompt:
    return DecisionPrompt(narrative_context="The sheriff blocks the saloon door.")


@pytest.fixture
def client(config, clock, sleep) -> DecisionServiceClient:
    return DecisionServiceClient(config, clock=clock, sleep=sleep)


# ---------------------------------------------------------------------------
# Happy path
# ---------------------------------------------------------------------------

class TestSend:
    async def test_happy_path(self, client, prompt) -> None:
        mock_post = AsyncMock(return_value=_mock_response(_chat_body()))
        with patch("httpx.AsyncClient.post", mock_post):
            decision = await client.send(prompt)
        assert decision.decision_id == "sheriff-1"
        assert [o.text for o in decision.options] == ["Show him your papers", "Push past him"]
        assert decision.metadata.importance == "critical"

    async def test_posts_to_endpoint(self, client, prompt, config) -> None:
        mock_post = AsyncMock(return_value=_mock_response(_chat_body()))
        with patch("httpx.AsyncClient.post", mock_post):
            await client.send(prompt)
        assert mock_post.call_args[0][0] == config.endpoint

    async def test_sends_model_and_messages(self, client, prompt) -> None:
        mock_post = AsyncMock(return_value=_mock_response(_chat_body()))
        with patch("httpx.AsyncClient.post", mock_post):
            await client.send(prompt)
        sent = mock_post.call_args.kwargs["json"]
        assert sent["model"] == "test-model"
        assert [m["role"] for m in sent["messages"]] == ["system", "user"]
        assert "The sheriff blocks the saloon door." in sent["messages"][1]["content"]

    async def test_bearer_token_sent(self, client, prompt) -> None:
        mock_post = AsyncMock(return_value=_mock_response(_chat_body()))
        with patch("httpx.AsyncClient.post", mock_post):
            await client.send(prompt)
        headers = mock_post.call_args.kwargs["headers"]
        assert headers["Authorization"] == "Bearer test-key"
        assert headers["Content-Type"] == "application/json"

    async def test_direct_decision_shape(self, client, prompt) -> None:
        mock_post = AsyncMock(return_value=_mock_response({"decision": DECISION}))
        with patch("httpx.AsyncClient.post", mock_post):
            decision = await client.send(prompt)
        assert decision.decision_id == "sheriff-1"

    async def test_offline_never_posts(self, prompt, sleep) -> None:
        client = DecisionServiceClient(ServiceConfig(), sleep=sleep)
        mock_post = AsyncMock()
        with patch("httpx.AsyncClient.post", mock_post):
            decision = await client.send(prompt)
        mock_post.assert_not_called()
        assert len(decision.options) >= 2


# ---------------------------------------------------------------------------
# Rate limiting
# ---------------------------------------------------------------------------

class TestRateLimit:
    async def test_headers_update_state(self, client, prompt) -> None:
        resp = _mock_response(_chat_body(), headers={
            "X-RateLimit-Remaining": "42", "X-RateLimit-Reset": "1609459200",
        })
        with patch("httpx.AsyncClient.post", AsyncMock(return_value=resp)):
            await client.send(prompt)
        assert client.rate_limit_state.remaining == 42
        assert client.rate_limit_state.reset_time == 1609459200000

    async def test_no_headers_counts_locally(self, client, prompt) -> None:
        with patch("httpx.AsyncClient.post", AsyncMock(return_value=_mock_response(_chat_body()))):
            await client.send(prompt)
        assert client.rate_limit_state.remaining == 59

    async def test_spent_budget_fails_before_request(self, config, prompt, clock, sleep) -> None:
        limiter = RateLimiter(limit=1, clock=clock)
        limiter.consume()
        client = DecisionServiceClient(config, rate_limiter=limiter, sleep=sleep)
        mock_post = AsyncMock()
        with patch("httpx.AsyncClient.post", mock_post):
            with pytest.raises(DecisionServiceError) as exc:
                await client.send(prompt)
        assert exc.value.kind == "RATE_LIMITED"
        mock_post.assert_not_called()
        sleep.assert_not_awaited()

    async def test_budget_available_again_after_reset(self, config, prompt, clock, sleep) -> None:
        limiter = RateLimiter(limit=1, window_ms=1_000, clock=clock)
        limiter.consume()
        client = DecisionServiceClient(config, rate_limiter=limiter, sleep=sleep)
        clock.advance(1_000)
        with patch("httpx.AsyncClient.post", AsyncMock(return_value=_mock_response(_chat_body()))):
            decision = await client.send(prompt)
        assert decision.decision_id == "sheriff-1"


# ---------------------------------------------------------------------------
# Retries
# ---------------------------------------------------------------------------

class TestRetries:
    async def test_server_error_then_success(self, client, prompt, sleep) -> None:
        mock_post = AsyncMock(side_effect=[
            _mock_response({}, status=503),
            _mock_response(_chat_body()),
        ])
        with patch("httpx.AsyncClient.post", mock_post):
            decision = await client.send(prompt)
        assert decision.decision_id == "sheriff-1"
        assert mock_post.await_count == 2
        sleep.assert_awaited_once_with(1.0)

    async def test_http_429_is_retried(self, client, prompt) -> None:
        mock_post = AsyncMock(side_effect=[
            _mock_response({}, status=429),
            _mock_response(_chat_body()),
        ])
        with patch("httpx.AsyncClient.post", mock_post):
            await client.send(prompt)
        assert mock_post.await_count == 2

    async def test_rate_limit_body_is_retried(self, client, prompt) -> None:
        mock_post = AsyncMock(side_effect=[
            _mock_response({}, status=403, text="Rate limit reached for this key"),
            _mock_response(_chat_body()),
        ])
        with patch("httpx.AsyncClient.post", mock_post):
            await client.send(prompt)
        assert mock_post.await_count == 2

    async def test_client_error_not_retried(self, client, prompt, sleep) -> None:
        mock_post = AsyncMock(return_value=_mock_response({}, status=400, text="bad request"))
        with patch("httpx.AsyncClient.post", mock_post):
            with pytest.raises(DecisionServiceError, match="HTTP 400") as exc:
                await client.send(prompt)
        assert exc.value.status_code == 400
        assert mock_post.await_count == 1
        sleep.assert_not_awaited()

    async def test_connect_error_exhausts_attempts(self, client, prompt, sleep) -> None:
        mock_post = AsyncMock(side_effect=httpx.ConnectError("refused"))
        with patch("httpx.AsyncClient.post", mock_post):
            with pytest.raises(DecisionServiceError, match="after 3 attempts") as exc:
                await client.send(prompt)
        assert exc.value.kind == "AI_SERVICE_ERROR"
        assert mock_post.await_count == 3
        assert [c.args[0] for c in sleep.await_args_list] == [1.0, 2.0]

    async def test_timeout_is_retried(self, client, prompt) -> None:
        mock_post = AsyncMock(side_effect=[
            httpx.ReadTimeout("slow"),
            _mock_response(_chat_body()),
        ])
        with patch("httpx.AsyncClient.post", mock_post):
            await client.send(prompt)
        assert mock_post.await_count == 2

    async def test_malformed_body_not_retried(self, client, prompt) -> None:
        mock_post = AsyncMock(return_value=_mock_response(None))
        with patch("httpx.AsyncClient.post", mock_post):
            with pytest.raises(DecisionServiceError, match="non-JSON"):
                await client.send(prompt)
        assert mock_post.await_count == 1

    async def test_unexpected_shape_not_retried(self, client, prompt) -> None:
        mock_post = AsyncMock(return_value=_mock_response({"lore": "not an object"}))
        with patch("httpx.AsyncClient.post", mock_post):
            with pytest.raises(DecisionServiceError, match="Unexpected API response format"):
                await client.send(prompt)
        assert mock_post.await_count == 1

    @pytest.mark.parametrize("error", [
        httpx.DecodingError("bad gzip"),
        httpx.TooManyRedirects("redirect loop"),
    ])
    async def test_other_httpx_errors_are_typed(self, client, prompt, sleep, error) -> None:
        mock_post = AsyncMock(side_effect=error)
        with patch("httpx.AsyncClient.post", mock_post):
            with pytest.raises(DecisionServiceError, match=type(error).__name__) as exc:
                await client.send(prompt)
        assert exc.value.kind == "AI_SERVICE_ERROR"
        assert exc.value.retryable is False
        assert mock_post.await_count == 1
        sleep.assert_not_awaited()

    async def test_retry_policy_from_config(self, sleep) -> None:
        cfg = ServiceConfig(api_key="k", endpoint="http://x", max_retries=5, retry_base_delay_ms=250)
        client = DecisionServiceClient(cfg, sleep=sleep)
        assert client.retry_policy.max_attempts == 5
        assert client.retry_policy.base_delay == 0.25


def test_is_retryable_classification():
    assert is_retryable(service_error("boom"))
    assert not is_retryable(service_error("bad", retryable=False))
    assert not is_retryable(rate_limited())
    assert not is_retryable(ValueError("x"))
