"""Unit tests for the validation service pipeline."""

import asyncio
import json
import logging
from typing import Any
from unittest.mock import Mock

import httpx
import pytest

from app.adapters.rate_limit.in_memory import InMemoryFixedWindowRateLimiter
from app.adapters.webhook.base import AbstractWebhookClient, WebhookResponse
from app.adapters.webhook.httpx_client import HttpxWebhookClient
from app.core.config import settings
from app.core.errors import UpstreamNetworkAppError, ValidationAppError
from app.services.validation_service import (
    CODE_NOT_STRING_MESSAGE,
    INTERNAL_ERROR_MESSAGE,
    INVALID_CODE_MESSAGE,
    MISSING_CODE_MESSAGE,
    ValidationService,
    extract_code,
    is_mock_valid,
    parse_body,
)


class StubWebhook(AbstractWebhookClient):
    """Records lookups and replays a canned response or error."""

    def __init__(self, response: WebhookResponse | None = None, error: Exception | None = None) -> None:
        self.response = response or WebhookResponse(status_code=200, payload={})
        self.error = error
        self.calls: list[str] = []

    async def lookup(self, code: str) -> WebhookResponse:
        self.calls.append(code)
        if self.error is not None:
            raise self.error
        return self.response


def _body(payload: Any) -> bytes:
    return json.dumps(payload).encode()


def _service(webhook: AbstractWebhookClient, limit: int = 100) -> ValidationService:
    limiter = InMemoryFixedWindowRateLimiter(limit=limit, window_seconds=60, clock=Mock(return_value=1000.0))
    return ValidationService(webhook=webhook, rate_limiter=limiter)


@pytest.fixture(autouse=True)
def live_mode(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings.validator, "mock", False)
    monkeypatch.setattr(settings.validator, "mock_delay_ms", 0)
    monkeypatch.setattr(settings.validator, "rate_limit_enabled", True)


class TestInputValidation:
    @pytest.mark.parametrize(
        ("payload", "message"),
        [
            ({}, MISSING_CODE_MESSAGE),
            ({"code": None}, MISSING_CODE_MESSAGE),
            ({"code": ""}, MISSING_CODE_MESSAGE),
            ({"code": "   "}, MISSING_CODE_MESSAGE),
            ({"code": 1234}, CODE_NOT_STRING_MESSAGE),
            ({"code": ["ABC"]}, CODE_NOT_STRING_MESSAGE),
            ({"code": "ab!"}, INVALID_CODE_MESSAGE),
            ({"code": "AB CD"}, INVALID_CODE_MESSAGE),
            ({"code": "ABC\n1"}, INVALID_CODE_MESSAGE),
            ({"code": "  ABC  "}, INVALID_CODE_MESSAGE),
            ({"code": "ABC\n"}, INVALID_CODE_MESSAGE),
            (["ABC"], MISSING_CODE_MESSAGE),
            ("ABC", MISSING_CODE_MESSAGE),
        ],
    )
    def test_extract_code_rejects(self, payload: Any, message: str) -> None:
        with pytest.raises(ValidationAppError) as exc:
            extract_code(payload)

        assert exc.value.message == message

    def test_extract_code_accepts_allowed_characters(self) -> None:
        assert extract_code({"code": "Abc_12-x"}) == "Abc_12-x"

    @pytest.mark.parametrize(
        "raw",
        [b"", b"not json", b"{\"code\": ", b"\xff\xfe", b"[" * 100000 + b"]" * 100000],
    )
    def test_unparsable_body_is_empty_object(self, raw: bytes) -> None:
        assert parse_body(raw) == {}

    @pytest.mark.asyncio
    async def test_invalid_character_yields_400(self) -> None:
        webhook = StubWebhook()

        result = await _service(webhook).validate(body=_body({"code": "ab!"}), client_id="ip1")

        assert result.status_code == 400
        assert result.body.to_content() == {
            "ok": False,
            "valid": None,
            "message": INVALID_CODE_MESSAGE,
        }
        assert webhook.calls == []

    @pytest.mark.asyncio
    async def test_missing_code_yields_400(self) -> None:
        result = await _service(StubWebhook()).validate(body=_body({}), client_id="ip1")

        assert result.status_code == 400
        assert result.body.message == MISSING_CODE_MESSAGE

    @pytest.mark.asyncio
    async def test_garbage_body_yields_400_not_500(self) -> None:
        result = await _service(StubWebhook()).validate(body=b"{{{", client_id="ip1")

        assert result.status_code == 400
        assert result.body.valid is None


class TestRateLimiting:
    @pytest.mark.asyncio
    async def test_exceeding_limit_yields_429(self) -> None:
        webhook = StubWebhook()
        service = _service(webhook, limit=2)

        statuses = [
            (await service.validate(body=_body({"code": "ABC"}), client_id="ip1")).status_code
            for _ in range(3)
        ]

        assert statuses == [200, 200, 429]
        assert len(webhook.calls) == 2

    @pytest.mark.asyncio
    async def test_rate_limited_envelope_and_headers(self) -> None:
        service = _service(StubWebhook(), limit=1)
        await service.validate(body=_body({"code": "ABC"}), client_id="ip1")

        result = await service.validate(body=_body({"code": "ABC"}), client_id="ip1")

        assert result.status_code == 429
        assert result.body.ok is False
        assert result.body.valid is None
        assert result.body.message.startswith("Too many requests")
        assert result.headers["Retry-After"] == "60"
        assert result.headers["X-RateLimit-Limit"] == "1"

    @pytest.mark.asyncio
    async def test_rate_limit_checked_before_input(self) -> None:
        service = _service(StubWebhook(), limit=1)
        await service.validate(body=b"", client_id="ip1")

        result = await service.validate(body=b"", client_id="ip1")

        assert result.status_code == 429

    @pytest.mark.asyncio
    async def test_disabled_rate_limit_never_blocks(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(settings.validator, "rate_limit_enabled", False)
        service = _service(StubWebhook(), limit=1)

        for _ in range(3):
            result = await service.validate(body=_body({"code": "ABC"}), client_id="ip1")
            assert result.status_code == 200


class TestUpstreamPath:
    @pytest.mark.asyncio
    async def test_found_code_is_normalized(self) -> None:
        payload = {"first_name": "Jo", "email": "j@x.com", "row_number": "3"}
        webhook = StubWebhook(WebhookResponse(status_code=200, payload=payload))

        result = await _service(webhook).validate(body=_body({"code": "ABC-7"}), client_id="ip1")

        assert webhook.calls == ["ABC-7"]
        assert result.status_code == 200
        assert result.body.to_content() == {
            "ok": True,
            "valid": True,
            "message": "Referral code is valid.",
            "eligibility": "Eligible",
            "metadata": {"name": "Jo", "email": "j@x.com", "row_number": 3},
            "raw": payload,
        }

    @pytest.mark.asyncio
    async def test_not_found_status_is_propagated(self) -> None:
        webhook = StubWebhook(WebhookResponse(status_code=404, payload={}))

        result = await _service(webhook).validate(body=_body({"code": "NOPE"}), client_id="ip1")

        assert result.status_code == 404
        assert result.body.to_content() == {
            "ok": False,
            "valid": False,
            "message": "Referral code not found.",
            "raw": {},
        }

    @pytest.mark.asyncio
    async def test_unexpected_status_is_passed_through_as_indeterminate(self) -> None:
        webhook = StubWebhook(WebhookResponse(status_code=503, payload={"error": "busy"}))

        result = await _service(webhook).validate(body=_body({"code": "ABC"}), client_id="ip1")

        assert result.status_code == 503
        assert result.body.ok is False
        assert result.body.valid is None
        assert result.body.message == "Unexpected response from referral service."
        assert result.body.raw == {"error": "busy"}

    @pytest.mark.asyncio
    async def test_bodyless_upstream_status_becomes_502(self) -> None:
        webhook = StubWebhook(WebhookResponse(status_code=204, payload={}))

        result = await _service(webhook).validate(body=_body({"code": "ABC"}), client_id="ip1")

        assert result.status_code == 502
        assert result.body.ok is True
        assert result.body.valid is None

    @pytest.mark.asyncio
    async def test_network_failure_yields_504(self) -> None:
        error = UpstreamNetworkAppError(
            code="upstream_network_error",
            message="Network error. Please check your connection and try again.",
        )

        result = await _service(StubWebhook(error=error)).validate(
            body=_body({"code": "ABC"}), client_id="ip1"
        )

        assert result.status_code == 504
        assert result.body.to_content() == {
            "ok": False,
            "valid": None,
            "message": "Network error. Please check your connection and try again.",
        }

    @pytest.mark.asyncio
    async def test_upstream_that_never_resolves_yields_504_timeout(self) -> None:
        async def hang(request: httpx.Request) -> httpx.Response:
            await asyncio.sleep(10)
            return httpx.Response(200, json={})

        webhook = HttpxWebhookClient(
            url="http://webhook.test/search-referral",
            timeout_seconds=0.05,
            transport=httpx.MockTransport(hang),
        )

        result = await _service(webhook).validate(body=_body({"code": "ABC"}), client_id="ip1")

        assert result.status_code == 504
        assert result.body.valid is None
        assert result.body.message == "Request timed out. Please try again."

    @pytest.mark.asyncio
    async def test_unexpected_exception_yields_500(self) -> None:
        webhook = StubWebhook(error=RuntimeError("socket exploded: secret details"))

        result = await _service(webhook).validate(body=_body({"code": "ABC"}), client_id="ip1")

        assert result.status_code == 500
        assert result.body.to_content() == {
            "ok": False,
            "valid": None,
            "message": INTERNAL_ERROR_MESSAGE,
        }


class TestMockPath:
    @pytest.mark.parametrize(
        ("code", "expected"),
        [("ABC7", True), ("my-TEST-code", True), ("Testing", True), ("ABC8", False), ("7A", False)],
    )
    def test_mock_rule(self, code: str, expected: bool) -> None:
        assert is_mock_valid(code) is expected

    @pytest.mark.asyncio
    async def test_mock_mode_bypasses_webhook(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(settings.validator, "mock", True)
        webhook = StubWebhook(error=RuntimeError("must not be called"))

        result = await _service(webhook).validate(body=_body({"code": "ABC7"}), client_id="ip1")

        assert webhook.calls == []
        assert result.status_code == 200
        content = result.body.to_content()
        assert content["ok"] is True
        assert content["valid"] is True
        assert content["message"] == "Referral code is valid (mock)."
        assert content["metadata"] == {"name": "Test User", "referral_code": "ABC7"}
        assert content["raw"] == {"status": "found", "code": "ABC7", "mock": True}

    @pytest.mark.asyncio
    async def test_mock_mode_invalid_code(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(settings.validator, "mock", True)

        result = await _service(StubWebhook()).validate(body=_body({"code": "ABC8"}), client_id="ip1")

        assert result.status_code == 200
        assert result.body.valid is False
        assert result.body.metadata is None
        assert result.body.raw == {"status": "not_found", "code": "ABC8", "mock": True}


class TestLogging:
    @pytest.mark.asyncio
    async def test_logs_masked_code_only(self, caplog: pytest.LogCaptureFixture) -> None:
        webhook = StubWebhook(WebhookResponse(status_code=200, payload={}))

        with caplog.at_level(logging.INFO, logger="app.services.validation_service"):
            await _service(webhook).validate(body=_body({"code": "SUPERSECRET99"}), client_id="10.0.0.1")

        records = [r for r in caplog.records if r.name == "app.services.validation_service"]
        assert [r.getMessage() for r in records] == ["validation.attempt", "validation.result"]
        for record in records:
            assert record.masked_code == "SU***99"
            assert record.client_id == "10.0.0.1"
        assert records[1].valid is True
        assert "SUPERSECRET99" not in caplog.text
        assert all("SUPERSECRET99" not in str(r.__dict__) for r in caplog.records)
