"""Referral validation service orchestrating the request pipeline.

This service is the core business logic behind ``POST /validate``. Each
request goes through a fixed sequence of steps:
- Rate limit check for the client identifier
- Body parsing and referral code validation
- Resolution, either locally (mock mode) or through the webhook
- Normalization of the webhook answer into the response envelope

Any step may short-circuit by raising an ``AppError``; ``validate`` converts
those, and any unexpected exception, into a well-formed envelope with the
matching status code. Nothing escapes it.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from app.adapters.rate_limit.base import AbstractRateLimiter
from app.adapters.webhook.base import AbstractWebhookClient
from app.core.config import settings
from app.core.errors import AppError, RateLimitAppError, UpstreamAppError, ValidationAppError
from app.core.rate_limit import build_rate_limit_headers, enforce_rate_limit
from app.schemas.validation import ReferralMetadata, ValidateResponse
from app.services.normalizer import ELIGIBLE, normalize
from app.utils.masking import mask_code

logger = logging.getLogger(__name__)

CODE_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")

MISSING_CODE_MESSAGE = "Please enter a referral code"
CODE_NOT_STRING_MESSAGE = "Referral code must be a string"
INVALID_CODE_MESSAGE = "Code can only contain letters, numbers, dashes, and underscores"
INTERNAL_ERROR_MESSAGE = "Internal server error. Please try again."

HTTP_BAD_GATEWAY = 502
BODYLESS_STATUSES = frozenset({204, 205, 304})

MOCK_VALID_SUFFIX = "7"
MOCK_VALID_MARKER = "test"
MOCK_OWNER_NAME = "Test User"


@dataclass
class ValidationResult:
    """HTTP-ready outcome of one validation request."""

    status_code: int
    body: ValidateResponse
    headers: dict[str, str] = field(default_factory=dict)


def parse_body(raw_body: bytes) -> Any:
    """Decode a JSON request body; undecodable bodies count as ``{}``."""
    try:
        return json.loads(raw_body) if raw_body else {}
    except (ValueError, RecursionError):
        return {}


def extract_code(payload: Any) -> str:
    """Return the referral code from a parsed request body.

    Args:
        payload: Parsed JSON body (any JSON value).

    Returns:
        The validated code.

    Raises:
        ValidationAppError: If the code is missing, not a string, blank, or
            contains characters outside ``[A-Za-z0-9_-]`` (whitespace
            padding included).
    """
    code = payload.get("code") if isinstance(payload, dict) else None

    if code is None:
        raise ValidationAppError(code="code_missing", message=MISSING_CODE_MESSAGE)
    if not isinstance(code, str):
        raise ValidationAppError(
            code="code_not_string",
            message=CODE_NOT_STRING_MESSAGE,
            details={"hint": f"received {type(code).__name__}"},
        )

    if not code.strip():
        raise ValidationAppError(code="code_empty", message=MISSING_CODE_MESSAGE)
    # Surrounding whitespace counts as an invalid character
    if not CODE_PATTERN.fullmatch(code):
        raise ValidationAppError(code="code_invalid_characters", message=INVALID_CODE_MESSAGE)
    return code


def is_mock_valid(code: str) -> bool:
    return code.endswith(MOCK_VALID_SUFFIX) or MOCK_VALID_MARKER in code.lower()


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class ValidationService:
    """Service validating referral codes against the webhook.

    Attributes:
        webhook: Client used for live lookups.
        rate_limiter: Limiter to consume from; the process-wide limiter
            from ``app.core.rate_limit`` when omitted.
    """

    def __init__(
        self,
        webhook: AbstractWebhookClient,
        rate_limiter: AbstractRateLimiter | None = None,
    ) -> None:
        self.webhook = webhook
        self.rate_limiter = rate_limiter

    async def validate(self, *, body: bytes, client_id: str) -> ValidationResult:
        """Run the full pipeline for one request.

        Args:
            body: Raw request body.
            client_id: Rate limit bucket for the caller.

        Returns:
            ValidationResult carrying the status code, envelope and any
            extra response headers. Never raises.
        """
        try:
            return await self._run(body, client_id)
        except AppError as exc:
            return self._error_result(exc, client_id)
        except Exception as exc:
            logger.error(
                "validation.internal_error",
                extra={
                    "error_type": type(exc).__name__,
                    "error_msg": str(exc),
                    "client_id": client_id,
                },
                exc_info=True,
            )
            return ValidationResult(
                status_code=500,
                body=ValidateResponse.failure(INTERNAL_ERROR_MESSAGE),
            )

    async def _run(self, body: bytes, client_id: str) -> ValidationResult:
        # Step 1: Rate limit
        enforce_rate_limit(client_id, self.rate_limiter)

        # Step 2: Input validation
        code = extract_code(parse_body(body))
        masked = mask_code(code)
        logger.info(
            "validation.attempt",
            extra={"masked_code": masked, "client_id": client_id, "attempted_at": _now_iso()},
        )

        # Step 3: Resolve
        if settings.validator.mock:
            result = await self._resolve_mock(code)
        else:
            result = await self._resolve_upstream(code, masked, client_id)

        logger.info(
            "validation.result",
            extra={
                "masked_code": masked,
                "client_id": client_id,
                "valid": result.body.valid,
                "status_code": result.status_code,
                "resolved_at": _now_iso(),
            },
        )
        return result

    async def _resolve_mock(self, code: str) -> ValidationResult:
        """Resolve a code locally after an artificial delay.

        Valid codes deliberately get the same envelope shape as a live hit:
        "Eligible" plus ``name``/``referral_code`` metadata.
        """
        await asyncio.sleep(settings.validator.mock_delay_ms / 1000)

        valid = is_mock_valid(code)
        body = ValidateResponse(
            ok=True,
            valid=valid,
            message="Referral code is valid (mock)." if valid else "Referral code is invalid (mock).",
            eligibility=ELIGIBLE if valid else None,
            metadata=ReferralMetadata(name=MOCK_OWNER_NAME, referral_code=code) if valid else None,
            raw={"status": "found" if valid else "not_found", "code": code, "mock": True},
        )
        return ValidationResult(status_code=200, body=body)

    async def _resolve_upstream(self, code: str, masked: str, client_id: str) -> ValidationResult:
        """Look the code up once and normalize the webhook's answer."""
        try:
            response = await self.webhook.lookup(code)
        except UpstreamAppError as exc:
            logger.warning(
                "validation.upstream_failed",
                extra={
                    "masked_code": masked,
                    "client_id": client_id,
                    "error_code": exc.code,
                    "error_type": (exc.details or {}).get("error_type"),
                },
            )
            raise

        outcome = normalize(response.payload, response.status_code)
        body = ValidateResponse.model_validate(
            {**outcome.model_dump(), "ok": response.ok, "raw": response.payload}
        )
        # The envelope cannot be sent with a status that forbids a response body
        status_code = HTTP_BAD_GATEWAY if response.status_code in BODYLESS_STATUSES else response.status_code
        return ValidationResult(status_code=status_code, body=body)

    def _error_result(self, exc: AppError, client_id: str) -> ValidationResult:
        if not isinstance(exc, (RateLimitAppError, UpstreamAppError)):
            logger.info(
                "validation.rejected",
                extra={"error_code": exc.code, "client_id": client_id},
            )

        headers = build_rate_limit_headers(exc.details) if isinstance(exc, RateLimitAppError) else {}
        return ValidationResult(
            status_code=exc.http_status,
            body=ValidateResponse.failure(exc.message),
            headers=headers,
        )
