"""Pydantic schemas for referral validation requests and responses."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class ValidateRequest(BaseModel):
    """Request body accepted by ``POST /validate`` (documentation only).

    The endpoint reads the raw body itself so malformed JSON and wrong types
    surface as envelope messages instead of FastAPI's 422 responses.
    """

    code: str = Field(
        ...,
        description="Referral code: letters, numbers, dashes and underscores.",
        examples=["ALICE-2024_7"],
    )


class ReferralMetadata(BaseModel):
    """Details about the referral owner, as far as the webhook returned them."""

    name: str | None = Field(default=None, description="Referrer's (first) name.")
    email: str | None = Field(default=None, description="Referrer's e-mail address.")
    phone: str | None = Field(default=None, description="Referrer's phone number.")
    referral_code: str | None = Field(
        default=None, description="Referral code as stored upstream."
    )
    usage: int | float | None = Field(
        default=None, description="How many times the code has been used."
    )
    row_number: int | float | None = Field(
        default=None, description="Row index of the code in the upstream sheet."
    )

    @property
    def has_user_details(self) -> bool:
        return bool(self.name or self.email or self.phone)


class ValidationOutcome(BaseModel):
    """Canonical result derived from one upstream (status, payload) pair.

    ``valid`` is tri-state: ``True`` (code found), ``False`` (code not
    found) or ``None`` (upstream answer could not be classified).
    """

    valid: bool | None = Field(
        ..., description="True if found, False if not found, null if indeterminate."
    )
    message: str | None = Field(default=None, description="Human-readable result.")
    eligibility: str | None = Field(
        default=None,
        description="'Eligible' or 'Details unavailable'; only set for valid codes.",
    )
    metadata: ReferralMetadata | None = Field(
        default=None, description="Referral owner details; omitted when none were found."
    )


class ValidateResponse(ValidationOutcome):
    """Uniform response envelope for every ``POST /validate`` outcome."""

    ok: bool = Field(..., description="Whether the request succeeded end to end.")
    raw: Any = Field(
        default=None, description="Unmodified upstream payload, for debugging."
    )

    @classmethod
    def failure(cls, message: str) -> "ValidateResponse":
        """Build the envelope used for every short-circuited request."""
        return cls(ok=False, valid=None, message=message)

    def to_content(self) -> dict[str, Any]:
        """Serialize for the wire: optional fields omitted, ``valid`` always present."""
        content: dict[str, Any] = {"ok": self.ok, "valid": self.valid}
        content.update(self.model_dump(exclude_none=True, exclude={"ok", "valid", "raw"}))
        # raw is passed through as-is, nested nulls included
        if self.raw is not None:
            content["raw"] = self.raw
        return content


class MessageResponse(BaseModel):
    """Plain message body (e.g., method not allowed)."""

    message: str
