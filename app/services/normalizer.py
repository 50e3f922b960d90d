"""Normalization of referral webhook responses.

The webhook is a black box: its payload may be any JSON value and its fields
may be missing, null, blank or of the wrong type. ``normalize`` maps whatever
comes back onto ``ValidationOutcome`` without ever raising; unusable values
are simply treated as absent.
"""

from __future__ import annotations

import math
from typing import Any, Mapping

from app.schemas.validation import ReferralMetadata, ValidationOutcome

HTTP_OK = 200
HTTP_NOT_FOUND = 404

ELIGIBLE = "Eligible"
DETAILS_UNAVAILABLE = "Details unavailable"

MESSAGE_VALID = "Referral code is valid."
MESSAGE_VALID_NO_DETAILS = "Referral code is valid, but no user details were returned."
MESSAGE_NOT_FOUND = "Referral code not found."
MESSAGE_UNEXPECTED = "Unexpected response from referral service."

Number = int | float


def optional_str(value: Any) -> str | None:
    """Return the string unchanged, or None for non-strings and blank strings."""
    if not isinstance(value, str) or not value.strip():
        return None
    return value


def optional_number(value: Any) -> Number | None:
    """Return a finite number from a native number or a numeric string.

    Examples:
        >>> optional_number(3)
        3
        >>> optional_number(" 12 ")
        12
        >>> optional_number("2.5")
        2.5
        >>> optional_number("abc") is None
        True
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return value if math.isfinite(value) else None
    if not isinstance(value, str) or not value.strip():
        return None

    text = value.strip()
    # Python's numeric literals allow digit separators; JSON-style numbers do not.
    if "_" in text:
        return None
    try:
        return int(text)
    except ValueError:
        pass
    try:
        parsed = float(text)
    except ValueError:
        return None
    return parsed if math.isfinite(parsed) else None


def first_str(payload: Mapping[str, Any], *keys: str) -> str | None:
    """Return the first usable string among ``keys`` (fallback chain)."""
    for key in keys:
        found = optional_str(payload.get(key))
        if found is not None:
            return found
    return None


def classify_status(status: int) -> bool | None:
    """Map the upstream HTTP status to the tri-state ``valid`` flag."""
    if status == HTTP_OK:
        return True
    if status == HTTP_NOT_FOUND:
        return False
    return None


def extract_metadata(payload: Mapping[str, Any]) -> ReferralMetadata | None:
    """Collect well-formed owner details; None when nothing usable is present."""
    fields = {
        "name": first_str(payload, "first_name", "name"),
        "email": optional_str(payload.get("email")),
        "phone": optional_str(payload.get("phone")),
        "referral_code": first_str(payload, "referral_code", "code"),
        "usage": optional_number(payload.get("usage")),
        "row_number": optional_number(payload.get("row_number")),
    }
    present = {key: value for key, value in fields.items() if value is not None}
    return ReferralMetadata(**present) if present else None


def fallback_message(valid: bool | None, has_user_details: bool) -> str:
    if valid is True:
        return MESSAGE_VALID if has_user_details else MESSAGE_VALID_NO_DETAILS
    if valid is False:
        return MESSAGE_NOT_FOUND
    return MESSAGE_UNEXPECTED


def normalize(raw: Any, status: int) -> ValidationOutcome:
    """Map an upstream payload and HTTP status to a ValidationOutcome.

    Args:
        raw: Decoded webhook body; any JSON value (non-objects count as empty).
        status: HTTP status returned by the webhook.

    Returns:
        ValidationOutcome with ``valid`` from the status, optional owner
        metadata, an eligibility label for valid codes, and a message (the
        upstream one when provided, otherwise a fixed fallback).
    """
    payload: Mapping[str, Any] = raw if isinstance(raw, Mapping) else {}

    valid = classify_status(status)
    metadata = extract_metadata(payload)
    has_user_details = metadata is not None and metadata.has_user_details

    eligibility = None
    if valid is True:
        eligibility = ELIGIBLE if has_user_details else DETAILS_UNAVAILABLE

    return ValidationOutcome(
        valid=valid,
        message=optional_str(payload.get("message")) or fallback_message(valid, has_user_details),
        eligibility=eligibility,
        metadata=metadata,
    )
