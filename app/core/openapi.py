"""OpenAPI metadata and customization utilities.

Enriches the generated OpenAPI schema with tags metadata and documents the
rate limit response headers on the validation endpoint, keeping
documentation concerns out of the app factory.
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import FastAPI

TAGS_METADATA = [
    {
        "name": "Referral",
        "description": "Referral code validation against the lookup webhook.",
    },
    {
        "name": "Health",
        "description": "Liveness checks.",
    },
]

RATE_LIMIT_HEADERS = {
    "Retry-After": "Seconds until the client's window resets.",
    "X-RateLimit-Limit": "Maximum requests per window.",
    "X-RateLimit-Remaining": "Requests left in the current window.",
    "X-RateLimit-Reset": "UNIX time (seconds) when the window resets.",
}


def apply_openapi_customizations(app: FastAPI) -> None:
    """Patch FastAPI's OpenAPI generation to add tags and header docs."""

    original_openapi = app.openapi

    def custom_openapi() -> Dict[str, Any]:
        schema = original_openapi()

        tags = schema.setdefault("tags", [])
        existing_tag_names = {t.get("name") for t in tags}
        for tag in TAGS_METADATA:
            if tag["name"] not in existing_tag_names:
                tags.append(tag)

        operation = schema.get("paths", {}).get("/validate", {}).get("post")
        if isinstance(operation, dict):
            throttled = operation.setdefault("responses", {}).setdefault(
                "429", {"description": "Rate limit exceeded"}
            )
            throttled.setdefault(
                "headers",
                {
                    name: {"description": description, "schema": {"type": "string"}}
                    for name, description in RATE_LIMIT_HEADERS.items()
                },
            )

        return schema

    app.openapi = custom_openapi  # type: ignore[assignment]
