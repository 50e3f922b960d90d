from __future__ import annotations

"""Application factory for FastAPI app.

Centralizes app construction (metadata, middleware, handlers, routers) so
tests and the ASGI entrypoint build the exact same application.
"""

from fastapi import FastAPI

from app.api.routes import health_router, validate_router
from app.core.config import settings
from app.core.exception_handlers import setup_exception_handlers
from app.core.logging import configure_logging
from app.core.middleware import request_id_middleware
from app.core.openapi import apply_openapi_customizations


def create_app() -> FastAPI:
    """Create and configure the FastAPI application instance.

    Returns:
        Configured FastAPI app with middleware, handlers, routers and docs.
    """
    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log)

    app = FastAPI(
        title="Referral Validator API",
        description=(
            "Validates referral codes against the referral lookup webhook and "
            "returns a uniform envelope: ok, valid (true/false/null), message, "
            "eligibility, referral owner metadata and the raw webhook payload. "
            "Requests are rate limited per client and referral codes are only "
            "ever logged in masked form."
        ),
        version="0.1.0",
        license_info={
            "name": "MIT License",
            "url": "https://opensource.org/licenses/MIT",
        },
    )

    # Middleware
    app.middleware("http")(request_id_middleware)

    # Exception handlers
    setup_exception_handlers(app)

    # Routers
    app.include_router(validate_router)
    app.include_router(health_router)

    # OpenAPI customizations (tags metadata)
    apply_openapi_customizations(app)

    return app
