from __future__ import annotations

from app.api.routes.health import router as health_router
from app.api.routes.validate import router as validate_router

__all__ = ["health_router", "validate_router"]
