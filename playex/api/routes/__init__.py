from __future__ import annotations

from playex.api.routes.health import router as health_router

__all__ = ["health_router"]
