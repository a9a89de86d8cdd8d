"""HTTP routers mounted under ``/api/v1``."""

from src.api.routes.fiscal import router as fiscal_router

__all__ = ["fiscal_router"]
