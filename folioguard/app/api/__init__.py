"""API endpoints package for FolioGuard."""

from folioguard.app.api.csrf import router as csrf_router
from folioguard.app.api.generate import router as generate_router
from folioguard.app.api.portfolio import router as portfolio_router
from folioguard.app.api.resume import router as resume_router

__all__ = [
    "csrf_router",
    "generate_router",
    "portfolio_router",
    "resume_router",
]
