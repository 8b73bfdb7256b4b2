"""API Routers Package.

Routers:
- sync.py: proposal sync, promotion, integrity, orphan scan, org audit, log

Usage in main.py:
    from api.routers import sync_router

    app.include_router(sync_router, prefix="/sync", tags=["sync"])
"""

from .sync import router as sync_router

__all__ = ["sync_router"]
