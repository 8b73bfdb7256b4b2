"""FastAPI service for proposal sync."""
from __future__ import annotations

import logging
import os
from datetime import datetime, timezone

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from proposal_sync.runtime import SyncComponents

from api.dependencies import get_components
from api.routers import sync_router

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Proposal Sync API",
    version="0.1.0",
    description="Keeps relational proposals and their document mirrors consistent.",
)

ALLOWED_ORIGINS = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
    os.getenv("PSYNC_ALLOWED_FRONTEND", "").strip(),
]
origins = [origin for origin in ALLOWED_ORIGINS if origin]

if origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

app.include_router(sync_router, prefix="/sync", tags=["sync"])


@app.get("/health")
def health_check(components: SyncComponents = Depends(get_components)) -> dict:
    """Health check endpoint with store configuration status."""
    return {
        "status": "ok",
        "time": datetime.now(timezone.utc).isoformat(),
        "environment": os.getenv("PSYNC_ENV", "local"),
        "services": {
            "relational": "configured",
            "document": "degraded" if components.degraded else "configured",
        },
    }
