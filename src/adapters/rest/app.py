"""
FastAPI application: REST adapter for the Smart Recipe Generator.

Usage:
    python run_api.py

Or directly:
    uvicorn adapters.rest.app:app --host 0.0.0.0 --port 8000 --reload
"""

from __future__ import annotations

import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Ensure src/ is on sys.path when invoked via uvicorn directly
_src_dir = Path(__file__).resolve().parent.parent.parent
if str(_src_dir) not in sys.path:
    sys.path.insert(0, str(_src_dir))

from infrastructure.config import Settings
from factory import ServiceFactory
from adapters.rest.dependencies import set_factory
from adapters.rest.errors import register_error_handlers
from adapters.rest.routers import auth, chat, sessions, payments, profile

API_VERSION = "1.0.0"


def create_app(factory: Optional[ServiceFactory] = None) -> FastAPI:
    """Build the app. Tests pass a factory with fake providers injected."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Initialize ServiceFactory on startup."""
        active = factory or ServiceFactory(Settings.from_env())
        await active.initialize()
        set_factory(active)
        yield
        # No teardown needed: aiosqlite connections are per-operation

    app = FastAPI(
        title="Smart Recipe Generator",
        version=API_VERSION,
        description="Credit-metered AI recipe chat with Stripe and PhonePe billing.",
        lifespan=lifespan,
    )

    # CORS: permissive for development; tighten allowed_origins in production
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_error_handlers(app)

    app.include_router(auth.router)
    app.include_router(profile.router)
    app.include_router(chat.router)
    app.include_router(sessions.router)
    app.include_router(payments.router)

    @app.get("/health", tags=["health"])
    async def health():
        return {"status": "ok", "version": API_VERSION}

    return app


app = create_app()
