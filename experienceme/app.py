"""
FastAPI application entry point for the discovery service.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI
from starlette.middleware.sessions import SessionMiddleware

from experienceme.config import get_settings
from experienceme.dashboard_routes import admin_router, business_router
from experienceme.routes import router


def create_app() -> FastAPI:
    settings = get_settings()
    logging.basicConfig(level=settings.log_level.upper())
    app = FastAPI(title="ExperienceMe Discovery API", version="0.1.0")
    # Per-browser state: access token, visitor id and event de-dup timestamps.
    app.add_middleware(
        SessionMiddleware,
        secret_key=settings.session_secret,
        session_cookie="experienceme_session",
        max_age=settings.session_max_age,
        same_site="lax",
    )
    app.include_router(router, prefix=settings.api_prefix)
    app.include_router(business_router, prefix=settings.api_prefix)
    app.include_router(admin_router, prefix=settings.api_prefix)
    return app


app = create_app()
