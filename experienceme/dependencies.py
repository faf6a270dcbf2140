"""
Dependency wiring for the FastAPI app.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

import requests
from fastapi import Depends, HTTPException, Request

from experienceme.auth import AuthClient, AuthError, AuthUser, GoTrueAuthClient, InMemoryAuthClient
from experienceme.config import get_settings
from experienceme.dashboards import SubmitGuard
from experienceme.db import (
    BusinessRecord,
    DataAccessError,
    DataClient,
    InMemoryDataClient,
    PostgresDataClient,
)
from experienceme.metrics import MetricsRecorder
from experienceme.navigation import (
    LOGIN_PATH,
    PageContext,
    build_page_context,
    dashboard_path_for_role,
)
from experienceme.storage import InMemoryStorageClient, S3StorageClient, StorageClient

logger = logging.getLogger(__name__)

ACCESS_TOKEN_KEY = "access_token"

_data_client: DataClient | None = None
_storage_client: StorageClient | None = None
_auth_client: AuthClient | None = None
_submit_guard: SubmitGuard | None = None


def get_data_client() -> DataClient:
    """
    Return a singleton data client so the in-memory store persists across requests.
    """
    global _data_client
    if _data_client:
        return _data_client

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.database_url:
        _data_client = InMemoryDataClient()
    else:
        _data_client = PostgresDataClient(settings.database_url)
    return _data_client


def get_storage_client() -> StorageClient:
    global _storage_client
    if _storage_client:
        return _storage_client

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.storage_endpoint:
        _storage_client = InMemoryStorageClient()
    else:
        _storage_client = S3StorageClient(
            bucket=settings.storage_bucket,
            region=settings.storage_region or "",
            endpoint=settings.storage_endpoint,
            access_key_id=settings.storage_access_key_id or "",
            secret_access_key=settings.storage_secret_access_key or "",
            public_base_url=settings.storage_public_base_url,
        )
    return _storage_client


def get_auth_client() -> AuthClient:
    global _auth_client
    if _auth_client:
        return _auth_client

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.supabase_url:
        _auth_client = InMemoryAuthClient()
    else:
        _auth_client = GoTrueAuthClient(
            settings.supabase_url, settings.supabase_anon_key or ""
        )
    return _auth_client


def get_submit_guard() -> SubmitGuard:
    global _submit_guard
    if _submit_guard is None:
        _submit_guard = SubmitGuard()
    return _submit_guard


def get_access_token(request: Request) -> Optional[str]:
    """Bearer token for API clients, else the token stored in the session cookie."""
    header = request.headers.get("Authorization", "")
    if header.lower().startswith("bearer "):
        return header[7:].strip() or None
    return request.session.get(ACCESS_TOKEN_KEY)


def get_current_user(
    request: Request, auth: AuthClient = Depends(get_auth_client)
) -> Optional[AuthUser]:
    token = get_access_token(request)
    if not token:
        return None
    try:
        return auth.get_user(token)
    except (AuthError, requests.RequestException) as exc:
        logger.warning("Could not resolve current user: %s", exc)
        return None


def get_page_context(
    user: Optional[AuthUser] = Depends(get_current_user),
    db: DataClient = Depends(get_data_client),
) -> PageContext:
    return build_page_context(db, user)


def require_user(context: PageContext = Depends(get_page_context)) -> PageContext:
    if not context.is_authenticated:
        raise HTTPException(
            status_code=401,
            detail={"message": "Please log in to continue.", "redirect": LOGIN_PATH},
        )
    return context


def require_role(*roles: str) -> Callable[..., PageContext]:
    """Dependency factory: signed in and holding one of `roles`."""

    def dependency(context: PageContext = Depends(require_user)) -> PageContext:
        if context.role not in roles:
            raise HTTPException(
                status_code=403,
                detail={
                    "message": "Access denied.",
                    "redirect": dashboard_path_for_role(context.role),
                },
            )
        return context

    return dependency


def get_current_business(
    context: PageContext = Depends(require_role("business")),
    db: DataClient = Depends(get_data_client),
) -> BusinessRecord:
    try:
        business = db.get_business_for_user(context.user_id)
    except DataAccessError as exc:
        logger.error("Business lookup failed for %s: %s", context.user_id, exc)
        raise HTTPException(
            status_code=503, detail="Something went wrong loading your business."
        ) from exc
    if business is None:
        raise HTTPException(status_code=404, detail="Business information not found")
    return business


def get_metrics_recorder(
    request: Request, db: DataClient = Depends(get_data_client)
) -> MetricsRecorder:
    settings = get_settings()
    return MetricsRecorder(
        db, request.session, cooldown_minutes=settings.metrics_cooldown_minutes
    )
