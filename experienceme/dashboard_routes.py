"""
HTTP routes for the business and admin dashboards.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile

from experienceme import analytics, dashboards, waitlist
from experienceme.config import get_settings
from experienceme.dashboards import ExperienceDraft, ImageUpload, ProfileForm, SubmitGuard
from experienceme.db import BusinessRecord, DataAccessError, DataClient
from experienceme.dependencies import (
    get_current_business,
    get_data_client,
    get_storage_client,
    get_submit_guard,
    require_role,
)
from experienceme.errors import ConflictError, NotFoundError, ValidationError
from experienceme.navigation import PageContext
from experienceme.schemas import (
    AdminExperienceOut,
    AdminStatsResponse,
    BusinessMeResponse,
    BusinessOut,
    ManagedExperienceOut,
    MetricsResponse,
    RejectRequest,
    StatusResponse,
    WaitlistOverviewResponse,
)
from experienceme.storage import StorageClient, StorageError

logger = logging.getLogger(__name__)

business_router = APIRouter(prefix="/business")
admin_router = APIRouter(prefix="/admin")


async def _read_uploads(files: list[UploadFile]) -> list[ImageUpload]:
    uploads = []
    for file in files:
        if not file.filename:
            continue
        uploads.append(
            ImageUpload(
                filename=file.filename,
                content_type=file.content_type or "",
                data=await file.read(),
            )
        )
    return uploads


def _handle_service_errors(exc: Exception, action: str) -> HTTPException:
    if isinstance(exc, ValidationError):
        return HTTPException(status_code=400, detail=str(exc))
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, ConflictError):
        return HTTPException(status_code=409, detail=str(exc))
    logger.error("%s failed: %s", action, exc)
    return HTTPException(status_code=503, detail=f"Error {action}. Please try again.")


# Business dashboard


@business_router.get("/me", response_model=BusinessMeResponse)
def business_me(
    context: PageContext = Depends(require_role("business")),
    business: BusinessRecord = Depends(get_current_business),
):
    return BusinessMeResponse(
        user_id=context.user_id,
        email=context.user.email,
        business=BusinessOut.model_validate(business),
    )


@business_router.put("/profile", response_model=BusinessOut)
async def update_profile(
    website_url: Optional[str] = Form(None),
    location_text: Optional[str] = Form(None),
    business_description: Optional[str] = Form(None),
    logo: Optional[UploadFile] = File(None),
    business: BusinessRecord = Depends(get_current_business),
    db: DataClient = Depends(get_data_client),
    storage: StorageClient = Depends(get_storage_client),
):
    logo_uploads = await _read_uploads([logo] if logo else [])
    try:
        updated = dashboards.update_business_profile(
            db,
            storage,
            business,
            ProfileForm(
                website_url=website_url,
                location_text=location_text,
                business_description=business_description,
            ),
            logo_uploads[0] if logo_uploads else None,
        )
    except (ValidationError, NotFoundError, DataAccessError, StorageError) as exc:
        raise _handle_service_errors(exc, "saving profile")
    return BusinessOut.model_validate(updated)


@business_router.get("/experiences", response_model=list[ManagedExperienceOut])
def business_experiences(
    status: str = Query(default="all"),
    business: BusinessRecord = Depends(get_current_business),
    db: DataClient = Depends(get_data_client),
):
    try:
        items = dashboards.list_business_experiences(db, business, status)
    except (ValidationError, DataAccessError) as exc:
        raise _handle_service_errors(exc, "loading experiences")
    return [ManagedExperienceOut.model_validate(exp) for exp in items]


async def _submit(
    *,
    experience_id: Optional[str],
    draft: ExperienceDraft,
    images: list[UploadFile],
    keep_image_urls: list[str],
    business: BusinessRecord,
    db: DataClient,
    storage: StorageClient,
    guard: SubmitGuard,
) -> ManagedExperienceOut:
    settings = get_settings()
    uploads = await _read_uploads(images)
    try:
        saved = dashboards.submit_experience(
            db,
            storage,
            guard,
            business,
            draft,
            uploads,
            experience_id=experience_id,
            keep_image_urls=keep_image_urls,
            max_images=settings.max_upload_images,
            max_image_bytes=settings.max_upload_bytes,
        )
    except (
        ValidationError,
        NotFoundError,
        ConflictError,
        DataAccessError,
        StorageError,
    ) as exc:
        raise _handle_service_errors(exc, "saving experience")
    return ManagedExperienceOut.model_validate(saved)


@business_router.post(
    "/experiences", response_model=ManagedExperienceOut, status_code=201
)
async def create_experience(
    title: str = Form(...),
    short_description: str = Form(...),
    event_description: str = Form(...),
    category_id: str = Form(...),
    county: str = Form(...),
    status: str = Form("draft"),
    min_price: Optional[float] = Form(None),
    max_price: Optional[float] = Form(None),
    price_tier: Optional[str] = Form(None),
    booking_url: Optional[str] = Form(None),
    duration_minutes: Optional[int] = Form(None),
    what_you_do: Optional[str] = Form(None),
    whats_included: Optional[str] = Form(None),
    images: list[UploadFile] = File(default=[]),
    business: BusinessRecord = Depends(get_current_business),
    db: DataClient = Depends(get_data_client),
    storage: StorageClient = Depends(get_storage_client),
    guard: SubmitGuard = Depends(get_submit_guard),
):
    draft = ExperienceDraft(
        title=title,
        short_description=short_description,
        event_description=event_description,
        category_id=category_id,
        county=county,
        status=status,
        min_price=min_price,
        max_price=max_price,
        price_tier=price_tier,
        booking_url=booking_url,
        duration_minutes=duration_minutes,
        what_you_do=what_you_do,
        whats_included=whats_included,
    )
    return await _submit(
        experience_id=None,
        draft=draft,
        images=images,
        keep_image_urls=[],
        business=business,
        db=db,
        storage=storage,
        guard=guard,
    )


@business_router.put("/experiences/{experience_id}", response_model=ManagedExperienceOut)
async def update_experience(
    experience_id: str,
    title: str = Form(...),
    short_description: str = Form(...),
    event_description: str = Form(...),
    category_id: str = Form(...),
    county: str = Form(...),
    status: str = Form("draft"),
    min_price: Optional[float] = Form(None),
    max_price: Optional[float] = Form(None),
    price_tier: Optional[str] = Form(None),
    booking_url: Optional[str] = Form(None),
    duration_minutes: Optional[int] = Form(None),
    what_you_do: Optional[str] = Form(None),
    whats_included: Optional[str] = Form(None),
    keep_image_urls: list[str] = Form(default=[]),
    images: list[UploadFile] = File(default=[]),
    business: BusinessRecord = Depends(get_current_business),
    db: DataClient = Depends(get_data_client),
    storage: StorageClient = Depends(get_storage_client),
    guard: SubmitGuard = Depends(get_submit_guard),
):
    draft = ExperienceDraft(
        title=title,
        short_description=short_description,
        event_description=event_description,
        category_id=category_id,
        county=county,
        status=status,
        min_price=min_price,
        max_price=max_price,
        price_tier=price_tier,
        booking_url=booking_url,
        duration_minutes=duration_minutes,
        what_you_do=what_you_do,
        whats_included=whats_included,
    )
    return await _submit(
        experience_id=experience_id,
        draft=draft,
        images=images,
        keep_image_urls=keep_image_urls,
        business=business,
        db=db,
        storage=storage,
        guard=guard,
    )


@business_router.delete("/experiences/{experience_id}", response_model=StatusResponse)
def delete_experience(
    experience_id: str,
    business: BusinessRecord = Depends(get_current_business),
    db: DataClient = Depends(get_data_client),
):
    try:
        dashboards.delete_experience(db, business, experience_id)
    except (NotFoundError, DataAccessError) as exc:
        raise _handle_service_errors(exc, "deleting experience")
    return StatusResponse(status="ok", message="Experience deleted successfully")


@business_router.get("/metrics", response_model=MetricsResponse)
def business_metrics(
    days: int = Query(default=30, ge=1, le=365),
    experience_id: Optional[str] = Query(default=None),
    business: BusinessRecord = Depends(get_current_business),
    db: DataClient = Depends(get_data_client),
):
    try:
        snapshot = analytics.business_snapshot(
            db, business.business_id, days=days, experience_id=experience_id
        )
    except DataAccessError as exc:
        raise _handle_service_errors(exc, "loading metrics")
    return MetricsResponse.model_validate(snapshot)


# Admin dashboard


@admin_router.get("/stats", response_model=AdminStatsResponse)
def admin_stats(
    _: PageContext = Depends(require_role("admin")),
    db: DataClient = Depends(get_data_client),
):
    try:
        stats = dashboards.admin_stats(db)
    except DataAccessError as exc:
        raise _handle_service_errors(exc, "loading stats")
    return AdminStatsResponse.model_validate(stats)


@admin_router.get("/experiences", response_model=list[AdminExperienceOut])
def admin_experiences(
    status: str = Query(default="pending"),
    _: PageContext = Depends(require_role("admin")),
    db: DataClient = Depends(get_data_client),
):
    try:
        items = dashboards.admin_experiences(db, status)
    except (ValidationError, DataAccessError) as exc:
        raise _handle_service_errors(exc, "loading experiences")
    return [AdminExperienceOut.model_validate(item) for item in items]


@admin_router.post(
    "/experiences/{experience_id}/approve", response_model=ManagedExperienceOut
)
def approve_experience(
    experience_id: str,
    _: PageContext = Depends(require_role("admin")),
    db: DataClient = Depends(get_data_client),
):
    try:
        updated = dashboards.set_experience_status(db, experience_id, "approved")
    except (ValidationError, NotFoundError, DataAccessError) as exc:
        raise _handle_service_errors(exc, "approving experience")
    return ManagedExperienceOut.model_validate(updated)


@admin_router.post(
    "/experiences/{experience_id}/reject", response_model=ManagedExperienceOut
)
def reject_experience(
    experience_id: str,
    payload: RejectRequest,
    _: PageContext = Depends(require_role("admin")),
    db: DataClient = Depends(get_data_client),
):
    try:
        updated = dashboards.set_experience_status(
            db, experience_id, "rejected", reason=payload.reason
        )
    except (ValidationError, NotFoundError, DataAccessError) as exc:
        raise _handle_service_errors(exc, "rejecting experience")
    return ManagedExperienceOut.model_validate(updated)


@admin_router.get("/waitlist", response_model=WaitlistOverviewResponse)
def admin_waitlist(
    _: PageContext = Depends(require_role("admin")),
    db: DataClient = Depends(get_data_client),
):
    try:
        overview = waitlist.waitlist_overview(db)
    except DataAccessError as exc:
        raise _handle_service_errors(exc, "loading waitlist")
    return WaitlistOverviewResponse.model_validate(overview)
