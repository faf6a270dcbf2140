"""
Public HTTP routes: navigation, accounts, catalog, finder, experiences,
favorites, metrics events and the business waitlist.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import HTMLResponse

from experienceme import accounts, favorites, waitlist
from experienceme.auth import AuthClient
from experienceme.config import get_settings
from experienceme.db import DataAccessError, DataClient, ExperienceRecord
from experienceme.dependencies import (
    ACCESS_TOKEN_KEY,
    get_access_token,
    get_auth_client,
    get_data_client,
    get_metrics_recorder,
    get_page_context,
    require_user,
)
from experienceme.errors import ConflictError, ServiceUnavailableError, ValidationError
from experienceme.filters import (
    OCCASIONS,
    RECIPIENTS,
    TYPE_LABELS,
    TYPE_TO_CATEGORY_ID,
    BudgetBucket,
    FilterSelections,
    experiences_url_for,
    find_matching_experiences,
)
from experienceme.metrics import EventKind, MetricsRecorder
from experienceme.navigation import LOGIN_PATH, PageContext
from experienceme.render import (
    ResultState,
    render_detail,
    render_results,
    results_meta,
    to_card,
    to_detail,
)
from experienceme.schemas import (
    AuthResponse,
    CategoryOut,
    CountyOut,
    EventRequest,
    EventResponse,
    ExperienceCardOut,
    ExperienceDetailOut,
    ExperienceListResponse,
    FavoriteResponse,
    FinderOptionsResponse,
    FinderType,
    LoginRequest,
    NavResponse,
    RegisterRequest,
    StatusResponse,
    WaitlistRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter()

LOAD_ERROR = "Something went wrong loading experiences."
MATCHES_ERROR = "Something went wrong loading matches."
DETAIL_ERROR = "Something went wrong loading this experience."


def _selections(
    q: Optional[str] = None,
    category_id: Optional[str] = None,
    type: Optional[str] = None,
    county: Optional[str] = None,
    budget: Optional[str] = None,
) -> FilterSelections:
    return FilterSelections.from_params(
        {
            "q": q,
            "category_id": category_id,
            "type": type,
            "county": county,
            "budget": budget,
        }
    )


def _cards(experiences: list[ExperienceRecord], source: Optional[str] = None):
    return [ExperienceCardOut.model_validate(to_card(exp, source)) for exp in experiences]


# Session and accounts


@router.get("/nav", response_model=NavResponse)
def nav(context: PageContext = Depends(get_page_context)):
    return NavResponse(**context.as_dict())


@router.post("/auth/register", response_model=AuthResponse, status_code=201)
def register(
    payload: RegisterRequest,
    db: DataClient = Depends(get_data_client),
    auth: AuthClient = Depends(get_auth_client),
):
    form = accounts.RegistrationForm(**payload.model_dump())
    try:
        result = accounts.register(db, auth, form)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except (accounts.AccountSetupError, ServiceUnavailableError) as exc:
        raise HTTPException(status_code=503, detail=str(exc))
    return AuthResponse(
        user_id=result.user.user_id,
        email=result.profile.email,
        role=result.profile.role,
        redirect=LOGIN_PATH,
        message="Account created successfully! Please log in.",
    )


@router.post("/auth/login", response_model=AuthResponse)
def login(
    payload: LoginRequest,
    request: Request,
    db: DataClient = Depends(get_data_client),
    auth: AuthClient = Depends(get_auth_client),
):
    try:
        result = accounts.login(db, auth, payload.email, payload.password)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except ServiceUnavailableError as exc:
        raise HTTPException(status_code=503, detail=str(exc))
    request.session[ACCESS_TOKEN_KEY] = result.session.access_token
    return AuthResponse(
        user_id=result.session.user.user_id,
        email=result.session.user.email,
        role=result.role,
        redirect=result.redirect,
        message="Login successful! Redirecting...",
        access_token=result.session.access_token,
    )


@router.post("/auth/logout", response_model=StatusResponse)
def logout(request: Request, auth: AuthClient = Depends(get_auth_client)):
    accounts.logout(auth, get_access_token(request))
    request.session.pop(ACCESS_TOKEN_KEY, None)
    return StatusResponse(status="ok", redirect="/")


# Catalog and finder


@router.get("/categories", response_model=list[CategoryOut])
def list_categories(db: DataClient = Depends(get_data_client)):
    try:
        return [CategoryOut.model_validate(c) for c in db.list_categories()]
    except DataAccessError as exc:
        logger.error("Loading categories failed: %s", exc)
        raise HTTPException(status_code=503, detail="Could not load categories.")


@router.get("/counties", response_model=list[CountyOut])
def list_counties(db: DataClient = Depends(get_data_client)):
    try:
        return [CountyOut.model_validate(c) for c in db.list_counties()]
    except DataAccessError as exc:
        logger.error("Loading counties failed: %s", exc)
        raise HTTPException(status_code=503, detail="Could not load counties.")


@router.get("/finder/options", response_model=FinderOptionsResponse)
def finder_options():
    return FinderOptionsResponse(
        recipients=RECIPIENTS,
        occasions=OCCASIONS,
        types=[
            FinderType(label=label, key=key, category_id=TYPE_TO_CATEGORY_ID[key])
            for label, key in TYPE_LABELS.items()
        ],
        budgets=[bucket.value for bucket in BudgetBucket],
    )


@router.get("/finder/matches", response_model=ExperienceListResponse)
def finder_matches(
    selections: FilterSelections = Depends(_selections),
    db: DataClient = Depends(get_data_client),
):
    try:
        matches = find_matching_experiences(
            db, selections, limit=get_settings().finder_match_limit
        )
    except DataAccessError as exc:
        logger.error("Finder matches failed: %s", exc)
        raise HTTPException(status_code=503, detail=MATCHES_ERROR)
    return ExperienceListResponse(
        meta=results_meta(ResultState.READY, len(matches)),
        count=len(matches),
        experiences=_cards(matches, source="finder"),
        see_all_url=experiences_url_for(selections),
    )


# Experiences


@router.get("/experiences", response_model=ExperienceListResponse)
def search_experiences(
    selections: FilterSelections = Depends(_selections),
    db: DataClient = Depends(get_data_client),
):
    try:
        results = find_matching_experiences(db, selections)
    except DataAccessError as exc:
        logger.error("Experience search failed: %s", exc)
        raise HTTPException(status_code=503, detail=LOAD_ERROR)
    return ExperienceListResponse(
        meta=results_meta(ResultState.READY, len(results)),
        count=len(results),
        experiences=_cards(results, source="search" if selections.search_text else None),
    )


def _load_public_experience(db: DataClient, experience_id: str) -> ExperienceRecord:
    try:
        exp = db.get_experience(experience_id)
    except DataAccessError as exc:
        logger.error("Loading experience %s failed: %s", experience_id, exc)
        raise HTTPException(status_code=503, detail=DETAIL_ERROR)
    if exp is None:
        raise HTTPException(status_code=404, detail="Experience not found")
    return exp


@router.get("/experiences/{experience_id}", response_model=ExperienceDetailOut)
def get_experience(
    experience_id: str,
    src: Optional[str] = Query(default=None, max_length=64),
    context: PageContext = Depends(get_page_context),
    db: DataClient = Depends(get_data_client),
    recorder: MetricsRecorder = Depends(get_metrics_recorder),
):
    exp = _load_public_experience(db, experience_id)
    recorder.record_once(
        exp.experience_id,
        EventKind.VIEW,
        source=src,
        user_id=context.user_id,
        business_id=exp.business_id,
    )
    detail = ExperienceDetailOut.model_validate(to_detail(exp))
    if context.is_authenticated:
        try:
            detail.is_favorited = favorites.is_favorited(
                db, context.user_id, exp.experience_id
            )
        except DataAccessError as exc:
            logger.warning("Favorite state unavailable: %s", exc)
    return detail


@router.post("/experiences/{experience_id}/favorite", response_model=FavoriteResponse)
def toggle_favorite(
    experience_id: str,
    context: PageContext = Depends(require_user),
    db: DataClient = Depends(get_data_client),
):
    exp = _load_public_experience(db, experience_id)
    try:
        state = favorites.toggle_favorite(db, context.user_id, exp.experience_id)
    except DataAccessError as exc:
        logger.error("Favorite toggle failed: %s", exc)
        raise HTTPException(status_code=503, detail="Error updating favourites.")
    return FavoriteResponse.model_validate(state)


@router.post("/experiences/{experience_id}/events", response_model=EventResponse)
def record_event(
    experience_id: str,
    payload: EventRequest,
    context: PageContext = Depends(get_page_context),
    db: DataClient = Depends(get_data_client),
    recorder: MetricsRecorder = Depends(get_metrics_recorder),
):
    try:
        exp = db.get_experience(experience_id)
    except DataAccessError as exc:
        # Metrics never block the visitor.
        logger.warning("Event for %s dropped: %s", experience_id, exc)
        return EventResponse(recorded=False)
    if exp is None:
        raise HTTPException(status_code=404, detail="Experience not found")
    recorded = recorder.record_once(
        exp.experience_id,
        EventKind(payload.kind),
        source=payload.src,
        user_id=context.user_id,
        business_id=exp.business_id,
    )
    return EventResponse(recorded=recorded)


@router.get("/me/favorites", response_model=ExperienceListResponse)
def my_favorites(
    context: PageContext = Depends(require_user),
    db: DataClient = Depends(get_data_client),
):
    try:
        items = favorites.list_favorites(db, context.user_id)
    except DataAccessError as exc:
        logger.error("Loading favorites failed: %s", exc)
        raise HTTPException(status_code=503, detail="Error loading favorites")
    return ExperienceListResponse(
        meta=results_meta(ResultState.READY, len(items)),
        count=len(items),
        experiences=_cards(items),
    )


# Waitlist


@router.post("/waitlist", response_model=StatusResponse, status_code=201)
def join_waitlist(payload: WaitlistRequest, db: DataClient = Depends(get_data_client)):
    try:
        waitlist.join_waitlist(db, waitlist.WaitlistForm(**payload.model_dump()))
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except ConflictError as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    except DataAccessError as exc:
        logger.error("Waitlist insert failed: %s", exc)
        raise HTTPException(
            status_code=503,
            detail="Something went wrong submitting the form. Please try again.",
        )
    return StatusResponse(status="ok", message=waitlist.SUCCESS_MESSAGE)


# HTML fragments


@router.get("/fragments/finder-matches", response_class=HTMLResponse)
def finder_matches_fragment(
    selections: FilterSelections = Depends(_selections),
    db: DataClient = Depends(get_data_client),
):
    try:
        matches = find_matching_experiences(
            db, selections, limit=get_settings().finder_match_limit
        )
    except DataAccessError as exc:
        logger.error("Finder matches failed: %s", exc)
        return render_results(state=ResultState.ERROR, layout="matches")
    return render_results(matches, layout="matches", source="finder")


@router.get("/fragments/experiences", response_class=HTMLResponse)
def experiences_fragment(
    selections: FilterSelections = Depends(_selections),
    db: DataClient = Depends(get_data_client),
):
    try:
        results = find_matching_experiences(db, selections)
    except DataAccessError as exc:
        logger.error("Experience search failed: %s", exc)
        return render_results(state=ResultState.ERROR)
    return render_results(results)


@router.get("/fragments/experiences/{experience_id}", response_class=HTMLResponse)
def experience_detail_fragment(
    experience_id: str,
    src: Optional[str] = Query(default=None, max_length=64),
    context: PageContext = Depends(get_page_context),
    db: DataClient = Depends(get_data_client),
    recorder: MetricsRecorder = Depends(get_metrics_recorder),
):
    try:
        exp = db.get_experience(experience_id)
    except DataAccessError as exc:
        logger.error("Loading experience %s failed: %s", experience_id, exc)
        return HTMLResponse(render_detail(None, error=DETAIL_ERROR))
    if exp is None:
        return HTMLResponse(
            render_detail(None, error="Experience not found."), status_code=404
        )
    recorder.record_once(
        exp.experience_id,
        EventKind.VIEW,
        source=src,
        user_id=context.user_id,
        business_id=exp.business_id,
    )
    return render_detail(exp)
