"""
Pydantic schemas for the discovery API.
"""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class ORMModel(BaseModel):
    """Response models built straight from service-layer dataclasses."""

    model_config = ConfigDict(from_attributes=True)


# Session and accounts


class NavResponse(BaseModel):
    authenticated: bool
    user_id: Optional[str] = None
    email: Optional[str] = None
    role: Optional[str] = None
    nav: Literal["guest", "user", "business"]
    dashboard_url: Optional[str] = None


class RegisterRequest(BaseModel):
    full_name: str = Field(..., max_length=200)
    email: str = Field(..., max_length=320)
    password: str
    confirm_password: str
    role: str = "user"


class LoginRequest(BaseModel):
    email: str = Field(..., max_length=320)
    password: str


class AuthResponse(BaseModel):
    user_id: str
    email: str
    role: Optional[str] = None
    redirect: str
    message: str
    access_token: Optional[str] = None


class StatusResponse(BaseModel):
    status: Literal["ok"]
    message: Optional[str] = None
    redirect: Optional[str] = None


# Catalog and finder


class CategoryOut(ORMModel):
    category_id: str
    category_name: str
    category_image_url: Optional[str] = None


class CountyOut(ORMModel):
    county_id: str
    county_image_url: Optional[str] = None


class FinderType(BaseModel):
    label: str
    key: str
    category_id: str


class FinderOptionsResponse(BaseModel):
    recipients: list[str]
    occasions: list[str]
    types: list[FinderType]
    budgets: list[str]


# Experiences


class ExperienceCardOut(ORMModel):
    experience_id: str
    title: str
    county: str
    business_name: str
    excerpt: str
    price_text: str
    from_price: str
    image_url: str
    detail_url: str


class ExperienceListResponse(BaseModel):
    meta: str
    count: int
    experiences: list[ExperienceCardOut]
    see_all_url: Optional[str] = None


class ExperienceDetailOut(ORMModel):
    experience_id: str
    title: str
    county: str
    description: str
    meta_text: str
    badge_text: str
    host_name: str
    host_location: str
    host_description: str
    host_logo_url: Optional[str] = None
    from_price: str
    price_tier: str
    price_text: str
    booking_url: Optional[str] = None
    main_image_url: str
    thumbnails: list[str]
    what_you_do: list[str]
    whats_included: list[str]
    category_name: Optional[str] = None
    is_favorited: Optional[bool] = None


class FavoriteResponse(ORMModel):
    experience_id: str
    is_favorited: bool
    favorite_ids: list[str]


class EventRequest(BaseModel):
    kind: Literal["view", "booking_click"]
    src: Optional[str] = Field(default=None, max_length=64)


class EventResponse(BaseModel):
    recorded: bool


# Waitlist


class WaitlistRequest(BaseModel):
    contact_name: str = Field(..., max_length=200)
    contact_email: str = Field(..., max_length=320)
    business_name: str = Field(..., max_length=200)
    website: str = Field(..., max_length=500)
    county: str = Field(..., max_length=100)
    category_id: str = Field(..., max_length=64)
    challenges_getting_bookings: str = Field(..., max_length=4000)


class WaitlistEntryOut(ORMModel):
    contact_name: str
    contact_email: str
    business_name: str
    website: str
    county: str
    category_id: str
    category_name: Optional[str] = None
    challenges_getting_bookings: str
    status: str
    created_at: float


class WaitlistOverviewResponse(ORMModel):
    total: int
    latest: list[WaitlistEntryOut]


# Business dashboard


class BusinessOut(ORMModel):
    business_id: str
    business_name: str
    business_email: Optional[str] = None
    website_url: Optional[str] = None
    location_text: Optional[str] = None
    business_description: Optional[str] = None
    business_image_url: Optional[str] = None
    status: str


class BusinessMeResponse(BaseModel):
    user_id: str
    email: str
    business: BusinessOut


class ImageOut(ORMModel):
    image_url: str
    is_primary: bool
    display_order: Optional[int] = None


class ManagedExperienceOut(ORMModel):
    experience_id: str
    title: str
    short_description: Optional[str] = None
    event_description: Optional[str] = None
    county: Optional[str] = None
    duration_minutes: Optional[int] = None
    min_price: Optional[float] = None
    max_price: Optional[float] = None
    price_tier: Optional[str] = None
    status: str
    is_published: bool
    booking_url: Optional[str] = None
    what_you_do: Optional[str] = None
    whats_included: Optional[str] = None
    category_id: Optional[str] = None
    category_name: Optional[str] = None
    images: list[ImageOut]
    created_at: float
    updated_at: float


class FunnelStepOut(ORMModel):
    label: str
    percent: float


class DailySeriesOut(ORMModel):
    days: list[str]
    views: list[int]
    saves: list[int]
    booking_clicks: list[int]


class ReferrerOut(ORMModel):
    source: str
    label: str
    count: int


class MetricsResponse(ORMModel):
    days: int
    experience_id: Optional[str] = None
    views: int
    saves: int
    booking_clicks: int
    funnel: list[FunnelStepOut]
    daily: DailySeriesOut
    referrers: list[ReferrerOut]


# Admin dashboard


class AdminStatsResponse(ORMModel):
    total_experiences: int
    total_businesses: int
    total_users: int
    pending: int


class AdminExperienceOut(ORMModel):
    experience_id: str
    title: str
    status: str
    status_label: str
    business_name: str
    county: str
    category_name: str
    meta: str
    excerpt: str
    price_text: str
    image_url: str
    booking_url: Optional[str] = None


class RejectRequest(BaseModel):
    reason: str = Field(..., max_length=1000)
