"""
Display formatting for experiences: cards, the detail page and result states.

Everything here is pure: records in, view models or HTML out. HTML goes through
Jinja2 with autoescaping, so user-supplied text is always rendered as text.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Iterable, Optional
from urllib.parse import quote, urlencode

from jinja2 import Environment, PackageLoader, select_autoescape

from experienceme.db import ExperienceRecord, ImageRecord, sort_images

PLACEHOLDER_IMAGE_URL = "https://via.placeholder.com/300x200"
HERO_PLACEHOLDER_URL = "https://via.placeholder.com/1200x800?text={title}"
CARD_EXCERPT_LENGTH = 110
MAX_THUMBNAILS = 4

_BULLET_PREFIX = re.compile(r"^[-•]\s*")


class ResultState(StrEnum):
    """The four states a result container can be in."""

    LOADING = "loading"
    EMPTY = "empty"
    ERROR = "error"
    READY = "ready"


_STATE_MESSAGES = {
    "grid": {
        ResultState.LOADING: "Loading experiences...",
        ResultState.EMPTY: "No experiences found",
        ResultState.ERROR: "Something went wrong loading experiences.",
    },
    "matches": {
        ResultState.LOADING: "Loading matches...",
        ResultState.EMPTY: "No matches yet — try different options.",
        ResultState.ERROR: "Something went wrong loading matches.",
    },
}


def state_message(state: ResultState, layout: str = "grid") -> str:
    return _STATE_MESSAGES[layout].get(state, "")


# Formatting helpers


def primary_image_url(
    images: Iterable[ImageRecord], placeholder: str = PLACEHOLDER_IMAGE_URL
) -> str:
    """The primary image, else the first by display order, else the placeholder."""
    ordered = sort_images(images)
    chosen = next((img for img in ordered if img.is_primary), None)
    if chosen is None and ordered:
        chosen = ordered[0]
    url = safe_url(chosen.image_url if chosen else None)
    return url or placeholder


def to_money(value: Optional[float]) -> str:
    """Whole euros, no decimals."""
    if value is None:
        return "—"
    try:
        return f"{float(value):.0f}"
    except (TypeError, ValueError):
        return "—"


def format_price_range(
    min_price: Optional[float],
    max_price: Optional[float],
    placeholder: str = "Price TBD",
) -> str:
    """Range when both ends are known, "From" when only the minimum is, else TBD."""
    if min_price is not None and max_price is not None:
        return f"€{to_money(min_price)} - €{to_money(max_price)}"
    if min_price is not None:
        return f"From €{to_money(min_price)}"
    return placeholder


def format_from_price(min_price: Optional[float]) -> str:
    return f"€{to_money(min_price)}"


def format_duration(minutes: Optional[int]) -> str:
    return f"{minutes} mins" if minutes else "Duration TBD"


def truncate(text: Optional[str], length: int = CARD_EXCERPT_LENGTH) -> str:
    """Cut to `length` characters; anything cut short gets an ellipsis."""
    text = (text or "").strip()
    if not text:
        return ""
    if len(text) <= length:
        return text
    return text[:length].rstrip() + "..."


def split_to_items(text: Optional[str]) -> list[str]:
    """
    Turn a free-text block into list items. Lines are items; a single line
    with commas is split on the commas. Leading "-" or bullet marks are dropped.
    """
    raw = (text or "").strip()
    if not raw:
        return []
    parts = [p.strip() for p in raw.split("\n") if p.strip()]
    if len(parts) <= 1 and "," in raw:
        parts = [p.strip() for p in raw.split(",") if p.strip()]
    items = [_BULLET_PREFIX.sub("", p).strip() for p in parts]
    return [item for item in items if item]


def safe_url(url: Optional[str]) -> Optional[str]:
    """Only http(s) URLs are rendered into links or image sources."""
    url = (url or "").strip()
    if not url:
        return None
    if re.match(r"^https?://", url, re.IGNORECASE):
        return url
    return None


def detail_url(experience_id: str, source: Optional[str] = None) -> str:
    params = {"id": experience_id}
    if source:
        params["src"] = source
    return f"/experiences/detail?{urlencode(params)}"


# View models


@dataclass
class ExperienceCard:
    experience_id: str
    title: str
    county: str
    business_name: str
    excerpt: str
    price_text: str
    from_price: str
    image_url: str
    detail_url: str


@dataclass
class ExperienceDetail:
    experience_id: str
    title: str
    county: str
    description: str
    meta_text: str
    badge_text: str
    host_name: str
    host_location: str
    host_description: str
    host_logo_url: Optional[str]
    from_price: str
    price_tier: str
    price_text: str
    booking_url: Optional[str]
    main_image_url: str
    thumbnails: list[str] = field(default_factory=list)
    what_you_do: list[str] = field(default_factory=list)
    whats_included: list[str] = field(default_factory=list)
    category_name: Optional[str] = None


def to_card(exp: ExperienceRecord, source: Optional[str] = None) -> ExperienceCard:
    return ExperienceCard(
        experience_id=exp.experience_id,
        title=exp.title or "Experience",
        county=exp.county or "Ireland",
        business_name=exp.business.business_name if exp.business else "",
        excerpt=truncate(exp.event_description or exp.short_description),
        price_text=format_price_range(exp.min_price, exp.max_price),
        from_price=format_from_price(exp.min_price),
        image_url=primary_image_url(exp.images),
        detail_url=detail_url(exp.experience_id, source),
    )


def to_detail(exp: ExperienceRecord) -> ExperienceDetail:
    business = exp.business
    description = (
        (exp.event_description or "").strip()
        or (exp.short_description or "").strip()
        or "No description provided yet."
    )
    county = exp.county or "Ireland"
    duration = format_duration(exp.duration_minutes)
    host_location = (business.location_text if business else None) or (
        f"{exp.county}, Ireland" if exp.county else "Ireland"
    )
    host_description = (
        (business.business_description or "").strip() if business else ""
    ) or "Business description coming soon."
    ordered = sort_images(exp.images)
    hero_placeholder = HERO_PLACEHOLDER_URL.format(
        title=quote(exp.title or "Experience")
    )
    return ExperienceDetail(
        experience_id=exp.experience_id,
        title=exp.title or "Experience",
        county=county,
        description=description,
        meta_text=f"{county} • {duration}",
        badge_text=f"{exp.duration_minutes} mins" if exp.duration_minutes else "Info",
        host_name=(business.business_name if business else None) or "Business",
        host_location=host_location,
        host_description=host_description,
        host_logo_url=safe_url(business.business_image_url if business else None),
        from_price=format_from_price(exp.min_price),
        price_tier=exp.price_tier or "—",
        price_text=format_price_range(exp.min_price, exp.max_price),
        booking_url=safe_url(
            exp.booking_url or (business.website_url if business else None)
        ),
        main_image_url=primary_image_url(ordered, placeholder=hero_placeholder),
        thumbnails=[
            url
            for url in (safe_url(img.image_url) for img in ordered[:MAX_THUMBNAILS])
            if url
        ],
        what_you_do=split_to_items(exp.what_you_do),
        whats_included=split_to_items(exp.whats_included),
        category_name=exp.category_name,
    )


# HTML rendering

_env = Environment(
    loader=PackageLoader("experienceme", "templates"),
    autoescape=select_autoescape(["html"]),
    trim_blocks=True,
    lstrip_blocks=True,
)


def results_meta(state: ResultState, count: int = 0) -> str:
    if state == ResultState.LOADING:
        return "Loading experiences..."
    if state == ResultState.ERROR:
        return "Error loading experiences"
    return f"{count} experiences found"


def render_results(
    experiences: Optional[list[ExperienceRecord]] = None,
    *,
    state: Optional[ResultState] = None,
    layout: str = "grid",
    source: Optional[str] = None,
) -> str:
    """
    Render a result container. Without an explicit state, an empty list is
    EMPTY and a non-empty one READY.
    """
    experiences = experiences or []
    if state is None:
        state = ResultState.READY if experiences else ResultState.EMPTY
    cards = [to_card(exp, source) for exp in experiences] if state == ResultState.READY else []
    template = _env.get_template("results.html")
    return template.render(
        state=state.value,
        layout=layout,
        message=state_message(state, layout),
        meta=results_meta(state, len(cards)),
        cards=cards,
    )


def render_detail(exp: Optional[ExperienceRecord], *, error: Optional[str] = None) -> str:
    template = _env.get_template("detail.html")
    if exp is None:
        return template.render(
            detail=None,
            error=error or "Something went wrong loading this experience.",
        )
    return template.render(detail=to_detail(exp), error=None)
