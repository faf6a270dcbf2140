"""
Business and admin dashboard mutations: profile edits, experience submissions,
image uploads and moderation.
"""

from __future__ import annotations

import logging
import threading
import time
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Callable, Iterator, Optional

from experienceme.db import (
    EXPERIENCE_STATUSES,
    BusinessRecord,
    DataClient,
    ExperienceRecord,
)
from experienceme.errors import ConflictError, NotFoundError, ValidationError
from experienceme.render import format_price_range, primary_image_url, safe_url
from experienceme.storage import StorageClient

logger = logging.getLogger(__name__)

ALLOWED_IMAGE_TYPES = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
}
MAX_IMAGES = 5
MAX_IMAGE_BYTES = 5 * 1024 * 1024
SUBMIT_STATUSES = ("draft", "pending")
STATUS_FILTERS = ("all",) + EXPERIENCE_STATUSES
ADMIN_PLACEHOLDER_IMAGE = "https://via.placeholder.com/400x250?text=No+Image"
ADMIN_EXCERPT_LENGTH = 140


@dataclass
class ImageUpload:
    filename: str
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


def validate_image_upload(
    upload: ImageUpload, max_bytes: int = MAX_IMAGE_BYTES
) -> str:
    """Returns the file extension to store under."""
    if upload.content_type not in ALLOWED_IMAGE_TYPES:
        raise ValidationError(
            f"{upload.filename} is not a supported format. Use JPG, PNG, or WebP."
        )
    if upload.size > max_bytes:
        raise ValidationError(f"{upload.filename} is too large. Maximum size is 5MB.")
    name_ext = upload.filename.rsplit(".", 1)[-1].lower() if "." in upload.filename else ""
    return name_ext or ALLOWED_IMAGE_TYPES[upload.content_type]


class SubmitGuard:
    """
    Rejects a second submission for the same key while the first is still
    running. Reads are never guarded.
    """

    def __init__(self):
        self._in_flight: set[str] = set()
        self._lock = threading.Lock()

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        with self._lock:
            if key in self._in_flight:
                raise ConflictError("This submission is already being processed.")
            self._in_flight.add(key)
        try:
            yield
        finally:
            with self._lock:
                self._in_flight.discard(key)

    def is_busy(self, key: str) -> bool:
        with self._lock:
            return key in self._in_flight


def _optional_text(value: Optional[str]) -> Optional[str]:
    value = (value or "").strip()
    return value or None


@dataclass
class ExperienceDraft:
    title: str
    short_description: str
    event_description: str
    category_id: str
    county: str
    status: str = "draft"
    min_price: Optional[float] = None
    max_price: Optional[float] = None
    price_tier: Optional[str] = None
    booking_url: Optional[str] = None
    duration_minutes: Optional[int] = None
    what_you_do: Optional[str] = None
    whats_included: Optional[str] = None

    def validate(self) -> None:
        if not (
            (self.title or "").strip()
            and (self.short_description or "").strip()
            and (self.event_description or "").strip()
        ):
            raise ValidationError("Please fill in all required fields")
        if not self.category_id or not self.county:
            raise ValidationError("Please select a category and county")
        if self.status not in SUBMIT_STATUSES:
            raise ValidationError("Experiences can only be saved as draft or pending.")
        for price in (self.min_price, self.max_price):
            if price is not None and price < 0:
                raise ValidationError("Prices cannot be negative.")
        if (
            self.min_price is not None
            and self.max_price is not None
            and self.max_price < self.min_price
        ):
            raise ValidationError("Maximum price must not be below the minimum price.")
        if self.duration_minutes is not None and self.duration_minutes <= 0:
            raise ValidationError("Duration must be a positive number of minutes.")

    def row_fields(self) -> dict:
        return {
            "title": self.title.strip(),
            "short_description": self.short_description.strip(),
            "event_description": self.event_description.strip(),
            "county": self.county,
            "status": self.status,
            "min_price": self.min_price,
            "max_price": self.max_price,
            "price_tier": _optional_text(self.price_tier),
            "booking_url": _optional_text(self.booking_url),
            "duration_minutes": self.duration_minutes,
            "what_you_do": _optional_text(self.what_you_do),
            "whats_included": _optional_text(self.whats_included),
        }


def _default_stamp() -> int:
    return int(time.time() * 1000)


def upload_experience_images(
    storage: StorageClient,
    business_id: str,
    uploads: list[ImageUpload],
    *,
    max_bytes: int = MAX_IMAGE_BYTES,
    stamp: Callable[[], int] = _default_stamp,
) -> list[str]:
    """Upload in order and return the public URLs in the same order."""
    urls = []
    for upload in uploads:
        ext = validate_image_upload(upload, max_bytes)
        path = f"{business_id}/{stamp()}_{uuid.uuid4().hex[:6]}.{ext}"
        storage.upload_bytes(path, upload.data, upload.content_type, upsert=False)
        urls.append(storage.public_url(path))
    return urls


def _owned_experience(
    db: DataClient, business: BusinessRecord, experience_id: str
) -> ExperienceRecord:
    exp = db.get_experience(experience_id, public_only=False)
    if not exp or exp.business_id != business.business_id:
        raise NotFoundError("Experience not found")
    return exp


def submit_experience(
    db: DataClient,
    storage: StorageClient,
    guard: SubmitGuard,
    business: BusinessRecord,
    draft: ExperienceDraft,
    uploads: Optional[list[ImageUpload]] = None,
    *,
    experience_id: Optional[str] = None,
    keep_image_urls: Optional[list[str]] = None,
    max_images: int = MAX_IMAGES,
    max_image_bytes: int = MAX_IMAGE_BYTES,
) -> ExperienceRecord:
    """
    Create (or, with `experience_id`, update) an experience. Kept images come
    first, new uploads after; the first image is the primary one. On update
    the category link and the image rows are replaced.
    """
    uploads = uploads or []
    keep_image_urls = [url for url in (keep_image_urls or []) if url]
    draft.validate()
    total_images = len(keep_image_urls) + len(uploads)
    if total_images == 0:
        raise ValidationError("Please upload at least one image")
    if total_images > max_images:
        raise ValidationError(f"Maximum {max_images} images allowed")
    for upload in uploads:
        validate_image_upload(upload, max_image_bytes)

    with guard.hold(business.business_id):
        if experience_id:
            _owned_experience(db, business, experience_id)
        image_urls = keep_image_urls + upload_experience_images(
            storage, business.business_id, uploads, max_bytes=max_image_bytes
        )
        if experience_id:
            saved = db.update_experience(experience_id, draft.row_fields())
        else:
            saved = db.create_experience(
                ExperienceRecord(
                    experience_id=uuid.uuid4().hex,
                    business_id=business.business_id,
                    is_published=True,
                    **draft.row_fields(),
                )
            )
        db.set_experience_category(saved.experience_id, draft.category_id)
        db.replace_images(saved.experience_id, image_urls)
        logger.info(
            "Experience %s saved as %s by business %s",
            saved.experience_id,
            draft.status,
            business.business_id,
        )
        return db.get_experience(saved.experience_id, public_only=False)


def delete_experience(
    db: DataClient, business: BusinessRecord, experience_id: str
) -> None:
    _owned_experience(db, business, experience_id)
    db.delete_experience(experience_id)
    logger.info("Experience %s deleted by business %s", experience_id, business.business_id)


def filter_by_status(
    experiences: list[ExperienceRecord], status: Optional[str]
) -> list[ExperienceRecord]:
    status = (status or "all").lower()
    if status not in STATUS_FILTERS:
        raise ValidationError("Unknown status filter.")
    if status == "all":
        return experiences
    return [exp for exp in experiences if (exp.status or "").lower() == status]


def list_business_experiences(
    db: DataClient, business: BusinessRecord, status: Optional[str] = None
) -> list[ExperienceRecord]:
    return filter_by_status(db.list_experiences(business_id=business.business_id), status)


def normalize_website(url: Optional[str]) -> Optional[str]:
    url = (url or "").strip()
    if not url:
        return None
    if not url.startswith(("http://", "https://")):
        url = f"https://{url}"
    return url


@dataclass
class ProfileForm:
    website_url: Optional[str] = None
    location_text: Optional[str] = None
    business_description: Optional[str] = None


def update_business_profile(
    db: DataClient,
    storage: StorageClient,
    business: BusinessRecord,
    form: ProfileForm,
    logo: Optional[ImageUpload] = None,
) -> BusinessRecord:
    business_image_url = business.business_image_url
    if logo is not None:
        if logo.content_type not in ALLOWED_IMAGE_TYPES:
            raise ValidationError("Logo must be JPG, PNG, or WebP.")
        if logo.size > MAX_IMAGE_BYTES:
            raise ValidationError("Logo too large. Max 5MB.")
        ext = validate_image_upload(logo)
        path = f"business-logos/{business.business_id}/logo_{_default_stamp()}.{ext}"
        storage.upload_bytes(path, logo.data, logo.content_type, upsert=True)
        business_image_url = storage.public_url(path)

    updated = db.update_business(
        business.business_id,
        {
            "website_url": normalize_website(form.website_url),
            "location_text": _optional_text(form.location_text),
            "business_description": _optional_text(form.business_description),
            "business_image_url": business_image_url,
        },
    )
    if updated is None:
        raise NotFoundError("Business record not found.")
    return updated


# Admin


@dataclass
class AdminStats:
    total_experiences: int
    total_businesses: int
    total_users: int
    pending: int


def admin_stats(db: DataClient) -> AdminStats:
    return AdminStats(
        total_experiences=db.count_experiences(),
        total_businesses=db.count_businesses(),
        total_users=db.count_users(),
        pending=db.count_experiences(status="pending"),
    )


@dataclass
class AdminExperienceView:
    experience_id: str
    title: str
    status: str
    status_label: str
    business_name: str
    county: str
    category_name: str
    excerpt: str
    price_text: str
    image_url: str
    booking_url: Optional[str] = None
    meta: str = field(init=False)

    def __post_init__(self):
        self.meta = f"{self.business_name} • {self.county} • {self.category_name}"


def _admin_excerpt(text: Optional[str]) -> str:
    text = (text or "").strip()
    if len(text) > ADMIN_EXCERPT_LENGTH:
        return f"{text[:ADMIN_EXCERPT_LENGTH]}…"
    return text


def to_admin_view(exp: ExperienceRecord) -> AdminExperienceView:
    status = exp.status or ""
    return AdminExperienceView(
        experience_id=exp.experience_id,
        title=exp.title or "Experience",
        status=status,
        status_label=status[:1].upper() + status[1:],
        business_name=(exp.business.business_name if exp.business else None) or "Unknown",
        county=exp.county or "Location TBD",
        category_name=exp.category_name or "Uncategorised",
        excerpt=_admin_excerpt(exp.short_description or exp.event_description),
        price_text=format_price_range(exp.min_price, exp.max_price),
        image_url=primary_image_url(exp.images, placeholder=ADMIN_PLACEHOLDER_IMAGE),
        booking_url=safe_url(exp.booking_url),
    )


def admin_experiences(
    db: DataClient, status: Optional[str] = None
) -> list[AdminExperienceView]:
    return [to_admin_view(exp) for exp in filter_by_status(db.list_experiences(), status)]


def set_experience_status(
    db: DataClient,
    experience_id: str,
    status: str,
    *,
    reason: Optional[str] = None,
) -> ExperienceRecord:
    """Moderation is a status transition only; nothing else on the row changes."""
    if status not in ("approved", "rejected"):
        raise ValidationError("Unknown moderation status.")
    if status == "rejected" and not (reason or "").strip():
        raise ValidationError("A reason is required to reject an experience.")
    updated = db.update_experience(experience_id, {"status": status})
    if updated is None:
        raise NotFoundError("Experience not found")
    if status == "rejected":
        logger.info("Experience %s rejected: %s", experience_id, reason.strip())
    else:
        logger.info("Experience %s approved", experience_id)
    return updated
