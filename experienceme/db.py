"""
Data access for the hosted relational store and an in-memory test implementation.

Every row lives on the platform. The client only issues single round trips
(select with filters, insert, update, delete) and hands back transient copies.
"""

from __future__ import annotations

import logging
import time
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from typing import Dict, Iterable, Iterator, Optional, Protocol

from sqlalchemy import (
    Boolean,
    Column,
    Float,
    Integer,
    String,
    Text,
    UniqueConstraint,
    create_engine,
    delete,
    func,
    or_,
    select,
)
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

logger = logging.getLogger(__name__)


class DataAccessError(Exception):
    """Raised when a round trip to the data platform fails."""


class DuplicateEntryError(DataAccessError):
    """Raised when an insert hits a unique constraint."""


APPROVED_STATUS = "approved"
EXPERIENCE_STATUSES = ("draft", "pending", "approved", "rejected")


def _new_id() -> str:
    return uuid.uuid4().hex


@dataclass
class UserProfile:
    user_id: str
    email: str
    full_name: Optional[str] = None
    role: str = "user"
    is_active: bool = True
    created_at: float = field(default_factory=lambda: time.time())


@dataclass
class BusinessRecord:
    business_id: str
    user_id: str
    business_name: str
    business_email: Optional[str] = None
    website_url: Optional[str] = None
    location_text: Optional[str] = None
    business_description: Optional[str] = None
    business_image_url: Optional[str] = None
    status: str = "pending"
    created_at: float = field(default_factory=lambda: time.time())
    updated_at: float = field(default_factory=lambda: time.time())


@dataclass
class ImageRecord:
    image_id: str
    experience_id: str
    image_url: str
    is_primary: bool = False
    display_order: Optional[int] = None


@dataclass
class CategoryRecord:
    category_id: str
    category_name: str
    category_image_url: Optional[str] = None


@dataclass
class CountyRecord:
    county_id: str
    county_image_url: Optional[str] = None


@dataclass
class ExperienceRecord:
    experience_id: str
    business_id: str
    title: str
    short_description: Optional[str] = None
    event_description: Optional[str] = None
    county: Optional[str] = None
    duration_minutes: Optional[int] = None
    min_price: Optional[float] = None
    max_price: Optional[float] = None
    price_tier: Optional[str] = None
    status: str = "draft"
    is_published: bool = False
    booking_url: Optional[str] = None
    what_you_do: Optional[str] = None
    whats_included: Optional[str] = None
    created_at: float = field(default_factory=lambda: time.time())
    updated_at: float = field(default_factory=lambda: time.time())
    # Filled in by reads that join related rows.
    business: Optional[BusinessRecord] = None
    images: list[ImageRecord] = field(default_factory=list)
    category_id: Optional[str] = None
    category_name: Optional[str] = None

    def is_public(self) -> bool:
        """Approved (any casing) and published."""
        return (self.status or "").lower() == APPROVED_STATUS and bool(
            self.is_published
        )


# Columns a dashboard is allowed to write on an experience row.
EXPERIENCE_FIELDS = (
    "title",
    "short_description",
    "event_description",
    "county",
    "duration_minutes",
    "min_price",
    "max_price",
    "price_tier",
    "status",
    "is_published",
    "booking_url",
    "what_you_do",
    "whats_included",
)

BUSINESS_PROFILE_FIELDS = (
    "website_url",
    "location_text",
    "business_description",
    "business_image_url",
)


@dataclass
class FavoriteRecord:
    favorite_id: str
    user_id: str
    experience_id: str
    created_at: float = field(default_factory=lambda: time.time())


@dataclass
class EventRecord:
    experience_id: str
    event_type: str
    source: str
    session_id: Optional[str]
    user_id: Optional[str] = None
    business_id: Optional[str] = None
    created_at: float = field(default_factory=lambda: time.time())


@dataclass
class WaitlistEntry:
    contact_name: str
    contact_email: str
    business_name: str
    website: str
    county: str
    category_id: str
    challenges_getting_bookings: str
    status: str = "new"
    waitlist_id: Optional[str] = None
    created_at: float = field(default_factory=lambda: time.time())
    category_name: Optional[str] = None


@dataclass(frozen=True)
class PriceRange:
    """A predicate on an experience's minimum price."""

    lower: Optional[float] = None
    lower_inclusive: bool = True
    upper: Optional[float] = None
    upper_inclusive: bool = True

    def contains(self, price: Optional[float]) -> bool:
        if price is None:
            return False
        if self.lower is not None:
            if price < self.lower or (not self.lower_inclusive and price == self.lower):
                return False
        if self.upper is not None:
            if price > self.upper or (not self.upper_inclusive and price == self.upper):
                return False
        return True


@dataclass
class ExperienceQuery:
    """
    Constraint set for an experience select. Every active constraint is ANDed;
    a None field means no constraint on that column.
    """

    experience_ids: Optional[list[str]] = None
    county: Optional[str] = None
    price: Optional[PriceRange] = None
    search_text: Optional[str] = None
    public_only: bool = True

    def matches(self, exp: ExperienceRecord) -> bool:
        if self.public_only and not exp.is_public():
            return False
        if self.experience_ids is not None and exp.experience_id not in self.experience_ids:
            return False
        if self.county and exp.county != self.county:
            return False
        if self.price is not None and not self.price.contains(exp.min_price):
            return False
        if self.search_text:
            needle = self.search_text.casefold()
            haystacks = (exp.title or "", exp.event_description or "")
            if not any(needle in h.casefold() for h in haystacks):
                return False
        return True


class DataClient(Protocol):
    """Interface for the hosted relational store."""

    # Reference data
    def list_categories(self) -> list[CategoryRecord]:
        ...

    def list_counties(self) -> list[CountyRecord]:
        ...

    # Users and businesses
    def get_user_profile(self, user_id: str) -> Optional[UserProfile]:
        ...

    def create_user_profile(self, profile: UserProfile) -> UserProfile:
        ...

    def count_users(self) -> int:
        ...

    def get_business_for_user(self, user_id: str) -> Optional[BusinessRecord]:
        ...

    def create_business(self, business: BusinessRecord) -> BusinessRecord:
        ...

    def update_business(
        self, business_id: str, fields: dict
    ) -> Optional[BusinessRecord]:
        ...

    def count_businesses(self) -> int:
        ...

    # Experiences
    def experience_ids_for_category(self, category_id: str) -> list[str]:
        ...

    def find_experiences(
        self, query: ExperienceQuery, limit: Optional[int] = None
    ) -> list[ExperienceRecord]:
        ...

    def get_experience(
        self, experience_id: str, *, public_only: bool = True
    ) -> Optional[ExperienceRecord]:
        ...

    def list_experiences(
        self, *, business_id: Optional[str] = None
    ) -> list[ExperienceRecord]:
        ...

    def create_experience(self, experience: ExperienceRecord) -> ExperienceRecord:
        ...

    def update_experience(
        self, experience_id: str, fields: dict
    ) -> Optional[ExperienceRecord]:
        ...

    def delete_experience(self, experience_id: str) -> bool:
        ...

    def count_experiences(self, status: Optional[str] = None) -> int:
        ...

    def set_experience_category(self, experience_id: str, category_id: str) -> None:
        ...

    def replace_images(
        self, experience_id: str, image_urls: list[str]
    ) -> list[ImageRecord]:
        ...

    # Favorites
    def get_favorite(
        self, user_id: str, experience_id: str
    ) -> Optional[FavoriteRecord]:
        ...

    def add_favorite(self, user_id: str, experience_id: str) -> FavoriteRecord:
        ...

    def remove_favorite(self, user_id: str, experience_id: str) -> int:
        ...

    def list_favorite_experience_ids(self, user_id: str) -> list[str]:
        ...

    def list_experiences_by_ids(self, experience_ids: list[str]) -> list[ExperienceRecord]:
        ...

    # Metrics (append-only)
    def create_visitor_session(
        self, session_id: Optional[str] = None, user_id: Optional[str] = None
    ) -> str:
        ...

    def record_event(self, event: EventRecord) -> None:
        ...

    def list_events(
        self,
        business_id: str,
        since: float,
        *,
        experience_id: Optional[str] = None,
        event_types: Optional[Iterable[str]] = None,
    ) -> list[EventRecord]:
        ...

    def list_saves(
        self,
        business_id: str,
        since: float,
        *,
        experience_id: Optional[str] = None,
    ) -> list[FavoriteRecord]:
        ...

    # Waitlist
    def add_waitlist_entry(self, entry: WaitlistEntry) -> WaitlistEntry:
        ...

    def count_waitlist(self) -> int:
        ...

    def list_waitlist(self, limit: int = 25) -> list[WaitlistEntry]:
        ...


def escape_like(text: str) -> str:
    """Make user text match literally inside a LIKE pattern escaped with a backslash."""
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def sort_images(images: Iterable[ImageRecord]) -> list[ImageRecord]:
    """Ascending display order; rows without one go last."""
    return sorted(
        images,
        key=lambda img: img.display_order if img.display_order is not None else 999,
    )


class InMemoryDataClient:
    """Simple in-memory store for development and tests."""

    def __init__(self):
        self.users: Dict[str, UserProfile] = {}
        self.businesses: Dict[str, BusinessRecord] = {}
        self.experiences: Dict[str, ExperienceRecord] = {}
        self.categories: Dict[str, CategoryRecord] = {}
        self.counties: Dict[str, CountyRecord] = {}
        self.experience_categories: list[tuple[str, str]] = []
        self.images: Dict[str, ImageRecord] = {}
        self.favorites: Dict[tuple[str, str], FavoriteRecord] = {}
        self.visitor_sessions: Dict[str, dict] = {}
        self.events: list[EventRecord] = []
        self.waitlist: Dict[str, WaitlistEntry] = {}

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        self.users.clear()
        self.businesses.clear()
        self.experiences.clear()
        self.categories.clear()
        self.counties.clear()
        self.experience_categories.clear()
        self.images.clear()
        self.favorites.clear()
        self.visitor_sessions.clear()
        self.events.clear()
        self.waitlist.clear()

    # Seeding helpers (the platform owns these tables; tests fill them directly)
    def add_category(self, category: CategoryRecord) -> None:
        self.categories[category.category_id] = category

    def add_county(self, county: CountyRecord) -> None:
        self.counties[county.county_id] = county

    def add_image(self, image: ImageRecord) -> None:
        self.images[image.image_id] = image

    def link_category(self, experience_id: str, category_id: str) -> None:
        self.experience_categories.append((experience_id, category_id))

    def _enrich(self, exp: ExperienceRecord) -> ExperienceRecord:
        category_id = next(
            (c for e, c in self.experience_categories if e == exp.experience_id),
            None,
        )
        category = self.categories.get(category_id) if category_id else None
        return replace(
            exp,
            business=self.businesses.get(exp.business_id),
            images=sort_images(
                img for img in self.images.values()
                if img.experience_id == exp.experience_id
            ),
            category_id=category_id,
            category_name=category.category_name if category else None,
        )

    def _newest_first(self, items: Iterable[ExperienceRecord]) -> list[ExperienceRecord]:
        return sorted(items, key=lambda e: e.created_at, reverse=True)

    def list_categories(self) -> list[CategoryRecord]:
        return sorted(self.categories.values(), key=lambda c: c.category_name)

    def list_counties(self) -> list[CountyRecord]:
        return sorted(self.counties.values(), key=lambda c: c.county_id)

    def get_user_profile(self, user_id: str) -> Optional[UserProfile]:
        return self.users.get(user_id)

    def create_user_profile(self, profile: UserProfile) -> UserProfile:
        if profile.user_id in self.users:
            raise DuplicateEntryError(f"user {profile.user_id} already exists")
        self.users[profile.user_id] = profile
        return profile

    def count_users(self) -> int:
        return len(self.users)

    def get_business_for_user(self, user_id: str) -> Optional[BusinessRecord]:
        for business in self.businesses.values():
            if business.user_id == user_id:
                return business
        return None

    def create_business(self, business: BusinessRecord) -> BusinessRecord:
        self.businesses[business.business_id] = business
        return business

    def update_business(
        self, business_id: str, fields: dict
    ) -> Optional[BusinessRecord]:
        business = self.businesses.get(business_id)
        if not business:
            return None
        for key, value in fields.items():
            if key in BUSINESS_PROFILE_FIELDS:
                setattr(business, key, value)
        business.updated_at = time.time()
        return business

    def count_businesses(self) -> int:
        return len(self.businesses)

    def experience_ids_for_category(self, category_id: str) -> list[str]:
        ids: list[str] = []
        for experience_id, linked in self.experience_categories:
            if linked == category_id and experience_id and experience_id not in ids:
                ids.append(experience_id)
        return ids

    def find_experiences(
        self, query: ExperienceQuery, limit: Optional[int] = None
    ) -> list[ExperienceRecord]:
        matches = [
            self._enrich(exp)
            for exp in self._newest_first(self.experiences.values())
            if query.matches(exp)
        ]
        return matches[:limit] if limit is not None else matches

    def get_experience(
        self, experience_id: str, *, public_only: bool = True
    ) -> Optional[ExperienceRecord]:
        exp = self.experiences.get(experience_id)
        if not exp or (public_only and not exp.is_public()):
            return None
        return self._enrich(exp)

    def list_experiences(
        self, *, business_id: Optional[str] = None
    ) -> list[ExperienceRecord]:
        return [
            self._enrich(exp)
            for exp in self._newest_first(self.experiences.values())
            if business_id is None or exp.business_id == business_id
        ]

    def create_experience(self, experience: ExperienceRecord) -> ExperienceRecord:
        self.experiences[experience.experience_id] = experience
        return self._enrich(experience)

    def update_experience(
        self, experience_id: str, fields: dict
    ) -> Optional[ExperienceRecord]:
        exp = self.experiences.get(experience_id)
        if not exp:
            return None
        for key, value in fields.items():
            if key in EXPERIENCE_FIELDS:
                setattr(exp, key, value)
        exp.updated_at = time.time()
        return self._enrich(exp)

    def delete_experience(self, experience_id: str) -> bool:
        if self.experiences.pop(experience_id, None) is None:
            return False
        self.experience_categories = [
            link for link in self.experience_categories if link[0] != experience_id
        ]
        for image_id in [
            i.image_id for i in self.images.values() if i.experience_id == experience_id
        ]:
            del self.images[image_id]
        for key in [k for k in self.favorites if k[1] == experience_id]:
            del self.favorites[key]
        return True

    def count_experiences(self, status: Optional[str] = None) -> int:
        return sum(
            1
            for exp in self.experiences.values()
            if status is None or (exp.status or "").lower() == status.lower()
        )

    def set_experience_category(self, experience_id: str, category_id: str) -> None:
        self.experience_categories = [
            link for link in self.experience_categories if link[0] != experience_id
        ]
        self.experience_categories.append((experience_id, category_id))

    def replace_images(
        self, experience_id: str, image_urls: list[str]
    ) -> list[ImageRecord]:
        for image_id in [
            i.image_id for i in self.images.values() if i.experience_id == experience_id
        ]:
            del self.images[image_id]
        records = []
        for index, url in enumerate(image_urls):
            record = ImageRecord(
                image_id=_new_id(),
                experience_id=experience_id,
                image_url=url,
                is_primary=index == 0,
                display_order=index,
            )
            self.images[record.image_id] = record
            records.append(record)
        return records

    def get_favorite(
        self, user_id: str, experience_id: str
    ) -> Optional[FavoriteRecord]:
        return self.favorites.get((user_id, experience_id))

    def add_favorite(self, user_id: str, experience_id: str) -> FavoriteRecord:
        key = (user_id, experience_id)
        if key in self.favorites:
            raise DuplicateEntryError("favorite already exists")
        record = FavoriteRecord(
            favorite_id=_new_id(), user_id=user_id, experience_id=experience_id
        )
        self.favorites[key] = record
        return record

    def remove_favorite(self, user_id: str, experience_id: str) -> int:
        return 1 if self.favorites.pop((user_id, experience_id), None) else 0

    def list_favorite_experience_ids(self, user_id: str) -> list[str]:
        return [exp_id for (uid, exp_id) in self.favorites if uid == user_id]

    def list_experiences_by_ids(self, experience_ids: list[str]) -> list[ExperienceRecord]:
        return [
            self._enrich(exp)
            for exp in self._newest_first(self.experiences.values())
            if exp.experience_id in experience_ids
        ]

    def create_visitor_session(
        self, session_id: Optional[str] = None, user_id: Optional[str] = None
    ) -> str:
        session_id = session_id or _new_id()
        now = time.time()
        self.visitor_sessions[session_id] = {
            "session_id": session_id,
            "user_id": user_id,
            "check_in": now,
            "started_at": now,
            "last_seen": now,
        }
        return session_id

    def record_event(self, event: EventRecord) -> None:
        self.events.append(event)

    def _owned_by(self, experience_id: str, business_id: str) -> bool:
        exp = self.experiences.get(experience_id)
        return bool(exp and exp.business_id == business_id)

    def list_events(
        self,
        business_id: str,
        since: float,
        *,
        experience_id: Optional[str] = None,
        event_types: Optional[Iterable[str]] = None,
    ) -> list[EventRecord]:
        wanted = set(event_types) if event_types is not None else None
        return [
            event
            for event in self.events
            if event.created_at >= since
            and self._owned_by(event.experience_id, business_id)
            and (experience_id is None or event.experience_id == experience_id)
            and (wanted is None or event.event_type in wanted)
        ]

    def list_saves(
        self,
        business_id: str,
        since: float,
        *,
        experience_id: Optional[str] = None,
    ) -> list[FavoriteRecord]:
        return [
            fav
            for fav in self.favorites.values()
            if fav.created_at >= since
            and self._owned_by(fav.experience_id, business_id)
            and (experience_id is None or fav.experience_id == experience_id)
        ]

    def add_waitlist_entry(self, entry: WaitlistEntry) -> WaitlistEntry:
        if entry.contact_email in self.waitlist:
            raise DuplicateEntryError("contact_email already on the waitlist")
        entry.waitlist_id = entry.waitlist_id or _new_id()
        self.waitlist[entry.contact_email] = entry
        return entry

    def count_waitlist(self) -> int:
        return len(self.waitlist)

    def list_waitlist(self, limit: int = 25) -> list[WaitlistEntry]:
        entries = sorted(
            self.waitlist.values(), key=lambda e: e.created_at, reverse=True
        )[:limit]
        result = []
        for entry in entries:
            category = self.categories.get(entry.category_id)
            result.append(
                replace(
                    entry,
                    category_name=category.category_name if category else None,
                )
            )
        return result


class PostgresDataClient:
    """
    SQLAlchemy-backed implementation. Accepts any SQLAlchemy URL (e.g., the
    platform's Postgres or SQLite for tests).
    """

    def __init__(self, database_url: str, *, create_tables: bool = False):
        if not database_url:
            raise ValueError("DATABASE_URL is required for PostgresDataClient")
        self.engine = create_engine(
            database_url,
            future=True,
            pool_pre_ping=True,
            pool_recycle=1800,
        )
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        # The platform owns the schema; only local databases get created here.
        if create_tables:
            Base.metadata.create_all(self.engine)

    @contextmanager
    def _session(self) -> Iterator[Session]:
        try:
            with self.Session() as session:
                yield session
        except IntegrityError as exc:
            raise DuplicateEntryError(str(exc.orig)) from exc
        except SQLAlchemyError as exc:
            logger.error("Data platform request failed: %s", exc)
            raise DataAccessError(str(exc)) from exc

    # Row -> record conversion

    @staticmethod
    def _to_user(row: "UserRow") -> UserProfile:
        return UserProfile(
            user_id=row.user_id,
            email=row.email,
            full_name=row.full_name,
            role=row.role or "user",
            is_active=bool(row.is_active),
            created_at=row.created_at,
        )

    @staticmethod
    def _to_business(row: "BusinessRow") -> BusinessRecord:
        return BusinessRecord(
            business_id=row.business_id,
            user_id=row.user_id,
            business_name=row.business_name,
            business_email=row.business_email,
            website_url=row.website_url,
            location_text=row.location_text,
            business_description=row.business_description,
            business_image_url=row.business_image_url,
            status=row.status,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    @staticmethod
    def _to_image(row: "ImageRow") -> ImageRecord:
        return ImageRecord(
            image_id=row.image_id,
            experience_id=row.experience_id,
            image_url=row.image_url,
            is_primary=bool(row.is_primary),
            display_order=row.display_order,
        )

    @staticmethod
    def _to_experience(row: "ExperienceRow") -> ExperienceRecord:
        return ExperienceRecord(
            experience_id=row.experience_id,
            business_id=row.business_id,
            title=row.title,
            short_description=row.short_description,
            event_description=row.event_description,
            county=row.county,
            duration_minutes=row.duration_minutes,
            min_price=row.min_price,
            max_price=row.max_price,
            price_tier=row.price_tier,
            status=row.status,
            is_published=bool(row.is_published),
            booking_url=row.booking_url,
            what_you_do=row.what_you_do,
            whats_included=row.whats_included,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    @staticmethod
    def _to_waitlist(row: "WaitlistRow", category_name: Optional[str] = None) -> WaitlistEntry:
        return WaitlistEntry(
            waitlist_id=row.waitlist_id,
            contact_name=row.contact_name,
            contact_email=row.contact_email,
            business_name=row.business_name,
            website=row.website,
            county=row.county,
            category_id=row.category_id,
            challenges_getting_bookings=row.challenges_getting_bookings,
            status=row.status,
            created_at=row.created_at,
            category_name=category_name,
        )

    def _enrich(
        self, session: Session, rows: list["ExperienceRow"]
    ) -> list[ExperienceRecord]:
        """Attach business, images and category to each experience row."""
        if not rows:
            return []
        exp_ids = [row.experience_id for row in rows]
        business_ids = {row.business_id for row in rows}

        businesses = {
            b.business_id: self._to_business(b)
            for b in session.execute(
                select(BusinessRow).where(BusinessRow.business_id.in_(business_ids))
            ).scalars()
        }
        images: Dict[str, list[ImageRecord]] = {}
        for img in session.execute(
            select(ImageRow).where(ImageRow.experience_id.in_(exp_ids))
        ).scalars():
            images.setdefault(img.experience_id, []).append(self._to_image(img))
        categories: Dict[str, tuple[str, Optional[str]]] = {}
        link_stmt = (
            select(
                ExperienceCategoryRow.experience_id,
                CategoryRow.category_id,
                CategoryRow.category_name,
            )
            .join(
                CategoryRow,
                CategoryRow.category_id == ExperienceCategoryRow.category_id,
                isouter=True,
            )
            .where(ExperienceCategoryRow.experience_id.in_(exp_ids))
        )
        for exp_id, category_id, category_name in session.execute(link_stmt):
            categories.setdefault(exp_id, (category_id, category_name))

        records = []
        for row in rows:
            record = self._to_experience(row)
            record.business = businesses.get(row.business_id)
            record.images = sort_images(images.get(row.experience_id, []))
            record.category_id, record.category_name = categories.get(
                row.experience_id, (None, None)
            )
            records.append(record)
        return records

    @staticmethod
    def _public_clause():
        return (
            func.lower(ExperienceRow.status) == APPROVED_STATUS,
            ExperienceRow.is_published.is_(True),
        )

    # Reference data

    def list_categories(self) -> list[CategoryRecord]:
        with self._session() as session:
            rows = session.execute(
                select(CategoryRow).order_by(CategoryRow.category_name.asc())
            ).scalars()
            return [
                CategoryRecord(
                    category_id=row.category_id,
                    category_name=row.category_name,
                    category_image_url=row.category_image_url,
                )
                for row in rows
            ]

    def list_counties(self) -> list[CountyRecord]:
        with self._session() as session:
            rows = session.execute(
                select(CountyRow).order_by(CountyRow.county_id.asc())
            ).scalars()
            return [
                CountyRecord(
                    county_id=row.county_id, county_image_url=row.county_image_url
                )
                for row in rows
            ]

    # Users and businesses

    def get_user_profile(self, user_id: str) -> Optional[UserProfile]:
        with self._session() as session:
            row = session.get(UserRow, user_id)
            return self._to_user(row) if row else None

    def create_user_profile(self, profile: UserProfile) -> UserProfile:
        with self._session() as session:
            session.add(
                UserRow(
                    user_id=profile.user_id,
                    email=profile.email,
                    full_name=profile.full_name,
                    role=profile.role,
                    is_active=profile.is_active,
                    created_at=profile.created_at,
                )
            )
            session.commit()
            return profile

    def count_users(self) -> int:
        with self._session() as session:
            return session.execute(select(func.count()).select_from(UserRow)).scalar_one()

    def get_business_for_user(self, user_id: str) -> Optional[BusinessRecord]:
        with self._session() as session:
            row = session.execute(
                select(BusinessRow).where(BusinessRow.user_id == user_id).limit(1)
            ).scalar_one_or_none()
            return self._to_business(row) if row else None

    def create_business(self, business: BusinessRecord) -> BusinessRecord:
        with self._session() as session:
            session.add(
                BusinessRow(
                    business_id=business.business_id,
                    user_id=business.user_id,
                    business_name=business.business_name,
                    business_email=business.business_email,
                    website_url=business.website_url,
                    location_text=business.location_text,
                    business_description=business.business_description,
                    business_image_url=business.business_image_url,
                    status=business.status,
                    created_at=business.created_at,
                    updated_at=business.updated_at,
                )
            )
            session.commit()
            return business

    def update_business(
        self, business_id: str, fields: dict
    ) -> Optional[BusinessRecord]:
        with self._session() as session:
            row = session.get(BusinessRow, business_id)
            if not row:
                return None
            for key, value in fields.items():
                if key in BUSINESS_PROFILE_FIELDS:
                    setattr(row, key, value)
            row.updated_at = time.time()
            session.commit()
            session.refresh(row)
            return self._to_business(row)

    def count_businesses(self) -> int:
        with self._session() as session:
            return session.execute(
                select(func.count()).select_from(BusinessRow)
            ).scalar_one()

    # Experiences

    def experience_ids_for_category(self, category_id: str) -> list[str]:
        with self._session() as session:
            rows = session.execute(
                select(ExperienceCategoryRow.experience_id).where(
                    ExperienceCategoryRow.category_id == category_id
                )
            ).scalars()
            ids: list[str] = []
            for experience_id in rows:
                if experience_id and experience_id not in ids:
                    ids.append(experience_id)
            return ids

    def find_experiences(
        self, query: ExperienceQuery, limit: Optional[int] = None
    ) -> list[ExperienceRecord]:
        stmt = select(ExperienceRow)
        if query.public_only:
            stmt = stmt.where(*self._public_clause())
        if query.experience_ids is not None:
            stmt = stmt.where(ExperienceRow.experience_id.in_(query.experience_ids))
        if query.county:
            stmt = stmt.where(ExperienceRow.county == query.county)
        if query.price is not None:
            price = query.price
            stmt = stmt.where(ExperienceRow.min_price.is_not(None))
            if price.lower is not None:
                stmt = stmt.where(
                    ExperienceRow.min_price >= price.lower
                    if price.lower_inclusive
                    else ExperienceRow.min_price > price.lower
                )
            if price.upper is not None:
                stmt = stmt.where(
                    ExperienceRow.min_price <= price.upper
                    if price.upper_inclusive
                    else ExperienceRow.min_price < price.upper
                )
        if query.search_text:
            pattern = f"%{escape_like(query.search_text)}%"
            stmt = stmt.where(
                or_(
                    ExperienceRow.title.ilike(pattern, escape="\\"),
                    ExperienceRow.event_description.ilike(pattern, escape="\\"),
                )
            )
        stmt = stmt.order_by(ExperienceRow.created_at.desc())
        if limit is not None:
            stmt = stmt.limit(limit)
        with self._session() as session:
            rows = list(session.execute(stmt).scalars())
            return self._enrich(session, rows)

    def get_experience(
        self, experience_id: str, *, public_only: bool = True
    ) -> Optional[ExperienceRecord]:
        stmt = select(ExperienceRow).where(ExperienceRow.experience_id == experience_id)
        if public_only:
            stmt = stmt.where(*self._public_clause())
        with self._session() as session:
            row = session.execute(stmt).scalar_one_or_none()
            if not row:
                return None
            return self._enrich(session, [row])[0]

    def list_experiences(
        self, *, business_id: Optional[str] = None
    ) -> list[ExperienceRecord]:
        stmt = select(ExperienceRow).order_by(ExperienceRow.created_at.desc())
        if business_id is not None:
            stmt = stmt.where(ExperienceRow.business_id == business_id)
        with self._session() as session:
            rows = list(session.execute(stmt).scalars())
            return self._enrich(session, rows)

    def list_experiences_by_ids(self, experience_ids: list[str]) -> list[ExperienceRecord]:
        if not experience_ids:
            return []
        stmt = (
            select(ExperienceRow)
            .where(ExperienceRow.experience_id.in_(experience_ids))
            .order_by(ExperienceRow.created_at.desc())
        )
        with self._session() as session:
            rows = list(session.execute(stmt).scalars())
            return self._enrich(session, rows)

    def create_experience(self, experience: ExperienceRecord) -> ExperienceRecord:
        with self._session() as session:
            row = ExperienceRow(
                experience_id=experience.experience_id,
                business_id=experience.business_id,
                created_at=experience.created_at,
                updated_at=experience.updated_at,
                **{name: getattr(experience, name) for name in EXPERIENCE_FIELDS},
            )
            session.add(row)
            session.commit()
            session.refresh(row)
            return self._enrich(session, [row])[0]

    def update_experience(
        self, experience_id: str, fields: dict
    ) -> Optional[ExperienceRecord]:
        with self._session() as session:
            row = session.get(ExperienceRow, experience_id)
            if not row:
                return None
            for key, value in fields.items():
                if key in EXPERIENCE_FIELDS:
                    setattr(row, key, value)
            row.updated_at = time.time()
            session.commit()
            session.refresh(row)
            return self._enrich(session, [row])[0]

    def delete_experience(self, experience_id: str) -> bool:
        with self._session() as session:
            row = session.get(ExperienceRow, experience_id)
            if not row:
                return False
            session.execute(
                delete(ExperienceCategoryRow).where(
                    ExperienceCategoryRow.experience_id == experience_id
                )
            )
            session.execute(delete(ImageRow).where(ImageRow.experience_id == experience_id))
            session.execute(
                delete(FavoriteRow).where(FavoriteRow.experience_id == experience_id)
            )
            session.delete(row)
            session.commit()
            return True

    def count_experiences(self, status: Optional[str] = None) -> int:
        stmt = select(func.count()).select_from(ExperienceRow)
        if status is not None:
            stmt = stmt.where(func.lower(ExperienceRow.status) == status.lower())
        with self._session() as session:
            return session.execute(stmt).scalar_one()

    def set_experience_category(self, experience_id: str, category_id: str) -> None:
        with self._session() as session:
            session.execute(
                delete(ExperienceCategoryRow).where(
                    ExperienceCategoryRow.experience_id == experience_id
                )
            )
            session.add(
                ExperienceCategoryRow(
                    experience_id=experience_id, category_id=category_id
                )
            )
            session.commit()

    def replace_images(
        self, experience_id: str, image_urls: list[str]
    ) -> list[ImageRecord]:
        with self._session() as session:
            session.execute(delete(ImageRow).where(ImageRow.experience_id == experience_id))
            rows = [
                ImageRow(
                    image_id=_new_id(),
                    experience_id=experience_id,
                    image_url=url,
                    is_primary=index == 0,
                    display_order=index,
                )
                for index, url in enumerate(image_urls)
            ]
            session.add_all(rows)
            session.commit()
            return [self._to_image(row) for row in rows]

    # Favorites

    def get_favorite(
        self, user_id: str, experience_id: str
    ) -> Optional[FavoriteRecord]:
        with self._session() as session:
            row = session.execute(
                select(FavoriteRow).where(
                    FavoriteRow.user_id == user_id,
                    FavoriteRow.experience_id == experience_id,
                )
            ).scalar_one_or_none()
            if not row:
                return None
            return FavoriteRecord(
                favorite_id=row.favorite_id,
                user_id=row.user_id,
                experience_id=row.experience_id,
                created_at=row.created_at,
            )

    def add_favorite(self, user_id: str, experience_id: str) -> FavoriteRecord:
        record = FavoriteRecord(
            favorite_id=_new_id(), user_id=user_id, experience_id=experience_id
        )
        with self._session() as session:
            session.add(
                FavoriteRow(
                    favorite_id=record.favorite_id,
                    user_id=user_id,
                    experience_id=experience_id,
                    created_at=record.created_at,
                )
            )
            session.commit()
            return record

    def remove_favorite(self, user_id: str, experience_id: str) -> int:
        with self._session() as session:
            result = session.execute(
                delete(FavoriteRow).where(
                    FavoriteRow.user_id == user_id,
                    FavoriteRow.experience_id == experience_id,
                )
            )
            session.commit()
            return result.rowcount or 0

    def list_favorite_experience_ids(self, user_id: str) -> list[str]:
        with self._session() as session:
            return list(
                session.execute(
                    select(FavoriteRow.experience_id)
                    .where(FavoriteRow.user_id == user_id)
                    .order_by(FavoriteRow.created_at.desc())
                ).scalars()
            )

    # Metrics

    def create_visitor_session(
        self, session_id: Optional[str] = None, user_id: Optional[str] = None
    ) -> str:
        session_id = session_id or _new_id()
        now = time.time()
        with self._session() as session:
            session.add(
                VisitorSessionRow(
                    session_id=session_id,
                    user_id=user_id,
                    check_in=now,
                    started_at=now,
                    last_seen=now,
                )
            )
            session.commit()
        return session_id

    def record_event(self, event: EventRecord) -> None:
        with self._session() as session:
            session.add(
                EventMetricRow(
                    event_id=_new_id(),
                    experience_id=event.experience_id,
                    business_id=event.business_id,
                    session_id=event.session_id,
                    user_id=event.user_id,
                    event_type=event.event_type,
                    source=event.source,
                    created_at=event.created_at,
                )
            )
            session.commit()

    def list_events(
        self,
        business_id: str,
        since: float,
        *,
        experience_id: Optional[str] = None,
        event_types: Optional[Iterable[str]] = None,
    ) -> list[EventRecord]:
        stmt = (
            select(EventMetricRow)
            .join(
                ExperienceRow,
                ExperienceRow.experience_id == EventMetricRow.experience_id,
            )
            .where(
                ExperienceRow.business_id == business_id,
                EventMetricRow.created_at >= since,
            )
            .order_by(EventMetricRow.created_at.asc())
        )
        if experience_id is not None:
            stmt = stmt.where(EventMetricRow.experience_id == experience_id)
        if event_types is not None:
            stmt = stmt.where(EventMetricRow.event_type.in_(list(event_types)))
        with self._session() as session:
            return [
                EventRecord(
                    experience_id=row.experience_id,
                    event_type=row.event_type,
                    source=row.source,
                    session_id=row.session_id,
                    user_id=row.user_id,
                    business_id=row.business_id,
                    created_at=row.created_at,
                )
                for row in session.execute(stmt).scalars()
            ]

    def list_saves(
        self,
        business_id: str,
        since: float,
        *,
        experience_id: Optional[str] = None,
    ) -> list[FavoriteRecord]:
        stmt = (
            select(FavoriteRow)
            .join(ExperienceRow, ExperienceRow.experience_id == FavoriteRow.experience_id)
            .where(
                ExperienceRow.business_id == business_id,
                FavoriteRow.created_at >= since,
            )
        )
        if experience_id is not None:
            stmt = stmt.where(FavoriteRow.experience_id == experience_id)
        with self._session() as session:
            return [
                FavoriteRecord(
                    favorite_id=row.favorite_id,
                    user_id=row.user_id,
                    experience_id=row.experience_id,
                    created_at=row.created_at,
                )
                for row in session.execute(stmt).scalars()
            ]

    # Waitlist

    def add_waitlist_entry(self, entry: WaitlistEntry) -> WaitlistEntry:
        entry.waitlist_id = entry.waitlist_id or _new_id()
        with self._session() as session:
            session.add(
                WaitlistRow(
                    waitlist_id=entry.waitlist_id,
                    contact_name=entry.contact_name,
                    contact_email=entry.contact_email,
                    business_name=entry.business_name,
                    website=entry.website,
                    county=entry.county,
                    category_id=entry.category_id,
                    challenges_getting_bookings=entry.challenges_getting_bookings,
                    status=entry.status,
                    created_at=entry.created_at,
                )
            )
            session.commit()
            return entry

    def count_waitlist(self) -> int:
        with self._session() as session:
            return session.execute(
                select(func.count()).select_from(WaitlistRow)
            ).scalar_one()

    def list_waitlist(self, limit: int = 25) -> list[WaitlistEntry]:
        stmt = (
            select(WaitlistRow, CategoryRow.category_name)
            .join(
                CategoryRow,
                CategoryRow.category_id == WaitlistRow.category_id,
                isouter=True,
            )
            .order_by(WaitlistRow.created_at.desc())
            .limit(limit)
        )
        with self._session() as session:
            return [
                self._to_waitlist(row, category_name)
                for row, category_name in session.execute(stmt)
            ]


# SQLAlchemy models (mirrors the platform's public schema)
Base = declarative_base()


class UserRow(Base):
    __tablename__ = "users"

    user_id = Column("id", String, primary_key=True)
    email = Column(String, nullable=False)
    full_name = Column(String, nullable=True)
    role = Column(String, nullable=False, default="user")
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(Float, nullable=False)


class BusinessRow(Base):
    __tablename__ = "business"

    business_id = Column(String, primary_key=True)
    user_id = Column(String, nullable=False, index=True)
    business_name = Column(String, nullable=False)
    business_email = Column(String, nullable=True)
    website_url = Column(String, nullable=True)
    location_text = Column(String, nullable=True)
    business_description = Column(Text, nullable=True)
    business_image_url = Column(String, nullable=True)
    status = Column(String, nullable=False, default="pending")
    created_at = Column(Float, nullable=False)
    updated_at = Column(Float, nullable=False)


class ExperienceRow(Base):
    __tablename__ = "experiences"

    experience_id = Column(String, primary_key=True)
    business_id = Column(String, nullable=False, index=True)
    title = Column(String, nullable=False)
    short_description = Column(Text, nullable=True)
    event_description = Column(Text, nullable=True)
    county = Column(String, nullable=True, index=True)
    duration_minutes = Column(Integer, nullable=True)
    min_price = Column(Float, nullable=True)
    max_price = Column(Float, nullable=True)
    price_tier = Column(String, nullable=True)
    status = Column(String, nullable=False, default="draft", index=True)
    is_published = Column(Boolean, nullable=False, default=False)
    booking_url = Column(String, nullable=True)
    what_you_do = Column(Text, nullable=True)
    whats_included = Column(Text, nullable=True)
    created_at = Column(Float, nullable=False)
    updated_at = Column(Float, nullable=False)


class CategoryRow(Base):
    __tablename__ = "category"

    category_id = Column(String, primary_key=True)
    category_name = Column(String, nullable=False)
    category_image_url = Column(String, nullable=True)


class CountyRow(Base):
    __tablename__ = "county"

    county_id = Column(String, primary_key=True)
    county_image_url = Column(String, nullable=True)


class ExperienceCategoryRow(Base):
    __tablename__ = "experience_category"

    experience_id = Column(String, primary_key=True)
    category_id = Column(String, primary_key=True, index=True)


class ImageRow(Base):
    __tablename__ = "image"

    image_id = Column(String, primary_key=True)
    experience_id = Column(String, nullable=False, index=True)
    image_url = Column(String, nullable=False)
    is_primary = Column(Boolean, nullable=False, default=False)
    display_order = Column(Integer, nullable=True)


class FavoriteRow(Base):
    __tablename__ = "favorite"
    __table_args__ = (UniqueConstraint("user_id", "experience_id"),)

    favorite_id = Column(String, primary_key=True)
    user_id = Column(String, nullable=False, index=True)
    experience_id = Column(String, nullable=False, index=True)
    created_at = Column(Float, nullable=False)


class VisitorSessionRow(Base):
    __tablename__ = "visitor_session"

    session_id = Column(String, primary_key=True)
    user_id = Column(String, nullable=True)
    check_in = Column(Float, nullable=False)
    started_at = Column(Float, nullable=False)
    last_seen = Column(Float, nullable=False)


class EventMetricRow(Base):
    __tablename__ = "event_metric"

    event_id = Column(String, primary_key=True)
    experience_id = Column(String, nullable=False, index=True)
    business_id = Column(String, nullable=True)
    session_id = Column(String, nullable=True)
    user_id = Column(String, nullable=True)
    event_type = Column(String, nullable=False)
    source = Column(String, nullable=False, default="direct")
    created_at = Column(Float, nullable=False, index=True)


class WaitlistRow(Base):
    __tablename__ = "business_waitlist"

    waitlist_id = Column(String, primary_key=True)
    contact_name = Column(String, nullable=False)
    contact_email = Column(String, nullable=False, unique=True)
    business_name = Column(String, nullable=False)
    website = Column(String, nullable=False)
    county = Column(String, nullable=False)
    category_id = Column(String, nullable=False)
    challenges_getting_bookings = Column(Text, nullable=False)
    status = Column(String, nullable=False, default="new")
    created_at = Column(Float, nullable=False)
