"""
Early business access waitlist.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, fields

from experienceme.accounts import EMAIL_PATTERN
from experienceme.db import DataClient, DuplicateEntryError, WaitlistEntry
from experienceme.errors import ConflictError, ValidationError

logger = logging.getLogger(__name__)

SUCCESS_MESSAGE = (
    "Success! You are on the Early Business Access list. "
    "We will email you with next steps."
)
DUPLICATE_MESSAGE = (
    "You are already on the waitlist with this email. "
    "If you need to update details, contact us."
)
OVERVIEW_LIMIT = 25


@dataclass
class WaitlistForm:
    contact_name: str
    contact_email: str
    business_name: str
    website: str
    county: str
    category_id: str
    challenges_getting_bookings: str


def validate_waitlist_entry(form: WaitlistForm) -> WaitlistEntry:
    values = {f.name: (getattr(form, f.name) or "").strip() for f in fields(form)}
    values["contact_email"] = values["contact_email"].lower()
    if not all(values.values()):
        raise ValidationError("Please fill in all required fields before submitting.")
    if not EMAIL_PATTERN.match(values["contact_email"]):
        raise ValidationError("Please enter a valid email address.")
    return WaitlistEntry(status="new", **values)


def join_waitlist(db: DataClient, form: WaitlistForm) -> WaitlistEntry:
    entry = validate_waitlist_entry(form)
    try:
        return db.add_waitlist_entry(entry)
    except DuplicateEntryError as exc:
        raise ConflictError(DUPLICATE_MESSAGE) from exc


@dataclass
class WaitlistOverview:
    total: int
    latest: list[WaitlistEntry]


def waitlist_overview(db: DataClient, limit: int = OVERVIEW_LIMIT) -> WaitlistOverview:
    return WaitlistOverview(total=db.count_waitlist(), latest=db.list_waitlist(limit))
