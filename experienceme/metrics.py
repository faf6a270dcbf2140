"""
Best-effort event logging for experience pages.

De-duplication state lives in the visitor's own session store, so it only
stops a browser from inflating counts by refreshing. It is not a guarantee.
"""

from __future__ import annotations

import logging
import time
import uuid
from enum import StrEnum
from typing import Callable, MutableMapping, Optional

from experienceme.db import DataAccessError, DataClient, EventRecord

logger = logging.getLogger(__name__)

SESSION_KEY = "visitor_session_id"
DEFAULT_SOURCE = "direct"
# Marks live in the signed session cookie, which browsers cap at 4 KB.
MAX_DEDUPE_MARKS = 25


class EventKind(StrEnum):
    VIEW = "view"
    BOOKING_CLICK = "booking_click"

    @property
    def dedupe_prefix(self) -> str:
        return "viewed" if self is EventKind.VIEW else "booking"


def source_from_param(src: Optional[str]) -> str:
    """Attribution tag from the `src` query parameter."""
    src = (src or "").strip().lower()
    return src or DEFAULT_SOURCE


class MetricsRecorder:
    """
    Records view and booking-click events at most once per experience and
    kind within the cool-down window. Failures are logged and swallowed.
    """

    def __init__(
        self,
        db: DataClient,
        store: MutableMapping,
        *,
        cooldown_minutes: int = 30,
        clock: Callable[[], float] = time.time,
        max_marks: int = MAX_DEDUPE_MARKS,
    ):
        self.db = db
        self.store = store
        self.cooldown_seconds = cooldown_minutes * 60
        self.clock = clock
        self.max_marks = max_marks

    def session_id(self, user_id: Optional[str] = None) -> str:
        """Visitor id, created once per browser and reused afterwards."""
        session_id = self.store.get(SESSION_KEY)
        if session_id:
            return session_id
        session_id = str(uuid.uuid4())
        self.store[SESSION_KEY] = session_id
        try:
            self.db.create_visitor_session(session_id, user_id)
        except DataAccessError as exc:
            # The id stays usable locally even if the row is rejected.
            logger.warning("visitor_session insert failed: %s", exc)
        return session_id

    @staticmethod
    def dedupe_key(experience_id: str, kind: EventKind) -> str:
        return f"{kind.dedupe_prefix}_{experience_id}"

    def prune_marks(self, now: float) -> None:
        """
        Drop dedupe marks past the cool-down, then the oldest live ones until
        there is room for one more.
        """
        prefixes = tuple(f"{kind.dedupe_prefix}_" for kind in EventKind)
        marks = {}
        for key in [k for k in self.store if k.startswith(prefixes)]:
            try:
                stamp = float(self.store[key])
            except (TypeError, ValueError):
                stamp = 0.0
            if now - stamp >= self.cooldown_seconds:
                del self.store[key]
            else:
                marks[key] = stamp
        excess = len(marks) - (self.max_marks - 1)
        for key in sorted(marks, key=marks.get)[: max(excess, 0)]:
            del self.store[key]

    def record_once(
        self,
        experience_id: str,
        kind: EventKind,
        *,
        source: Optional[str] = None,
        user_id: Optional[str] = None,
        business_id: Optional[str] = None,
    ) -> bool:
        """Returns True when an event row was written."""
        key = self.dedupe_key(experience_id, kind)
        now = self.clock()
        try:
            last = float(self.store.get(key) or 0)
        except (TypeError, ValueError):
            last = 0.0
        if now - last < self.cooldown_seconds:
            return False
        self.prune_marks(now)
        # Marked before the insert, so a failed insert is not retried within the window.
        self.store[key] = now

        event = EventRecord(
            experience_id=experience_id,
            event_type=kind.value,
            source=source_from_param(source),
            session_id=self.session_id(user_id),
            user_id=user_id,
            business_id=business_id,
            created_at=now,
        )
        try:
            self.db.record_event(event)
        except DataAccessError as exc:
            logger.warning("event_metric insert failed for %s: %s", experience_id, exc)
            return False
        return True
