"""
Aggregates for the business metrics dashboard, built from append-only event
and favorite rows. Days are calendar days in UTC.
"""

from __future__ import annotations

import time
from collections import Counter
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Iterable, Optional

from experienceme.db import DataClient
from experienceme.metrics import EventKind

DAY_SECONDS = 24 * 60 * 60
TOP_REFERRERS = 6

_SOURCE_LABELS = {
    "direct": "Direct",
    "finder": "Finder",
    "search": "Search",
    "share": "Share",
    "experiences": "Explore page",
}


def _utc_day(ts: float) -> str:
    return datetime.fromtimestamp(ts, tz=timezone.utc).date().isoformat()


def build_day_list(start: date, end: date) -> list[str]:
    """Every day from start to end inclusive, as ISO dates."""
    days = []
    current = start
    while current <= end:
        days.append(current.isoformat())
        current += timedelta(days=1)
    return days


@dataclass
class DailySeries:
    days: list[str]
    views: list[int]
    saves: list[int]
    booking_clicks: list[int]


def daily_series(
    days: list[str],
    view_times: Iterable[float],
    save_times: Iterable[float],
    click_times: Iterable[float],
) -> DailySeries:
    """Counts per day, aligned with `days`; days without activity are zero."""
    views = Counter(_utc_day(ts) for ts in view_times)
    saves = Counter(_utc_day(ts) for ts in save_times)
    clicks = Counter(_utc_day(ts) for ts in click_times)
    return DailySeries(
        days=list(days),
        views=[views.get(d, 0) for d in days],
        saves=[saves.get(d, 0) for d in days],
        booking_clicks=[clicks.get(d, 0) for d in days],
    )


def clamp_percent(value: float) -> float:
    return max(0.0, min(100.0, value))


@dataclass
class FunnelStep:
    label: str
    percent: float


def funnel(views: int, saves: int, clicks: int) -> list[FunnelStep]:
    def rate(part: int, whole: int) -> float:
        return clamp_percent(part / whole * 100) if whole > 0 else 0.0

    return [
        FunnelStep("Views to Saves", round(rate(saves, views), 1)),
        FunnelStep("Saves to Booking clicks", round(rate(clicks, saves), 1)),
        FunnelStep("Views to Booking clicks", round(rate(clicks, views), 1)),
    ]


def pretty_source(source: Optional[str]) -> str:
    s = (source or "").lower()
    if s in _SOURCE_LABELS:
        return _SOURCE_LABELS[s]
    return s[:1].upper() + s[1:]


@dataclass
class Referrer:
    source: str
    label: str
    count: int


def top_referrers(sources: Iterable[Optional[str]], limit: int = TOP_REFERRERS) -> list[Referrer]:
    """Largest sources first; anything beyond `limit` is folded into "other"."""
    counts = Counter((s or "direct").lower() for s in sources)
    ranked = sorted(counts.items(), key=lambda item: item[1], reverse=True)
    result = [Referrer(src, pretty_source(src), n) for src, n in ranked[:limit]]
    other = sum(n for _, n in ranked[limit:])
    if other > 0:
        result.append(Referrer("other", pretty_source("other"), other))
    return result


@dataclass
class MetricsSnapshot:
    days: int
    experience_id: Optional[str]
    views: int
    saves: int
    booking_clicks: int
    funnel: list[FunnelStep] = field(default_factory=list)
    daily: Optional[DailySeries] = None
    referrers: list[Referrer] = field(default_factory=list)


def business_snapshot(
    db: DataClient,
    business_id: str,
    *,
    days: int = 30,
    experience_id: Optional[str] = None,
    now: Optional[float] = None,
) -> MetricsSnapshot:
    now = time.time() if now is None else now
    since = now - days * DAY_SECONDS

    events = db.list_events(business_id, since, experience_id=experience_id)
    saves = db.list_saves(business_id, since, experience_id=experience_id)
    views = [e for e in events if e.event_type == EventKind.VIEW.value]
    clicks = [e for e in events if e.event_type == EventKind.BOOKING_CLICK.value]

    start = datetime.fromtimestamp(since, tz=timezone.utc).date()
    end = datetime.fromtimestamp(now, tz=timezone.utc).date()
    series = daily_series(
        build_day_list(start, end),
        (e.created_at for e in views),
        (f.created_at for f in saves),
        (e.created_at for e in clicks),
    )
    return MetricsSnapshot(
        days=days,
        experience_id=experience_id,
        views=len(views),
        saves=len(saves),
        booking_clicks=len(clicks),
        funnel=funnel(len(views), len(saves), len(clicks)),
        daily=series,
        referrers=top_referrers(e.source for e in views),
    )
