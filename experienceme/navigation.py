"""
Role-aware navigation shared by every page.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import StrEnum
from typing import Optional

from experienceme.auth import AuthUser
from experienceme.db import DataAccessError, DataClient

logger = logging.getLogger(__name__)

DEFAULT_ROLE = "user"
LOGIN_PATH = "/auth/login"

ROLE_DASHBOARDS = {
    "admin": "/dashboards/admin",
    "business": "/dashboards/business",
    "user": "/dashboards/user",
}


class NavVariant(StrEnum):
    GUEST = "guest"
    USER = "user"
    BUSINESS = "business"


def resolve_role(db: DataClient, user_id: Optional[str]) -> Optional[str]:
    """
    Role of the signed-in user, or None for a guest. A missing profile or a
    failed lookup degrades to the baseline role instead of failing the page.
    """
    if not user_id:
        return None
    try:
        profile = db.get_user_profile(user_id)
    except DataAccessError as exc:
        logger.warning("Role lookup failed for %s: %s", user_id, exc)
        return DEFAULT_ROLE
    if not profile or not profile.role:
        return DEFAULT_ROLE
    return profile.role


def select_nav(role: Optional[str]) -> NavVariant:
    if role is None:
        return NavVariant.GUEST
    if role == "business":
        return NavVariant.BUSINESS
    return NavVariant.USER


def dashboard_path_for_role(role: Optional[str]) -> str:
    return ROLE_DASHBOARDS.get(role or DEFAULT_ROLE, ROLE_DASHBOARDS[DEFAULT_ROLE])


@dataclass
class PageContext:
    """Per-request view of who is looking at the page."""

    user: Optional[AuthUser]
    role: Optional[str]
    nav: NavVariant

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    @property
    def user_id(self) -> Optional[str]:
        return self.user.user_id if self.user else None

    def as_dict(self) -> dict:
        return {
            "authenticated": self.is_authenticated,
            "user_id": self.user_id,
            "email": self.user.email if self.user else None,
            "role": self.role,
            "nav": self.nav.value,
            "dashboard_url": dashboard_path_for_role(self.role) if self.user else None,
        }


def build_page_context(db: DataClient, user: Optional[AuthUser]) -> PageContext:
    role = resolve_role(db, user.user_id if user else None)
    return PageContext(user=user, role=role, nav=select_nav(role))
