"""
Registration, login and logout on top of the hosted auth provider.
"""

from __future__ import annotations

import logging
import re
import uuid
from dataclasses import dataclass
from typing import Optional

import requests

from experienceme.auth import (
    AuthClient,
    AuthError,
    AuthSession,
    AuthUnavailableError,
    AuthUser,
)
from experienceme.db import (
    BusinessRecord,
    DataAccessError,
    DataClient,
    UserProfile,
)
from experienceme.errors import ServiceUnavailableError, ValidationError
from experienceme.navigation import dashboard_path_for_role, resolve_role

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MIN_PASSWORD_LENGTH = 6
REGISTRATION_ROLES = ("user", "business")
AUTH_UNAVAILABLE_MESSAGE = "Sign-in is temporarily unavailable. Please try again shortly."


class AccountSetupError(Exception):
    """The auth account exists but the profile rows could not be written."""


@dataclass
class RegistrationForm:
    full_name: str
    email: str
    password: str
    confirm_password: str
    role: str = "user"


@dataclass
class RegistrationResult:
    user: AuthUser
    profile: UserProfile
    business: Optional[BusinessRecord] = None


@dataclass
class LoginResult:
    session: AuthSession
    role: str
    redirect: str


def validate_registration(form: RegistrationForm) -> RegistrationForm:
    full_name = (form.full_name or "").strip()
    email = (form.email or "").strip()
    if not full_name or not email or not form.password:
        raise ValidationError("Please fill in all fields.")
    if not EMAIL_PATTERN.match(email):
        raise ValidationError("Please enter a valid email address.")
    if form.password != form.confirm_password:
        raise ValidationError("Passwords do not match")
    if len(form.password) < MIN_PASSWORD_LENGTH:
        raise ValidationError("Password must be at least 6 characters long")
    if form.role not in REGISTRATION_ROLES:
        raise ValidationError("Please choose an account type.")
    return RegistrationForm(
        full_name=full_name,
        email=email,
        password=form.password,
        confirm_password=form.confirm_password,
        role=form.role,
    )


def register(
    db: DataClient, auth: AuthClient, form: RegistrationForm
) -> RegistrationResult:
    """
    Create the auth account, then the `users` profile row and, for business
    accounts, a pending `business` row.
    """
    form = validate_registration(form)
    try:
        user = auth.sign_up(
            form.email,
            form.password,
            {"full_name": form.full_name, "role": form.role},
        )
    except (AuthUnavailableError, requests.RequestException) as exc:
        logger.error("Auth service unavailable during sign-up: %s", exc)
        raise ServiceUnavailableError(AUTH_UNAVAILABLE_MESSAGE) from exc
    except AuthError as exc:
        logger.info("Sign-up rejected for %s: %s", form.email, exc)
        if "already" in str(exc).lower():
            raise ValidationError("An account with this email already exists.") from exc
        raise ValidationError("Could not create your account. Please try again.") from exc

    try:
        profile = db.create_user_profile(
            UserProfile(
                user_id=user.user_id,
                email=form.email,
                full_name=form.full_name,
                role=form.role,
                is_active=True,
            )
        )
        business = None
        if form.role == "business":
            business = db.create_business(
                BusinessRecord(
                    business_id=uuid.uuid4().hex,
                    user_id=user.user_id,
                    business_name=f"{form.full_name}'s Business",
                    business_email=form.email,
                    status="pending",
                )
            )
    except DataAccessError as exc:
        logger.error("Profile setup failed for %s: %s", user.user_id, exc)
        raise AccountSetupError(
            "Account created but profile setup incomplete. Please contact support."
        ) from exc
    return RegistrationResult(user=user, profile=profile, business=business)


def _login_message(exc: AuthError) -> str:
    text = str(exc)
    if "Invalid login credentials" in text:
        return "Invalid email or password. Please try again."
    if "Email not confirmed" in text:
        return "Please verify your email address before logging in."
    return "Unable to sign in. Please try again."


def login(db: DataClient, auth: AuthClient, email: str, password: str) -> LoginResult:
    email = (email or "").strip()
    if not email or not password:
        raise ValidationError("Please enter your email and password.")
    try:
        session = auth.sign_in(email, password)
    except (AuthUnavailableError, requests.RequestException) as exc:
        logger.error("Auth service unavailable during sign-in: %s", exc)
        raise ServiceUnavailableError(AUTH_UNAVAILABLE_MESSAGE) from exc
    except AuthError as exc:
        raise ValidationError(_login_message(exc)) from exc

    try:
        db.create_visitor_session(user_id=session.user.user_id)
    except DataAccessError as exc:
        logger.warning("Session tracking failed (non-critical): %s", exc)

    role = resolve_role(db, session.user.user_id)
    return LoginResult(
        session=session, role=role, redirect=dashboard_path_for_role(role)
    )


def logout(auth: AuthClient, access_token: Optional[str]) -> None:
    if not access_token:
        return
    try:
        auth.sign_out(access_token)
    except (AuthError, requests.RequestException) as exc:
        logger.warning("Sign-out failed: %s", exc)
