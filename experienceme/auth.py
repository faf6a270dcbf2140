"""
Authentication client for the platform's hosted auth REST API and an in-memory test implementation.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import Dict, Optional, Protocol

import requests

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 15  # seconds


class AuthError(Exception):
    """Raised when the auth service rejects credentials or a sign-up."""


class AuthUnavailableError(AuthError):
    """The auth service could not be reached or answered with a server error."""


@dataclass
class AuthUser:
    user_id: str
    email: str
    metadata: dict = field(default_factory=dict)


@dataclass
class AuthSession:
    access_token: str
    user: AuthUser
    refresh_token: Optional[str] = None


class AuthClient(Protocol):
    """Operations the service needs from the hosted auth provider."""

    def sign_up(self, email: str, password: str, metadata: dict) -> AuthUser:
        ...

    def sign_in(self, email: str, password: str) -> AuthSession:
        ...

    def sign_out(self, access_token: str) -> None:
        ...

    def get_user(self, access_token: str) -> Optional[AuthUser]:
        ...


class InMemoryAuthClient:
    """Simple in-memory auth provider for development and tests."""

    def __init__(self):
        self.accounts: Dict[str, tuple[str, AuthUser]] = {}
        self.tokens: Dict[str, AuthUser] = {}

    def reset(self) -> None:
        self.accounts.clear()
        self.tokens.clear()

    def sign_up(self, email: str, password: str, metadata: dict) -> AuthUser:
        key = email.lower()
        if key in self.accounts:
            raise AuthError("User already registered")
        user = AuthUser(user_id=uuid.uuid4().hex, email=key, metadata=dict(metadata))
        self.accounts[key] = (password, user)
        return user

    def sign_in(self, email: str, password: str) -> AuthSession:
        account = self.accounts.get(email.lower())
        if not account or account[0] != password:
            raise AuthError("Invalid login credentials")
        token = uuid.uuid4().hex
        self.tokens[token] = account[1]
        return AuthSession(access_token=token, user=account[1])

    def sign_out(self, access_token: str) -> None:
        self.tokens.pop(access_token, None)

    def get_user(self, access_token: str) -> Optional[AuthUser]:
        return self.tokens.get(access_token)


class GoTrueAuthClient:
    """
    Talks to the platform's `/auth/v1` endpoints with the project's anon key.
    """

    def __init__(self, base_url: str, anon_key: str):
        if not base_url or not anon_key:
            raise ValueError("SUPABASE_URL and SUPABASE_ANON_KEY are required")
        self.base_url = base_url.rstrip("/") + "/auth/v1"
        self.anon_key = anon_key
        self._http = requests.Session()
        self._http.headers.update({"apikey": anon_key})

    def _headers(self, access_token: Optional[str] = None) -> dict:
        token = access_token or self.anon_key
        return {"Authorization": f"Bearer {token}"}

    @staticmethod
    def _error_message(response: requests.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text or f"HTTP {response.status_code}"
        return (
            body.get("msg")
            or body.get("error_description")
            or body.get("message")
            or body.get("error")
            or f"HTTP {response.status_code}"
        )

    @staticmethod
    def _to_user(payload: dict) -> AuthUser:
        return AuthUser(
            user_id=payload["id"],
            email=payload.get("email") or "",
            metadata=payload.get("user_metadata") or {},
        )

    def _send(self, method: str, path: str, **kwargs) -> requests.Response:
        try:
            return self._http.request(
                method, f"{self.base_url}{path}", timeout=REQUEST_TIMEOUT, **kwargs
            )
        except requests.RequestException as exc:
            raise AuthUnavailableError(f"Auth request to {path} failed: {exc}") from exc

    @staticmethod
    def _json(response: requests.Response) -> dict:
        try:
            return response.json()
        except ValueError as exc:
            raise AuthUnavailableError(
                f"Auth service returned a non-JSON body (HTTP {response.status_code})"
            ) from exc

    def sign_up(self, email: str, password: str, metadata: dict) -> AuthUser:
        response = self._send(
            "POST",
            "/signup",
            json={"email": email, "password": password, "data": metadata},
            headers=self._headers(),
        )
        if response.status_code >= 500:
            raise AuthUnavailableError(self._error_message(response))
        if response.status_code >= 400:
            raise AuthError(self._error_message(response))
        body = self._json(response)
        # With email confirmation on, the user comes back without a session.
        return self._to_user(body.get("user") or body)

    def sign_in(self, email: str, password: str) -> AuthSession:
        response = self._send(
            "POST",
            "/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
            headers=self._headers(),
        )
        if response.status_code >= 500:
            raise AuthUnavailableError(self._error_message(response))
        if response.status_code >= 400:
            raise AuthError(self._error_message(response))
        body = self._json(response)
        return AuthSession(
            access_token=body["access_token"],
            refresh_token=body.get("refresh_token"),
            user=self._to_user(body["user"]),
        )

    def sign_out(self, access_token: str) -> None:
        response = self._send("POST", "/logout", headers=self._headers(access_token))
        if response.status_code >= 400:
            logger.warning("Sign-out failed: %s", self._error_message(response))

    def get_user(self, access_token: str) -> Optional[AuthUser]:
        response = self._send("GET", "/user", headers=self._headers(access_token))
        if response.status_code in (401, 403):
            return None
        if response.status_code >= 400:
            raise AuthUnavailableError(self._error_message(response))
        return self._to_user(self._json(response))
