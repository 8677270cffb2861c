"""
Session store: local identity provider backed by the users table.

Passwords are hashed with bcrypt. Listeners registered through
``on_auth_state_change`` receive the signed-in user (or None) on every
transition.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable

import bcrypt

from config import BCRYPT_ROUNDS, REQUIRE_EMAIL_CONFIRMATION
from services.database_service import DatabaseManager

LOGGER = logging.getLogger("studybuddy.auth")

AuthListener = Callable[[dict[str, Any] | None], None]


@dataclass
class AuthResult:
    success: bool
    user: dict[str, Any] | None = None
    needs_email_confirmation: bool = False
    error: str | None = None


def hash_password(password: str) -> str:
    # bcrypt only looks at the first 72 bytes
    password_bytes = password.encode("utf-8")[:72]
    return bcrypt.hashpw(password_bytes, bcrypt.gensalt(rounds=BCRYPT_ROUNDS)).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8")[:72], password_hash.encode("utf-8"))
    except ValueError:
        return False


def _public_user(row: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": row["id"],
        "email": row["email"],
        "email_confirmed": bool(row.get("email_confirmed")),
        "created_at": row.get("created_at"),
    }


class SessionStore:
    """Current-user identity for one browser session."""

    def __init__(self, gateway: DatabaseManager, require_email_confirmation: bool = REQUIRE_EMAIL_CONFIRMATION):
        self.gateway = gateway
        self.require_email_confirmation = require_email_confirmation
        self.current_user: dict[str, Any] | None = None
        self._listeners: list[AuthListener] = []

    def on_auth_state_change(self, callback: AuthListener) -> Callable[[], None]:
        """Register *callback*; it is invoked immediately with the current user. Returns an unsubscribe function."""
        self._listeners.append(callback)
        callback(self.current_user)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    def _set_user(self, user: dict[str, Any] | None) -> None:
        self.current_user = user
        for listener in list(self._listeners):
            listener(user)

    def is_authenticated(self) -> bool:
        return self.current_user is not None

    @property
    def user_id(self) -> str | None:
        return self.current_user["id"] if self.current_user else None

    def sign_up(self, email: str, password: str) -> AuthResult:
        email = (email or "").strip().lower()
        if not email or not password:
            return AuthResult(success=False, error="Email and password are required")

        confirmed = not self.require_email_confirmation
        result = self.gateway.create_user(email, hash_password(password), email_confirmed=confirmed)
        if not result.success:
            LOGGER.info("Sign up failed for %s: %s", email, result.error)
            return AuthResult(success=False, error=result.error)

        user = _public_user(result.data)
        if not confirmed:
            return AuthResult(success=True, user=user, needs_email_confirmation=True)
        self._set_user(user)
        return AuthResult(success=True, user=user)

    def sign_in(self, email: str, password: str) -> AuthResult:
        email = (email or "").strip().lower()
        result = self.gateway.get_user_by_email(email)
        if not result.success:
            return AuthResult(success=False, error=result.error)

        row = result.data
        if row is None or not verify_password(password or "", row["password_hash"]):
            return AuthResult(success=False, error="Invalid login credentials")
        if not row.get("email_confirmed"):
            return AuthResult(success=False, error="Email not confirmed")

        user = _public_user(row)
        self._set_user(user)
        LOGGER.info("User signed in: %s", user["id"])
        return AuthResult(success=True, user=user)

    def sign_out(self) -> AuthResult:
        self._set_user(None)
        return AuthResult(success=True)

    def confirm_email(self, email: str) -> AuthResult:
        result = self.gateway.confirm_user_email((email or "").strip().lower())
        if not result.success:
            return AuthResult(success=False, error=result.error)
        return AuthResult(success=True)
