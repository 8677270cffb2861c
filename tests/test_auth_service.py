"""Tests for services/auth_service — bcrypt hashing and the session store."""

from __future__ import annotations

from services.auth_service import SessionStore, hash_password, verify_password


class TestPasswords:
    def test_hash_round_trip(self):
        hashed = hash_password("s3cret")
        assert hashed != "s3cret"
        assert verify_password("s3cret", hashed)
        assert not verify_password("wrong", hashed)

    def test_garbage_hash_does_not_verify(self):
        assert verify_password("x", "not-a-bcrypt-hash") is False


class TestSessionStore:
    def test_sign_up_signs_in_when_confirmation_disabled(self, gateway):
        store = SessionStore(gateway, require_email_confirmation=False)
        result = store.sign_up("  Student@Example.com ", "pw")
        assert result.success
        assert result.user["email"] == "student@example.com"
        assert store.is_authenticated()

    def test_sign_up_with_confirmation(self, gateway):
        store = SessionStore(gateway, require_email_confirmation=True)
        result = store.sign_up("a@example.com", "pw")
        assert result.success and result.needs_email_confirmation
        assert not store.is_authenticated()

        assert store.sign_in("a@example.com", "pw").error == "Email not confirmed"
        assert store.confirm_email("a@example.com").success
        assert store.sign_in("a@example.com", "pw").success

    def test_duplicate_sign_up(self, gateway):
        store = SessionStore(gateway, require_email_confirmation=False)
        store.sign_up("a@example.com", "pw")
        assert store.sign_up("A@example.com", "pw").error == "User already registered"

    def test_missing_fields(self, gateway):
        store = SessionStore(gateway)
        assert not store.sign_up("", "pw").success

    def test_bad_credentials(self, gateway):
        store = SessionStore(gateway, require_email_confirmation=False)
        store.sign_up("a@example.com", "pw")
        store.sign_out()
        assert store.sign_in("a@example.com", "nope").error == "Invalid login credentials"
        assert store.sign_in("b@example.com", "pw").error == "Invalid login credentials"

    def test_listeners(self, gateway):
        store = SessionStore(gateway, require_email_confirmation=False)
        seen = []
        unsubscribe = store.on_auth_state_change(seen.append)
        assert seen == [None]

        store.sign_up("a@example.com", "pw")
        assert seen[-1]["email"] == "a@example.com"
        store.sign_out()
        assert seen[-1] is None

        unsubscribe()
        store.sign_in("a@example.com", "pw")
        assert len(seen) == 3
