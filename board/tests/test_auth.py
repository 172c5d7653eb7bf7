"""Tests for password hashing, sessions, user management and profile updates."""
from __future__ import annotations

from datetime import timedelta

import pytest
from sqlalchemy import select

from board import auth
from board.errors import (
    AuthenticationError,
    ConflictError,
    PermissionDeniedError,
    ValidationError,
)
from board.models import AuthSession, User


@pytest.fixture()
def admin(session):
    user, created = auth.ensure_admin(session, email="Admin@Example.com", password="secret123", name="Admin")
    assert created is True
    return user


@pytest.fixture()
def member(session, admin):
    return auth.create_user(session, admin, email="rim@example.com", password="member123", name="Rim", entity="CEED")


class TestPasswords:
    def test_hash_roundtrip(self):
        digest, salt = auth.hash_password("hunter22")
        assert auth.verify_password("hunter22", digest, salt)
        assert not auth.verify_password("hunter23", digest, salt)

    def test_salt_is_random(self):
        assert auth.hash_password("same")[1] != auth.hash_password("same")[1]

    def test_token_hash_is_sha256_hex(self):
        assert len(auth.token_hash("abc")) == 64
        assert auth.token_hash("abc") == auth.token_hash("abc")


class TestSessions:
    def test_login_stores_only_token_hash(self, session, admin):
        user, token = auth.login(session, "admin@example.com", "secret123")
        assert user.id == admin.id
        stored = session.execute(select(AuthSession)).scalars().one()
        assert stored.token_hash == auth.token_hash(token)
        assert stored.token_hash != token

    def test_email_is_case_insensitive(self, session, admin):
        assert admin.email == "admin@example.com"
        user, _ = auth.login(session, "  ADMIN@example.com", "secret123")
        assert user.id == admin.id

    @pytest.mark.parametrize("email,password", [
        ("admin@example.com", "wrong-pass"),
        ("nobody@example.com", "secret123"),
    ])
    def test_bad_credentials(self, session, admin, email, password):
        with pytest.raises(AuthenticationError) as exc:
            auth.login(session, email, password)
        assert exc.value.status_code == 401
        assert str(exc.value) == "Invalid email or password"

    def test_user_for_token(self, session, admin):
        _, token = auth.login(session, "admin@example.com", "secret123")
        assert auth.user_for_token(session, token).id == admin.id
        assert auth.user_for_token(session, "not-a-token") is None
        assert auth.user_for_token(session, None) is None

    def test_expired_session_is_removed(self, session, admin):
        _, token = auth.login(session, "admin@example.com", "secret123")
        stored = session.execute(select(AuthSession)).scalars().one()
        stored.expires_at = stored.created_at - timedelta(days=1)
        session.commit()

        assert auth.user_for_token(session, token) is None
        assert session.execute(select(AuthSession)).scalars().first() is None

    def test_logout(self, session, admin):
        _, token = auth.login(session, "admin@example.com", "secret123")
        auth.logout(session, token)
        assert auth.user_for_token(session, token) is None
        auth.logout(session, None)


class TestUserManagement:
    def test_list_newest_first(self, session, admin, member):
        assert [u.email for u in auth.list_users(session, admin)] == ["rim@example.com", "admin@example.com"]

    def test_non_admin_rejected(self, session, member):
        with pytest.raises(PermissionDeniedError):
            auth.list_users(session, member)
        with pytest.raises(PermissionDeniedError):
            auth.create_user(session, member, email="x@example.com", password="secret123", name="X")

    def test_duplicate_email(self, session, admin, member):
        with pytest.raises(ConflictError):
            auth.create_user(session, admin, email="RIM@example.com", password="secret123", name="Dup")

    def test_short_password(self, session, admin):
        with pytest.raises(ValidationError):
            auth.create_user(session, admin, email="x@example.com", password="123", name="X")

    def test_unknown_entity(self, session, admin):
        with pytest.raises(ValidationError):
            auth.create_user(session, admin, email="x@example.com", password="secret123", name="X", entity="AWB")

    def test_update_user(self, session, admin, member):
        auth.update_user(session, admin, member.id, {"is_admin": True, "name": None, "entity": "WENOV"})
        refreshed = session.get(User, member.id)
        assert refreshed.is_admin is True
        assert refreshed.entity == "WENOV"
        assert refreshed.name == "Rim"

    def test_cannot_delete_self(self, session, admin):
        with pytest.raises(PermissionDeniedError, match="your own account"):
            auth.delete_user(session, admin, admin.id)

    def test_delete_removes_sessions(self, session, admin, member):
        _, token = auth.login(session, "rim@example.com", "member123")
        auth.delete_user(session, admin, member.id)
        assert session.get(User, member.id) is None
        assert auth.user_for_token(session, token) is None

    def test_ensure_admin_resets_existing(self, session, member):
        user, created = auth.ensure_admin(session, email="rim@example.com", password="newpass1", name="")
        assert created is False
        assert user.is_admin is True
        assert user.name == "Rim"
        auth.authenticate(session, "rim@example.com", "newpass1")


class TestProfile:
    def test_change_name(self, session, member):
        auth.update_profile(session, member, name="Rim H.")
        assert session.get(User, member.id).name == "Rim H."

    def test_change_password(self, session, member):
        auth.update_profile(session, member, current_password="member123", new_password="fresh-pass")
        auth.authenticate(session, "rim@example.com", "fresh-pass")
        with pytest.raises(AuthenticationError):
            auth.authenticate(session, "rim@example.com", "member123")

    def test_wrong_current_password(self, session, member):
        with pytest.raises(ValidationError, match="Current password is incorrect"):
            auth.update_profile(session, member, current_password="nope", new_password="fresh-pass")

    def test_nothing_to_change(self, session, member):
        before = member.password_hash
        auth.update_profile(session, member)
        assert member.password_hash == before
