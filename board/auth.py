"""Password hashing, cookie sessions, user management and profile updates."""
from __future__ import annotations

import base64
import hashlib
import hmac
import logging
import secrets
from datetime import UTC, datetime, timedelta

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from board.config import get_settings
from board.errors import (
    AuthenticationError,
    ConflictError,
    PermissionDeniedError,
    ValidationError,
)
from board.models import AuthSession, User
from board.services import apply_updates, get_or_raise

log = logging.getLogger(__name__)

USER_ENTITIES = ("WENOV", "CEED")
USER_UPDATABLE_FIELDS = ("name", "entity", "is_admin")

# ---------------------------------------------------------------------------
# Passwords and tokens
# ---------------------------------------------------------------------------


def hash_password(password: str, salt_b64: str | None = None) -> tuple[str, str]:
    salt = base64.b64decode(salt_b64) if salt_b64 else secrets.token_bytes(16)
    iterations = get_settings().password_iterations
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, iterations)
    return base64.b64encode(digest).decode("utf-8"), base64.b64encode(salt).decode("utf-8")


def verify_password(password: str, expected_hash: str, salt_b64: str) -> bool:
    computed, _ = hash_password(password, salt_b64)
    return hmac.compare_digest(computed, expected_hash)


def token_hash(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def _utcnow() -> datetime:
    return datetime.now(UTC).replace(tzinfo=None, microsecond=0)


def _check_password_length(password: str) -> None:
    min_length = get_settings().password_min_length
    if len(password) < min_length:
        raise ValidationError(f"Password must be at least {min_length} characters")


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------


def authenticate(session: Session, email: str, password: str) -> User:
    user = session.execute(select(User).where(User.email == email.strip().lower())).scalars().first()
    if user is None or not verify_password(password, user.password_hash, user.password_salt):
        log.warning("Rejected login for %s", email)
        raise AuthenticationError("Invalid email or password")
    return user


def create_session(session: Session, user: User) -> str:
    """Persist a new session for *user* and return the raw cookie token."""
    raw_token = secrets.token_urlsafe(32)
    now = _utcnow()
    session.add(AuthSession(
        user_id=user.id, token_hash=token_hash(raw_token),
        expires_at=now + timedelta(days=get_settings().session_days),
        created_at=now, last_seen_at=now,
    ))
    session.commit()
    return raw_token


def login(session: Session, email: str, password: str) -> tuple[User, str]:
    user = authenticate(session, email, password)
    token = create_session(session, user)
    log.info("User %s logged in", user.email)
    return user, token


def user_for_token(session: Session, token: str | None) -> User | None:
    if not token:
        return None
    auth_session = session.execute(
        select(AuthSession).where(AuthSession.token_hash == token_hash(token))
    ).scalars().first()
    if auth_session is None:
        return None
    now = _utcnow()
    if auth_session.expires_at < now:
        session.delete(auth_session)
        session.commit()
        return None
    auth_session.last_seen_at = now
    session.commit()
    return auth_session.user


def logout(session: Session, token: str | None) -> None:
    if not token:
        return
    session.execute(delete(AuthSession).where(AuthSession.token_hash == token_hash(token)))
    session.commit()


# ---------------------------------------------------------------------------
# Users (admin only)
# ---------------------------------------------------------------------------


def user_dict(user: User) -> dict:
    return {
        "id": user.id, "email": user.email, "name": user.name, "entity": user.entity,
        "is_admin": bool(user.is_admin),
        "created_at": user.created_at.isoformat() if user.created_at else None,
    }


def require_admin(user: User | None) -> User:
    if user is None:
        raise AuthenticationError("Not authenticated")
    if not user.is_admin:
        raise PermissionDeniedError("Admin access required")
    return user


def list_users(session: Session, actor: User) -> list[User]:
    require_admin(actor)
    return list(session.execute(select(User).order_by(User.created_at.desc(), User.id.desc())).scalars())


def _check_entity(entity: str | None) -> None:
    if entity is not None and entity not in USER_ENTITIES:
        raise ValidationError(f"Invalid entity {entity!r} (expected WENOV or CEED)")


def _new_user(session: Session, *, email: str, password: str, name: str, entity: str, is_admin: bool) -> User:
    email = email.strip().lower()
    if not email:
        raise ValidationError("Email is required")
    _check_entity(entity)
    _check_password_length(password)
    existing = session.execute(select(User).where(User.email == email)).scalars().first()
    if existing is not None:
        raise ConflictError(f"A user with email {email} already exists")
    password_hash, salt = hash_password(password)
    user = User(
        email=email, name=name, entity=entity, is_admin=is_admin,
        password_hash=password_hash, password_salt=salt,
    )
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


def create_user(
    session: Session, actor: User, *, email: str, password: str, name: str,
    entity: str = "WENOV", is_admin: bool = False,
) -> User:
    require_admin(actor)
    user = _new_user(session, email=email, password=password, name=name, entity=entity, is_admin=is_admin)
    log.info("Admin %s created user %s", actor.email, user.email)
    return user


def update_user(session: Session, actor: User, user_id: int, updates: dict) -> User:
    require_admin(actor)
    user = get_or_raise(session, User, user_id, "User")
    _check_entity(updates.get("entity"))
    apply_updates(user, updates, USER_UPDATABLE_FIELDS)
    session.commit()
    return user


def delete_user(session: Session, actor: User, user_id: int) -> None:
    require_admin(actor)
    if actor.id == user_id:
        raise PermissionDeniedError("You cannot delete your own account")
    user = get_or_raise(session, User, user_id, "User")
    session.delete(user)
    session.commit()
    log.info("Admin %s deleted user %s", actor.email, user.email)


def ensure_admin(session: Session, *, email: str, password: str, name: str) -> tuple[User, bool]:
    """Create an admin account, or reset the password of an existing one.

    Returns the user and whether it was newly created.
    """
    email = email.strip().lower()
    user = session.execute(select(User).where(User.email == email)).scalars().first()
    if user is None:
        return _new_user(session, email=email, password=password, name=name, entity="WENOV", is_admin=True), True
    _check_password_length(password)
    user.password_hash, user.password_salt = hash_password(password)
    user.name = name or user.name
    user.is_admin = True
    session.commit()
    return user, False


# ---------------------------------------------------------------------------
# Profile
# ---------------------------------------------------------------------------


def update_profile(
    session: Session, user: User, *, name: str | None = None,
    current_password: str | None = None, new_password: str | None = None,
) -> User:
    if user is None:
        raise AuthenticationError("Not authenticated")
    changed = False
    if name:
        user.name = name
        changed = True
    if current_password and new_password:
        if not verify_password(current_password, user.password_hash, user.password_salt):
            raise ValidationError("Current password is incorrect")
        _check_password_length(new_password)
        user.password_hash, user.password_salt = hash_password(new_password)
        changed = True
    if changed:
        session.commit()
    return user
