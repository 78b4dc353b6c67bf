# Overview: Service-layer operations for credentials; issues, verifies and revokes JWT sessions.

"""
Credential Management Service

WHY: Access tokens are short-lived stateless JWTs so the request guard does
not need a session lookup; refresh tokens are long-lived and therefore
revocable, backed by a server-side record.

SECURITY FEATURES:
- Access token: HS256 JWT, ACCESS_TOKEN_MINUTES (15), claims sub, role,
  company_id, type=access, jti
- Refresh token: HS256 JWT signed with a separate secret,
  REFRESH_TOKEN_DAYS (7), claims sub, type=refresh, jti
- Refresh tokens hashed with SHA-256 before storage (fast, one-way)
- Logout revokes every outstanding refresh token of the user
- Refresh never rotates: it only mints a new access token

The request guard never trusts the role/company claims; it re-reads the
user row (see decorators.require_auth). The claims exist for clients.
"""

from __future__ import annotations

import hashlib
import uuid
from dataclasses import dataclass
from datetime import timedelta, timezone

from flask import current_app
from jose import ExpiredSignatureError, JWTError, jwt

from ..errors import UnauthenticatedError
from ..extensions import db
from ..models import RefreshToken, User
from ..time_utils import utcnow


@dataclass(frozen=True)
class Identity:
    """
    Authenticated caller, built by the request guard from the user row.

    MULTI-TENANT: company_id is the tenant scope for every service call.
    Immutable for the request lifetime.
    """
    user_id: int
    email: str
    name: str
    role: str
    company_id: int

    @classmethod
    def from_user(cls, user: User) -> "Identity":
        return cls(
            user_id=user.id,
            email=user.email,
            name=user.name,
            role=user.role.value,
            company_id=user.company_id,
        )


def hash_token(token: str) -> str:
    """
    Hash token for database storage using SHA-256.

    WHY SHA-256 not bcrypt: Tokens are already high-entropy (unlike passwords).
    """
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def _encode(claims: dict, secret: str, lifetime: timedelta) -> str:
    now = utcnow().replace(tzinfo=timezone.utc)
    payload = dict(claims)
    payload.update({"iat": now, "exp": now + lifetime, "jti": uuid.uuid4().hex})
    return jwt.encode(payload, secret, algorithm=current_app.config["JWT_ALGORITHM"])


def create_access_token(user: User) -> str:
    return _encode(
        {
            "sub": str(user.id),
            "role": user.role.value,
            "company_id": user.company_id,
            "type": "access",
        },
        current_app.config["JWT_SECRET"],
        timedelta(minutes=current_app.config["ACCESS_TOKEN_MINUTES"]),
    )


def create_refresh_token(user_id: int) -> str:
    return _encode(
        {"sub": str(user_id), "type": "refresh"},
        current_app.config["REFRESH_TOKEN_SECRET"],
        timedelta(days=current_app.config["REFRESH_TOKEN_DAYS"]),
    )


def decode_access_token(token: str) -> dict:
    """
    Verify an access token and return its claims.

    Raises UnauthenticatedError with code TOKEN_EXPIRED (client should
    refresh) or INVALID_TOKEN (bad signature, malformed, wrong type).
    """
    try:
        claims = jwt.decode(
            token,
            current_app.config["JWT_SECRET"],
            algorithms=[current_app.config["JWT_ALGORITHM"]],
        )
    except ExpiredSignatureError:
        raise UnauthenticatedError("Token expired", code="TOKEN_EXPIRED")
    except JWTError:
        raise UnauthenticatedError("Invalid token", code="INVALID_TOKEN")

    if claims.get("type") != "access" or not str(claims.get("sub", "")).isdigit():
        raise UnauthenticatedError("Invalid token", code="INVALID_TOKEN")
    return claims


def issue_credential_pair(user: User) -> tuple[str, str]:
    """
    Mint an access token and a refresh token for the user.

    The RefreshToken record is added to the current session but NOT
    committed: the caller commits it together with its own bookkeeping
    (login stamp, email verification) so both happen or neither does.
    """
    access_token = create_access_token(user)
    refresh_token = create_refresh_token(user.id)
    db.session.add(RefreshToken(
        user_id=user.id,
        token_hash=hash_token(refresh_token),
        created_at=utcnow(),
        expires_at=utcnow() + timedelta(days=current_app.config["REFRESH_TOKEN_DAYS"]),
    ))
    return access_token, refresh_token


def refresh_access_token(refresh_token: str | None) -> tuple[str, User]:
    """
    Exchange a refresh token for a new access token.

    Checks signature (refresh secret), type, expiry, the stored record
    (present, unrevoked, unexpired) and that the user may still hold a
    session. Every failure collapses into one INVALID_REFRESH_TOKEN so
    callers learn nothing about which check failed.
    """
    invalid = UnauthenticatedError("Invalid refresh token", code="INVALID_REFRESH_TOKEN")
    if not refresh_token:
        raise invalid

    try:
        claims = jwt.decode(
            refresh_token,
            current_app.config["REFRESH_TOKEN_SECRET"],
            algorithms=[current_app.config["JWT_ALGORITHM"]],
        )
    except JWTError:
        raise invalid

    if claims.get("type") != "refresh" or not str(claims.get("sub", "")).isdigit():
        raise invalid

    now = utcnow()
    record = db.session.query(RefreshToken).filter(
        RefreshToken.token_hash == hash_token(refresh_token),
        RefreshToken.revoked_at.is_(None),
        RefreshToken.expires_at > now,
    ).first()
    if record is None or record.user_id != int(claims["sub"]):
        raise invalid

    user = db.session.get(User, record.user_id)
    if user is None or not user.is_active or not user.email_verified:
        raise invalid

    return create_access_token(user), user


def revoke_all_for_user(user_id: int) -> int:
    """
    Revoke every outstanding refresh token of the user (logout).

    Bulk update; revoked_at is only ever set, never cleared.
    Returns the number of tokens revoked.
    """
    count = db.session.query(RefreshToken).filter(
        RefreshToken.user_id == user_id,
        RefreshToken.revoked_at.is_(None),
    ).update({"revoked_at": utcnow()}, synchronize_session=False)
    db.session.commit()
    return count


def cleanup_refresh_tokens(retention_days: int = 30) -> int:
    """
    Delete expired or revoked refresh tokens older than the retention window.

    Used by the maintenance CLI. Returns the number of rows deleted.
    """
    cutoff = utcnow() - timedelta(days=retention_days)
    count = db.session.query(RefreshToken).filter(
        db.or_(
            RefreshToken.expires_at < cutoff,
            db.and_(RefreshToken.revoked_at.isnot(None), RefreshToken.revoked_at < cutoff),
        )
    ).delete(synchronize_session=False)
    db.session.commit()
    return count
