from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z
from .enums import Role


class User(db.Model):
    """
    User accounts for authentication and attribution.

    MULTI-TENANT: Users belong to exactly one company (company_id).
    Emails are stored lower-cased and are globally unique: login happens
    before the tenant is known.

    SESSION INVARIANT: an inactive or unverified user never obtains a
    valid session. Login, refresh and the request guard all re-check.

    Users are never hard-deleted; deactivate with is_active=False.
    """
    __tablename__ = "users"
    __table_args__ = (
        db.Index("ix_users_company_id", "company_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False)

    email = db.Column(db.String(255), nullable=False, unique=True, index=True)
    name = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(64), nullable=True)

    # Bcrypt hashed password
    password_hash = db.Column(db.String(255), nullable=False)

    role = db.Column(
        db.Enum(Role, native_enum=False, length=16, validate_strings=True),
        nullable=False,
        default=Role.AGENT,
    )

    # Email verification (6-digit code, 15 minute validity)
    email_verified = db.Column(db.Boolean, nullable=False, default=False)
    verification_code = db.Column(db.String(6), nullable=True)
    code_expires_at = db.Column(db.DateTime(timezone=True), nullable=True)

    # Login throttling
    failed_attempts = db.Column(db.Integer, nullable=False, default=0)
    locked_until = db.Column(db.DateTime(timezone=True), nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    last_login_at = db.Column(db.DateTime(timezone=True), nullable=True)

    company = db.relationship("Company", backref=db.backref("users", lazy=True))

    @property
    def first_name(self) -> str:
        return self.name.split(" ")[0] if self.name else ""

    def to_dict(self, include_company: bool = False) -> dict:
        data = {
            "id": self.id,
            "company_id": self.company_id,
            "email": self.email,
            "name": self.name,
            "phone": self.phone,
            "role": self.role.value,
            "email_verified": self.email_verified,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "last_login_at": to_utc_z(self.last_login_at) if self.last_login_at else None,
        }
        if include_company and self.company is not None:
            data["company"] = self.company.to_dict()
        return data


class RefreshToken(db.Model):
    """
    Server-side record of an issued refresh credential.

    WHY: Access tokens are stateless; refresh tokens must be revocable.
    Only the SHA-256 hash of the token is stored.

    REVOCATION IS MONOTONIC: revoked_at is set once and never cleared.
    """
    __tablename__ = "refresh_tokens"
    __table_args__ = (
        db.Index("ix_refresh_tokens_user_revoked", "user_id", "revoked_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    token_hash = db.Column(db.String(64), nullable=False, unique=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False)
    revoked_at = db.Column(db.DateTime(timezone=True), nullable=True)

    user = db.relationship("User", backref=db.backref("refresh_tokens", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "created_at": to_utc_z(self.created_at),
            "expires_at": to_utc_z(self.expires_at),
            "revoked_at": to_utc_z(self.revoked_at),
        }
