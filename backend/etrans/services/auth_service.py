# Overview: Service-layer operations for auth; registration, email verification and login.

"""
Authentication Service with Multi-Tenant Support

WHY: Every action must be attributable. Uses bcrypt for secure password
hashing and validates password strength.

MULTI-TENANT: Registration creates a Company and its DIRECTOR user in one
commit. Emails are globally unique because login happens before the
tenant is known.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 8 characters, with uppercase, lowercase, digit and special char
- Unknown email and wrong password fail identically (no enumeration)
- 5 wrong passwords lock the account for 15 minutes
- A user only gets credentials once verified and active
- Credentials are issued by session_service
"""

from __future__ import annotations

import re
import unicodedata
from datetime import timedelta

import bcrypt

from ..errors import BusinessRuleError, ConflictError, ForbiddenError, LockedError, UnauthenticatedError, ValidationError
from ..extensions import db
from ..logging_config import audit
from ..models import Company, Role, User
from ..time_utils import utcnow
from ..validation import check_min_length, is_valid_email, normalize_email
from . import login_throttle_service, session_service
from .email_service import CODE_VALIDITY_MINUTES, generate_verification_code, get_mailer


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet strength requirements."""


def password_strength_errors(password: str) -> list[str]:
    """
    Requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character
    """
    problems = []
    if len(password) < 8:
        problems.append("Password must be at least 8 characters long")
    if not re.search(r'[A-Z]', password):
        problems.append("Password must contain at least one uppercase letter")
    if not re.search(r'[a-z]', password):
        problems.append("Password must contain at least one lowercase letter")
    if not re.search(r'\d', password):
        problems.append("Password must contain at least one digit")
    if not re.search(r"[^A-Za-z0-9\s]", password):
        problems.append("Password must contain at least one special character")
    return problems


def validate_password_strength(password: str) -> None:
    """Raises PasswordValidationError if requirements not met."""
    problems = password_strength_errors(password)
    if problems:
        raise PasswordValidationError(
            problems[0],
            errors=[{"field": "password", "message": p} for p in problems],
        )


def hash_password(password: str) -> str:
    """
    Hash password using bcrypt with cost factor 12.

    Password is validated for strength before hashing.
    """
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=12)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """Returns True if password matches hash, False otherwise."""
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        # Malformed stored hash
        return False


# =============================================================================
# COMPANY SLUGS
# =============================================================================

def slugify(name: str) -> str:
    """Lower-case, strip accents, collapse non-alphanumerics to '-'."""
    ascii_name = unicodedata.normalize("NFD", name.lower()).encode("ascii", "ignore").decode("ascii")
    return re.sub(r"[^a-z0-9]+", "-", ascii_name).strip("-") or "company"


def unique_company_slug(name: str) -> str:
    base = slugify(name)
    slug = base
    counter = 1
    while db.session.query(Company.id).filter_by(slug=slug).first() is not None:
        slug = f"{base}-{counter}"
        counter += 1
    return slug


# =============================================================================
# REGISTRATION & VERIFICATION
# =============================================================================

def _issue_code(user: User) -> str:
    code = generate_verification_code()
    user.verification_code = code
    user.code_expires_at = utcnow() + timedelta(minutes=CODE_VALIDITY_MINUTES)
    return code


def _company_label(user: User) -> str:
    return user.company.name if user.company else "E-Trans"


def register(
    company_name: str,
    name: str,
    email: str,
    password: str,
    phone: str | None = None,
) -> dict:
    """
    Create a Company and its DIRECTOR user, then email a verification code.

    An existing unverified account gets a fresh code instead of an error
    (the user probably lost the first mail). A verified account is a
    Conflict.

    Returns {"resent": bool, "user": User}.
    """
    errors: list[dict] = []
    company_name = check_min_length(errors, "company_name", company_name, 2, "Company name")
    name = check_min_length(errors, "name", name, 2, "Name")
    email = normalize_email(email)
    if not is_valid_email(email):
        errors.append({"field": "email", "message": "Invalid email"})
    password = password if isinstance(password, str) else ""
    errors.extend({"field": "password", "message": p} for p in password_strength_errors(password))
    if errors:
        raise ValidationError("Invalid data", errors=errors)

    existing = db.session.query(User).filter_by(email=email).first()
    if existing is not None:
        if existing.email_verified:
            raise ConflictError("This email is already in use", code="EMAIL_IN_USE")
        code = _issue_code(existing)
        db.session.commit()
        get_mailer().send_verification_code(existing.email, code, _company_label(existing))
        return {"resent": True, "user": existing}

    company = Company(name=company_name, slug=unique_company_slug(company_name))
    user = User(
        company=company,
        email=email,
        name=name,
        phone=(phone or "").strip() or None,
        password_hash=hash_password(password),
        role=Role.DIRECTOR,
        email_verified=False,
        is_active=False,
    )
    code = _issue_code(user)
    db.session.add_all([company, user])
    db.session.commit()

    get_mailer().send_verification_code(email, code, company_name)
    audit("User registered", user_id=user.id, email=email, company_id=company.id)
    return {"resent": False, "user": user}


def verify_email(email: str, code: str) -> tuple[User, str, str]:
    """
    Check a verification code and activate the account.

    Success flips verified+active, clears the code and issues a credential
    pair; the refresh token record is written in the same commit.

    Returns (user, access_token, refresh_token).
    """
    email = normalize_email(email)
    code = str(code or "").strip()
    if not is_valid_email(email) or not re.fullmatch(r"\d{6}", code):
        raise ValidationError("Invalid data", errors=[
            {"field": "email" if not is_valid_email(email) else "code",
             "message": "Invalid email" if not is_valid_email(email) else "Code must be 6 digits"},
        ])

    user = db.session.query(User).filter_by(email=email).first()
    if user is None:
        raise BusinessRuleError("Invalid code", code="INVALID_CODE")
    if user.email_verified:
        raise ConflictError("Email already verified", code="ALREADY_VERIFIED")
    if user.verification_code != code:
        raise BusinessRuleError("Invalid code", code="INVALID_CODE")
    if user.code_expires_at is None or user.code_expires_at < utcnow():
        raise BusinessRuleError("Code expired", code="CODE_EXPIRED")

    user.email_verified = True
    user.is_active = True
    user.verification_code = None
    user.code_expires_at = None
    access_token, refresh_token = session_service.issue_credential_pair(user)
    db.session.commit()

    get_mailer().send_welcome(user.email, user.first_name, _company_label(user))
    audit("Email verified", user_id=user.id, email=user.email)
    return user, access_token, refresh_token


def resend_code(email: str) -> None:
    """
    Re-issue a code for an existing unverified account.

    Reports nothing either way: callers always answer success so the
    endpoint cannot be used to discover accounts.
    """
    email = normalize_email(email)
    if not is_valid_email(email):
        return
    user = db.session.query(User).filter_by(email=email).first()
    if user is None or user.email_verified:
        return
    code = _issue_code(user)
    db.session.commit()
    get_mailer().send_verification_code(user.email, code, _company_label(user))


# =============================================================================
# LOGIN
# =============================================================================

def login(email: str, password: str) -> tuple[User, str, str]:
    """
    Authenticate with email + password.

    Order of checks:
    1. unknown email -> INVALID_CREDENTIALS
    2. locked -> LockedError(minutes_remaining)
    3. wrong password -> counter++, INVALID_CREDENTIALS or LockedError on the 5th
    4. unverified -> new code, 403 EMAIL_NOT_VERIFIED
    5. deactivated -> ACCOUNT_DISABLED
    6. success -> counter reset, last_login_at, refresh token (one commit)

    Returns (user, access_token, refresh_token).
    """
    email = normalize_email(email)
    password = password if isinstance(password, str) else ""
    errors = []
    if not is_valid_email(email):
        errors.append({"field": "email", "message": "Invalid email"})
    if not password:
        errors.append({"field": "password", "message": "Password is required"})
    if errors:
        raise ValidationError("Invalid data", errors=errors)

    invalid = UnauthenticatedError("Invalid email or password", code="INVALID_CREDENTIALS")

    user = db.session.query(User).filter_by(email=email).first()
    if user is None:
        raise invalid

    minutes = login_throttle_service.minutes_remaining(user)
    if minutes is not None:
        raise LockedError(minutes)

    if not verify_password(password, user.password_hash):
        locked_now = login_throttle_service.record_failed_attempt(user)
        db.session.commit()
        if locked_now:
            raise LockedError(
                int(login_throttle_service.LOCKOUT_DURATION.total_seconds() // 60),
                message="Too many attempts. Account locked for 15 minutes.",
            )
        raise invalid

    if not user.email_verified:
        code = _issue_code(user)
        db.session.commit()
        get_mailer().send_verification_code(user.email, code, _company_label(user))
        raise ForbiddenError(
            "Email not verified. A new code has been sent.",
            code="EMAIL_NOT_VERIFIED",
            requires_verification=True,
        )

    if not user.is_active:
        raise UnauthenticatedError("Account disabled", code="ACCOUNT_DISABLED")

    login_throttle_service.record_successful_login(user)
    access_token, refresh_token = session_service.issue_credential_pair(user)
    db.session.commit()

    audit("User logged in", user_id=user.id, company_id=user.company_id)
    return user, access_token, refresh_token


def logout(user_id: int) -> int:
    count = session_service.revoke_all_for_user(user_id)
    audit("User logged out", user_id=user_id, revoked=count)
    return count


def me(identity) -> dict:
    user = db.session.get(User, identity.user_id)
    return user.to_dict(include_company=True)
