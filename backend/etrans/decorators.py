# Overview: Request guard and role decorators for API routes.

from functools import wraps

from flask import g, request

from .cookies import ACCESS_COOKIE
from .errors import UnauthenticatedError
from .extensions import db
from .models import User
from .permissions import ensure_role
from .services import session_service
from .services.session_service import Identity


def _extract_token() -> str | None:
    """accessToken cookie first, then Authorization: Bearer."""
    token = request.cookies.get(ACCESS_COOKIE)
    if token:
        return token
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header.split(" ", 1)[1].strip() or None
    return None


def authenticate_request() -> Identity:
    """
    Resolve the caller of the current request.

    SECURITY: Raises UnauthenticatedError (401) with code:
    - NO_TOKEN: no cookie and no bearer header
    - TOKEN_EXPIRED: signature fine, past expiry (client should refresh)
    - INVALID_TOKEN: bad signature, malformed, or not an access token
    - USER_NOT_FOUND / ACCOUNT_DISABLED / EMAIL_NOT_VERIFIED

    The user row is re-read on every request; role and company_id come
    from the database, never from the token claims.
    """
    token = _extract_token()
    if not token:
        raise UnauthenticatedError("Authentication required", code="NO_TOKEN")

    claims = session_service.decode_access_token(token)

    user = db.session.get(User, int(claims["sub"]))
    if user is None:
        raise UnauthenticatedError("User not found", code="USER_NOT_FOUND")
    if not user.is_active:
        raise UnauthenticatedError("Account disabled", code="ACCOUNT_DISABLED")
    if not user.email_verified:
        raise UnauthenticatedError("Email not verified", code="EMAIL_NOT_VERIFIED")

    return Identity.from_user(user)


def require_auth(f):
    """
    Require authentication and establish tenant context.

    MULTI-TENANT: The view receives identity=Identity(...) as a keyword
    argument and passes it explicitly into every service call. The same
    object is kept on g.identity for logging.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        identity = authenticate_request()
        g.identity = identity
        kwargs["identity"] = identity
        return f(*args, **kwargs)

    return decorated_function


def require_role(roles):
    """
    Require the caller's role to be in a preset (permissions.AGENT_ROLES, ...).

    Must be stacked under @require_auth.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            identity = kwargs.get("identity")
            if identity is None:
                raise UnauthenticatedError("Authentication required", code="NO_TOKEN")
            ensure_role(identity, roles)
            return f(*args, **kwargs)

        return decorated_function
    return decorator
