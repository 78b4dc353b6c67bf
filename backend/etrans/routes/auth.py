# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/etrans/routes/auth.py
"""
Authentication API routes

SECURITY FEATURES:
- Password strength validation on registration
- Email verification before the first session
- Account lockout after repeated failed attempts
- HttpOnly cookies for both credentials
- Stricter rate limit on the whole blueprint (AUTH_RATE_LIMIT)
"""

from flask import Blueprint, current_app, jsonify, request

from ..cookies import REFRESH_COOKIE, clear_auth_cookies, set_access_cookie, set_auth_cookies
from ..decorators import require_auth
from ..extensions import limiter
from ..services import auth_service, session_service

auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")
limiter.limit(lambda: current_app.config["AUTH_RATE_LIMIT"])(auth_bp)


def _session_user(user) -> dict:
    return {
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "role": user.role.value,
        "company": {"id": user.company.id, "name": user.company.name},
    }


@auth_bp.post("/register")
def register_route():
    """
    Create a company and its director account.

    201 on creation; 200 when an unverified account got a fresh code.
    Both answers ask the client to verify the email next.
    """
    data = request.get_json(silent=True) or {}
    result = auth_service.register(
        company_name=data.get("company_name"),
        name=data.get("name"),
        email=data.get("email"),
        password=data.get("password"),
        phone=data.get("phone"),
    )
    if result["resent"]:
        return jsonify({
            "success": True,
            "message": "Verification code sent again",
            "requires_verification": True,
        }), 200
    return jsonify({
        "success": True,
        "message": "Account created! Check your email.",
        "requires_verification": True,
    }), 201


@auth_bp.post("/verify-email")
def verify_email_route():
    data = request.get_json(silent=True) or {}
    user, access_token, refresh_token = auth_service.verify_email(data.get("email"), data.get("code"))
    response = jsonify({"success": True, "data": {"user": _session_user(user)}})
    set_auth_cookies(response, access_token, refresh_token)
    return response


@auth_bp.post("/resend-code")
def resend_code_route():
    """Always succeeds: the answer must not reveal whether the account exists."""
    data = request.get_json(silent=True) or {}
    auth_service.resend_code(data.get("email"))
    return jsonify({"success": True, "message": "If this account exists, a code has been sent"})


@auth_bp.post("/login")
def login_route():
    data = request.get_json(silent=True) or {}
    user, access_token, refresh_token = auth_service.login(data.get("email"), data.get("password"))
    response = jsonify({"success": True, "data": {"user": _session_user(user)}})
    set_auth_cookies(response, access_token, refresh_token)
    return response


@auth_bp.post("/refresh")
def refresh_route():
    """Mint a new access token from the refreshToken cookie (or JSON refresh_token)."""
    data = request.get_json(silent=True) or {}
    token = request.cookies.get(REFRESH_COOKIE) or data.get("refresh_token")
    access_token, _user = session_service.refresh_access_token(token)
    response = jsonify({"success": True})
    set_access_cookie(response, access_token)
    return response


@auth_bp.get("/me")
@require_auth
def me_route(identity):
    return jsonify({"success": True, "data": {"user": auth_service.me(identity)}})


@auth_bp.post("/logout")
@require_auth
def logout_route(identity):
    auth_service.logout(identity.user_id)
    response = jsonify({"success": True})
    clear_auth_cookies(response)
    return response
