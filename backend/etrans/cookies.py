# Overview: Auth cookie helpers shared by the auth routes.

from __future__ import annotations

from flask import current_app

ACCESS_COOKIE = "accessToken"
REFRESH_COOKIE = "refreshToken"


def _cookie_options() -> dict:
    production = bool(current_app.config.get("IS_PRODUCTION"))
    return {
        "httponly": True,
        "secure": production,
        "samesite": "None" if production else "Lax",
        "path": "/",
    }


def set_access_cookie(response, access_token: str) -> None:
    response.set_cookie(
        ACCESS_COOKIE,
        access_token,
        max_age=current_app.config["ACCESS_TOKEN_MINUTES"] * 60,
        **_cookie_options(),
    )


def set_auth_cookies(response, access_token: str, refresh_token: str) -> None:
    set_access_cookie(response, access_token)
    response.set_cookie(
        REFRESH_COOKIE,
        refresh_token,
        max_age=current_app.config["REFRESH_TOKEN_DAYS"] * 24 * 60 * 60,
        **_cookie_options(),
    )


def clear_auth_cookies(response) -> None:
    options = _cookie_options()
    for name in (ACCESS_COOKIE, REFRESH_COOKIE):
        response.delete_cookie(
            name,
            path=options["path"],
            secure=options["secure"],
            httponly=options["httponly"],
            samesite=options["samesite"],
        )
