# Overview: Outbound email collaborator (verification codes, welcome mail).

"""
Email Delivery

Two implementations behind the same two methods:
- ResendMailer: posts to the Resend HTTP API with `requests`
- NullMailer: logs and skips (no RESEND_API_KEY configured)

Delivery is best-effort: failures are logged and reported as False, never
raised, so a mail outage cannot roll back a registration or a login.

The active mailer is chosen once in create_app() and stored in
app.extensions["mailer"]; tests replace it with a recording fake.
"""

from __future__ import annotations

import logging
import secrets

import requests
from flask import current_app
from markupsafe import escape

logger = logging.getLogger(__name__)

RESEND_API_URL = "https://api.resend.com/emails"
CODE_VALIDITY_MINUTES = 15


def generate_verification_code() -> str:
    """Six decimal digits, 100000-999999."""
    return str(100000 + secrets.randbelow(900000))


def _verification_html(code: str, company_label: str) -> str:
    return (
        "<div style=\"font-family: sans-serif; max-width: 480px; margin: 0 auto;\">"
        "<h1>E-Trans</h1>"
        f"<p>Welcome to <strong>{escape(company_label)}</strong>!</p>"
        "<p>Your verification code:</p>"
        f"<p style=\"font-size: 32px; letter-spacing: 8px; font-weight: bold;\">{code}</p>"
        f"<p>This code expires in {CODE_VALIDITY_MINUTES} minutes.</p>"
        "<p>If you did not request this code, ignore this email.</p>"
        "</div>"
    )


def _welcome_html(first_name: str, company_label: str) -> str:
    return (
        "<div style=\"font-family: sans-serif; max-width: 480px; margin: 0 auto;\">"
        "<h1>Account activated</h1>"
        f"<p>Hello <strong>{escape(first_name)}</strong>,</p>"
        f"<p>Your E-Trans account for <strong>{escape(company_label)}</strong> is now active.</p>"
        "</div>"
    )


class NullMailer:
    """Used when no email provider is configured."""

    available = False

    def send_verification_code(self, to: str, code: str, company_label: str) -> bool:
        logger.warning("Email skipped - RESEND_API_KEY not configured", extra={"to": to})
        return True

    def send_welcome(self, to: str, first_name: str, company_label: str) -> bool:
        logger.warning("Email skipped - RESEND_API_KEY not configured", extra={"to": to})
        return True


class ResendMailer:
    available = True

    def __init__(self, api_key: str, from_email: str, timeout: float = 10):
        self.api_key = api_key
        self.from_email = from_email
        self.timeout = timeout

    def _send(self, to: str, subject: str, html: str) -> bool:
        try:
            r = requests.post(
                RESEND_API_URL,
                headers={"Authorization": f"Bearer {self.api_key}"},
                json={"from": self.from_email, "to": [to], "subject": subject, "html": html},
                timeout=self.timeout,
            )
            r.raise_for_status()
        except requests.RequestException:
            logger.exception("Email delivery failed", extra={"to": to, "subject": subject})
            return False
        logger.info("Email sent", extra={"to": to, "subject": subject})
        return True

    def send_verification_code(self, to: str, code: str, company_label: str) -> bool:
        return self._send(to, f"{code} - Your E-Trans verification code", _verification_html(code, company_label))

    def send_welcome(self, to: str, first_name: str, company_label: str) -> bool:
        return self._send(to, f"Welcome to E-Trans, {first_name}!", _welcome_html(first_name, company_label))


def build_mailer(config) -> NullMailer | ResendMailer:
    if config.get("RESEND_API_KEY"):
        return ResendMailer(config["RESEND_API_KEY"], config["FROM_EMAIL"])
    return NullMailer()


def get_mailer():
    return current_app.extensions["mailer"]
