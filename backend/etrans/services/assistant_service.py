# Overview: Language-model collaborator for the customs assistant chat.

"""
Customs Assistant

Thin client for the Gemini generateContent REST endpoint, called with
`requests`. Present only when GEMINI_API_KEY is configured; otherwise
app.extensions["assistant"] is None and the AI routes answer 503.
"""

from __future__ import annotations

import logging

import requests
from flask import current_app

from ..errors import ServiceUnavailableError

logger = logging.getLogger(__name__)

GEMINI_API_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"
MAX_MESSAGE_LENGTH = 2000

SYSTEM_PROMPT = (
    "You are a customs and freight-forwarding expert for Guinea (Conakry). "
    "You help forwarding agents with Guinean customs regulations, HS codes and "
    "classification, duty and tax computation (DD 35%, TVA 18%, RTL 2%, PC 0.5%, "
    "CA 0.25%, BFU), clearance procedures and required documents (BL, DDI, BAE, ...). "
    "Answer concisely and express amounts in GNF."
)


class GeminiAssistant:
    def __init__(self, api_key: str, model: str, timeout: float = 30):
        self.api_key = api_key
        self.model = model
        self.timeout = timeout

    def chat(self, message: str) -> str:
        """
        Send one user message and return the model's text reply.

        Raises ServiceUnavailableError when the provider fails or answers
        with no text.
        """
        try:
            r = requests.post(
                GEMINI_API_URL.format(model=self.model),
                params={"key": self.api_key},
                json={
                    "system_instruction": {"parts": [{"text": SYSTEM_PROMPT}]},
                    "contents": [{"role": "user", "parts": [{"text": message}]}],
                },
                timeout=self.timeout,
            )
            r.raise_for_status()
            payload = r.json()
        except (requests.RequestException, ValueError):
            logger.exception("Assistant request failed", extra={"model": self.model})
            raise ServiceUnavailableError("Assistant service error", code="AI_ERROR")

        try:
            parts = payload["candidates"][0]["content"]["parts"]
        except (KeyError, IndexError, TypeError):
            logger.error("Assistant returned no candidates", extra={"model": self.model})
            raise ServiceUnavailableError("Assistant service error", code="AI_ERROR")
        return "".join(p.get("text", "") for p in parts)


def build_assistant(config) -> GeminiAssistant | None:
    if not config.get("GEMINI_API_KEY"):
        return None
    return GeminiAssistant(config["GEMINI_API_KEY"], config["GEMINI_MODEL"])


def get_assistant() -> GeminiAssistant | None:
    return current_app.extensions.get("assistant")


def require_assistant() -> GeminiAssistant:
    assistant = get_assistant()
    if assistant is None:
        raise ServiceUnavailableError("AI service not configured", code="AI_UNAVAILABLE")
    return assistant
