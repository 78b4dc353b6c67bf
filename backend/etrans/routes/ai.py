# Overview: Flask API routes for the customs assistant and duty calculator.

import logging

from flask import Blueprint, current_app, jsonify, request

from ..decorators import require_auth
from ..errors import ValidationError
from ..extensions import limiter
from ..services import assistant_service, duty_service

logger = logging.getLogger(__name__)

ai_bp = Blueprint("ai", __name__, url_prefix="/api/ai")
limiter.limit(lambda: current_app.config["AI_RATE_LIMIT"])(ai_bp)


@ai_bp.get("/status")
@require_auth
def status_route(identity):
    assistant = assistant_service.get_assistant()
    return jsonify({
        "success": True,
        "data": {"available": assistant is not None, "model": assistant.model if assistant else None},
    })


@ai_bp.post("/chat")
@require_auth
def chat_route(identity):
    assistant = assistant_service.require_assistant()
    data = request.get_json(silent=True) or {}
    message = data.get("message")
    if not isinstance(message, str) or not message.strip() or len(message) > assistant_service.MAX_MESSAGE_LENGTH:
        raise ValidationError("Invalid message", errors=[{
            "field": "message",
            "message": f"message must be 1-{assistant_service.MAX_MESSAGE_LENGTH} characters",
        }])

    reply = assistant.chat(message.strip())
    logger.info("Assistant chat", extra={"user_id": identity.user_id, "message_length": len(message)})
    return jsonify({"success": True, "data": {"response": reply}})


@ai_bp.post("/calculate-customs")
@require_auth
def calculate_customs_route(identity):
    """Indicative duty breakdown; nothing is stored."""
    data = request.get_json(silent=True) or {}
    hs_code = str(data.get("hs_code") or "").strip()
    if len(hs_code) < 4:
        raise ValidationError("Invalid data", errors=[{"field": "hs_code", "message": "hs_code must be at least 4 characters"}])
    if "value" not in data:
        raise ValidationError("Invalid data", errors=[{"field": "value", "message": "value is required"}])

    result = duty_service.calculate_duties(
        hs_code,
        data["value"],
        data.get("currency") or duty_service.DEFAULT_CURRENCY,
        data.get("exchange_rate"),
    )
    return jsonify({"success": True, "data": result})
