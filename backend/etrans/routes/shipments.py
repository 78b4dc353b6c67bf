# Overview: Flask API routes for shipments; parses input and returns JSON responses.

from flask import Blueprint, jsonify, request

from ..decorators import require_auth, require_role
from ..permissions import ACCOUNTANT_ROLES, AGENT_ROLES
from ..services import shipment_service

shipments_bp = Blueprint("shipments", __name__, url_prefix="/api/shipments")


@shipments_bp.get("")
@require_auth
def list_shipments_route(identity):
    """
    Query params:
    - status: ShipmentStatus or ALL
    - search: substring of tracking number, BL number or client name
    - page, limit
    """
    data = shipment_service.list_shipments(
        identity,
        status=request.args.get("status"),
        search=request.args.get("search"),
        page=request.args.get("page"),
        limit=request.args.get("limit"),
    )
    return jsonify({"success": True, "data": data})


@shipments_bp.get("/stats")
@require_auth
def stats_route(identity):
    return jsonify({"success": True, "data": {"stats": shipment_service.shipment_stats(identity)}})


@shipments_bp.get("/<int:shipment_id>")
@require_auth
def get_shipment_route(shipment_id: int, identity):
    return jsonify({"success": True, "data": {"shipment": shipment_service.get_shipment(identity, shipment_id)}})


@shipments_bp.post("")
@require_auth
@require_role(AGENT_ROLES)
def create_shipment_route(identity):
    shipment = shipment_service.create_shipment(identity, request.get_json(silent=True) or {})
    return jsonify({"success": True, "data": {"shipment": shipment.to_dict()}}), 201


@shipments_bp.patch("/<int:shipment_id>")
@require_auth
@require_role(AGENT_ROLES)
def update_shipment_route(shipment_id: int, identity):
    shipment = shipment_service.update_shipment(identity, shipment_id, request.get_json(silent=True) or {})
    return jsonify({"success": True, "data": {"shipment": shipment.to_dict()}})


@shipments_bp.delete("/<int:shipment_id>")
@require_auth
@require_role(AGENT_ROLES)
def archive_shipment_route(shipment_id: int, identity):
    """No hard delete: archives the shipment."""
    shipment_service.archive_shipment(identity, shipment_id)
    return jsonify({"success": True, "message": "Shipment archived"})


@shipments_bp.post("/<int:shipment_id>/duties")
@require_auth
@require_role(ACCOUNTANT_ROLES)
def apply_duties_route(shipment_id: int, identity):
    data = shipment_service.apply_duties(identity, shipment_id)
    return jsonify({"success": True, "data": data}), 201


@shipments_bp.post("/<int:shipment_id>/documents")
@require_auth
@require_role(AGENT_ROLES)
def add_document_route(shipment_id: int, identity):
    document = shipment_service.add_document(identity, shipment_id, request.get_json(silent=True) or {})
    return jsonify({"success": True, "data": {"document": document.to_dict()}}), 201


@shipments_bp.delete("/<int:shipment_id>/documents/<int:document_id>")
@require_auth
@require_role(AGENT_ROLES)
def remove_document_route(shipment_id: int, document_id: int, identity):
    shipment_service.remove_document(identity, shipment_id, document_id)
    return jsonify({"success": True})
