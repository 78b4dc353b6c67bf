# Overview: Flask API routes for the shipment ledger; parses input and returns JSON responses.

from flask import Blueprint, jsonify, request

from ..decorators import require_auth, require_role
from ..permissions import ACCOUNTANT_ROLES
from ..services import ledger_service
from ..validation import parse_bool_arg

finance_bp = Blueprint("finance", __name__, url_prefix="/api/finance")


@finance_bp.get("/expenses")
@require_auth
def list_expenses_route(identity):
    data = ledger_service.list_expenses(
        identity,
        shipment_id=request.args.get("shipment_id"),
        category=request.args.get("category"),
        paid=parse_bool_arg(request.args.get("paid")),
        page=request.args.get("page"),
        limit=request.args.get("limit"),
    )
    return jsonify({"success": True, "data": data})


@finance_bp.get("/summary")
@require_auth
def summary_route(identity):
    return jsonify({"success": True, "data": ledger_service.company_summary(identity)})


@finance_bp.get("/shipment/<int:shipment_id>")
@require_auth
def shipment_finance_route(shipment_id: int, identity):
    return jsonify({"success": True, "data": ledger_service.shipment_summary(identity, shipment_id)})


@finance_bp.post("/expenses")
@require_auth
@require_role(ACCOUNTANT_ROLES)
def create_expense_route(identity):
    expense = ledger_service.create_expense(identity, request.get_json(silent=True) or {})
    return jsonify({"success": True, "data": {"expense": expense.to_dict()}}), 201


@finance_bp.patch("/expenses/<int:expense_id>")
@require_auth
@require_role(ACCOUNTANT_ROLES)
def update_expense_route(expense_id: int, identity):
    expense = ledger_service.update_expense(identity, expense_id, request.get_json(silent=True) or {})
    return jsonify({"success": True, "data": {"expense": expense.to_dict()}})


@finance_bp.post("/expenses/<int:expense_id>/pay")
@require_auth
@require_role(ACCOUNTANT_ROLES)
def pay_expense_route(expense_id: int, identity):
    expense = ledger_service.pay_expense(identity, expense_id)
    return jsonify({"success": True, "data": {"expense": expense.to_dict()}})


@finance_bp.delete("/expenses/<int:expense_id>")
@require_auth
@require_role(ACCOUNTANT_ROLES)
def delete_expense_route(expense_id: int, identity):
    ledger_service.delete_expense(identity, expense_id)
    return jsonify({"success": True})
