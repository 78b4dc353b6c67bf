"""
Multi-Tenant Service: Ownership Checks and Scoping Helpers

WHY: Centralize tenant validation logic for reuse across services.
Every query touching company-owned data must filter by the caller's
company, and cross-tenant access must look exactly like absence.

SECURITY INVARIANTS:
1. Every service call receives an Identity carrying company_id
2. Shipment/expense/client ids from client input are resolved through
   these helpers, never by bare primary-key lookup
3. A foreign resource raises the same NotFoundError as a missing one
4. Cross-tenant probes are logged as warnings
"""

import logging

from ..errors import NotFoundError
from ..extensions import db
from ..models import Client, Expense, Shipment

logger = logging.getLogger(__name__)


def _log_cross_tenant_attempt(kind: str, resource_id: int, company_id: int) -> None:
    logger.warning(
        "Cross-tenant access attempt",
        extra={"resource": kind, "resource_id": resource_id, "company_id": company_id},
    )


def shipment_query(company_id: int):
    return db.session.query(Shipment).filter(Shipment.company_id == company_id)


def expense_query(company_id: int):
    """Expenses are scoped by joining through shipment ownership."""
    return (
        db.session.query(Expense)
        .join(Shipment, Expense.shipment_id == Shipment.id)
        .filter(Shipment.company_id == company_id)
    )


def require_shipment_in_company(shipment_id, company_id: int, *, query=None) -> Shipment:
    """
    Return the shipment if it belongs to the company.

    Raises NotFoundError for missing and foreign shipments alike.
    An optional base query lets callers add locking.
    """
    base = query if query is not None else db.session.query(Shipment)
    shipment = base.filter(Shipment.id == shipment_id).first() if shipment_id is not None else None
    if shipment is None:
        raise NotFoundError("Shipment not found")
    if shipment.company_id != company_id:
        _log_cross_tenant_attempt("shipment", shipment.id, company_id)
        raise NotFoundError("Shipment not found")
    return shipment


def require_client_in_company(client_id, company_id: int) -> Client:
    client = db.session.get(Client, client_id) if client_id is not None else None
    if client is None or client.company_id != company_id:
        if client is not None:
            _log_cross_tenant_attempt("client", client.id, company_id)
        raise NotFoundError("Client not found")
    return client
