# Overview: Service-layer operations for shipments; lifecycle, timeline, documents and duties.

"""
Shipment Lifecycle Service

WHY: A shipment ("dossier") is the unit of work of a clearing agency. It is
created when goods are announced, moves through the customs statuses and
ends DELIVERED / INVOICED / CLOSED, or ARCHIVED when abandoned.

MULTI-TENANT: every lookup goes through tenant_service, so a shipment of
another company is indistinguishable from a missing one.

TIMELINE INVARIANT: every real status change appends exactly one
TimelineEvent in the same commit as the change. Writing the current status
again appends nothing.

LIFECYCLE RULES:
- New shipments start at PENDING
- ARCHIVED is terminal: leaving it is rejected
- CLOSED shipments cannot be archived
- There is no hard delete; DELETE archives

TRACKING NUMBERS: TR-<base36 ms timestamp>-<4 random base36>, uppercase.
The database unique constraint is the guarantee; a collision rolls the
insert back and retries with a fresh number (bounded).
"""

from __future__ import annotations

import logging
import secrets
import string
import time

from sqlalchemy.exc import IntegrityError

from ..errors import BusinessRuleError, ConflictError, NotFoundError, ValidationError
from ..extensions import db
from ..logging_config import audit
from ..models import (
    DUTY_CATEGORIES,
    IN_PROGRESS_STATUSES,
    Container,
    Document,
    Expense,
    ExpenseCategory,
    ExpenseType,
    Shipment,
    ShipmentStatus,
    TimelineEvent,
)
from ..permissions import ACCOUNTANT_ROLES, AGENT_ROLES, ensure_role
from ..validation import (
    ModelValidationPolicy,
    clamp_pagination,
    pagination_dict,
    parse_int_arg,
    validate_payload,
)
from . import duty_service, ledger_service, tenant_service
from .concurrency import lock_for_update, run_with_retry

logger = logging.getLogger(__name__)

BASE36_ALPHABET = string.digits + string.ascii_uppercase
MAX_TRACKING_ATTEMPTS = 5
DEFAULT_PAGE_LIMIT = 20
RECENT_SHIPMENTS = 5

_CREATE_FIELDS = frozenset({
    "client_name", "client_nif", "client_phone", "client_address",
    "description", "hs_code", "packaging", "package_count", "gross_weight", "net_weight",
    "cif_value", "cif_currency", "exchange_rate", "fob_value", "freight_value", "insurance_value",
    "bl_number", "vessel_name", "voyage_number", "port_of_loading", "port_of_discharge", "eta",
    "manifest_number", "manifest_year", "supplier_name", "supplier_country",
    "customs_regime", "customs_office", "customs_office_name", "declarant_code", "declarant_name",
    "ddi_number",
})

SHIPMENT_CREATE_POLICY = ModelValidationPolicy(
    writable_fields=_CREATE_FIELDS,
    required_on_create=frozenset({"client_name", "description"}),
)

SHIPMENT_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields=_CREATE_FIELDS | frozenset({
        "ata", "circuit", "declaration_number", "liquidation_number", "quittance_number",
        "bae_number", "do_number", "bs_number",
        "delivery_place", "delivery_date", "delivery_driver", "delivery_phone", "delivery_truck",
        "status",
    }),
)

CONTAINER_POLICY = ModelValidationPolicy(
    writable_fields=frozenset({
        "number", "type", "seal_number", "gross_weight", "package_count", "description", "temperature",
    }),
    required_on_create=frozenset({"number"}),
)

DOCUMENT_POLICY = ModelValidationPolicy(
    writable_fields=frozenset({"type", "name", "url", "reference", "issue_date"}),
    required_on_create=frozenset({"type", "name", "url"}),
)

# Line label per duty category, in calculator order
DUTY_LINES = (
    ("dd", ExpenseCategory.DD, "Customs duty (DD)"),
    ("rtl", ExpenseCategory.RTL, "Processing levy (RTL)"),
    ("pc", ExpenseCategory.PC, "Community levy (PC)"),
    ("ca", ExpenseCategory.CA, "Additional levy (CA)"),
    ("tva", ExpenseCategory.TVA, "VAT (TVA)"),
    ("bfu", ExpenseCategory.BFU, "BFU"),
)

CIF_FIELDS = ("cif_value", "cif_currency", "exchange_rate")


# =============================================================================
# TRACKING NUMBERS
# =============================================================================

def _base36(number: int) -> str:
    if number == 0:
        return "0"
    digits = []
    while number:
        number, remainder = divmod(number, 36)
        digits.append(BASE36_ALPHABET[remainder])
    return "".join(reversed(digits))


def generate_tracking_number() -> str:
    timestamp = _base36(int(time.time() * 1000))
    suffix = "".join(secrets.choice(BASE36_ALPHABET) for _ in range(4))
    return f"TR-{timestamp}-{suffix}"


def _tracking_number_taken(tracking_number: str) -> bool:
    return db.session.query(Shipment.id).filter_by(tracking_number=tracking_number).first() is not None


# =============================================================================
# HELPERS
# =============================================================================

def _timeline_event(shipment: Shipment, identity, action: str, *, status=None, description=None) -> TimelineEvent:
    event = TimelineEvent(
        action=action,
        description=description,
        status=status,
        user_id=identity.user_id,
        user_name=identity.name,
    )
    shipment.timeline.append(event)
    return event


def _normalize_currency(data: dict) -> None:
    if data.get("cif_currency"):
        data["cif_currency"] = data["cif_currency"].upper()


def _cif_value_gnf(shipment: Shipment) -> int | None:
    if shipment.cif_value is None:
        return None
    return duty_service.convert_to_gnf(shipment.cif_value, shipment.cif_currency, shipment.exchange_rate)


def _validate_containers(raw) -> list[dict]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ValidationError("Invalid data", errors=[{"field": "containers", "message": "containers must be a list"}])
    cleaned = []
    errors = []
    for index, item in enumerate(raw):
        try:
            cleaned.append(validate_payload(model=Container, payload=item, policy=CONTAINER_POLICY, partial=False))
        except ValidationError as exc:
            for err in exc.errors or [{"field": "", "message": exc.message}]:
                errors.append({"field": f"containers.{index}.{err['field']}", "message": err["message"]})
    if errors:
        raise ValidationError("Invalid data", errors=errors)
    return cleaned


def _apply_duty_lines(shipment: Shipment, calculation: dict) -> list[Expense]:
    """Store the duty snapshot on the shipment and add one unpaid DISBURSEMENT per non-zero line."""
    duties = calculation["duties"]
    shipment.duty_dd = duties["dd"]["amount"]
    shipment.duty_rtl = duties["rtl"]["amount"]
    shipment.duty_pc = duties["pc"]["amount"]
    shipment.duty_ca = duties["ca"]["amount"]
    shipment.duty_tva = duties["tva"]["amount"]
    shipment.duty_bfu = duties["bfu"]["amount"]
    shipment.total_duties = calculation["total_duties"]

    lines = []
    for key, category, label in DUTY_LINES:
        amount = duties[key]["amount"]
        if amount <= 0:
            continue
        line = Expense(
            type=ExpenseType.DISBURSEMENT,
            category=category,
            description=label,
            amount=amount,
            paid=False,
        )
        shipment.expenses.append(line)
        lines.append(line)
    return lines


def _calculate_for(shipment: Shipment) -> dict:
    return duty_service.calculate_duties(
        shipment.hs_code,
        shipment.cif_value,
        shipment.cif_currency,
        shipment.exchange_rate,
    )


# =============================================================================
# CREATE
# =============================================================================

def create_shipment(identity, payload: dict) -> Shipment:
    """
    Create a shipment for the caller's company.

    Optional extras in the payload:
    - containers: list of container dicts
    - client_id: link to a company client (fills missing client fields)
    - compute_duties: true to materialize duty lines as expenses
    """
    ensure_role(identity, AGENT_ROLES)
    payload = dict(payload or {})

    client = None
    client_id = parse_int_arg(payload.get("client_id"), "client_id")
    if client_id is not None:
        client = tenant_service.require_client_in_company(client_id, identity.company_id)
        payload.setdefault("client_name", client.name)
        payload.setdefault("client_nif", client.nif)
        payload.setdefault("client_phone", client.phone)
        payload.setdefault("client_address", client.address)

    data = validate_payload(model=Shipment, payload=payload, policy=SHIPMENT_CREATE_POLICY, partial=False)
    _normalize_currency(data)
    containers = _validate_containers(payload.get("containers"))
    compute_duties = payload.get("compute_duties") is True

    if compute_duties and data.get("cif_value") is None:
        raise ValidationError("Invalid data", errors=[
            {"field": "cif_value", "message": "cif_value is required to compute duties"},
        ])

    def _build() -> Shipment:
        shipment = Shipment(
            company_id=identity.company_id,
            client_id=client.id if client else None,
            created_by_id=identity.user_id,
            tracking_number=generate_tracking_number(),
            status=ShipmentStatus.PENDING,
            **data,
        )
        if not shipment.cif_currency:
            shipment.cif_currency = duty_service.DEFAULT_CURRENCY
        if not shipment.port_of_discharge:
            shipment.port_of_discharge = "CONAKRY"
        shipment.cif_value_gnf = _cif_value_gnf(shipment)
        for c in containers:
            shipment.containers.append(Container(**c))
        if compute_duties:
            _apply_duty_lines(shipment, _calculate_for(shipment))
        _timeline_event(shipment, identity, "Shipment created", status=ShipmentStatus.PENDING)
        return shipment

    for attempt in range(MAX_TRACKING_ATTEMPTS):
        shipment = _build()
        db.session.add(shipment)
        try:
            db.session.commit()
            break
        except IntegrityError:
            db.session.rollback()
            if not _tracking_number_taken(shipment.tracking_number):
                raise
            logger.warning(
                "Tracking number collision, regenerating",
                extra={"tracking_number": shipment.tracking_number, "attempt": attempt + 1},
            )
    else:
        raise ConflictError("Could not allocate a tracking number, try again", code="TRACKING_NUMBER_EXHAUSTED")

    audit(
        "Shipment created",
        shipment_id=shipment.id,
        tracking_number=shipment.tracking_number,
        company_id=identity.company_id,
        user_id=identity.user_id,
    )
    return shipment


# =============================================================================
# UPDATE / ARCHIVE
# =============================================================================

def _check_transition(current: ShipmentStatus, new: ShipmentStatus) -> None:
    if current == ShipmentStatus.ARCHIVED:
        raise ConflictError("An archived shipment cannot change status", code="INVALID_TRANSITION")
    if new == ShipmentStatus.ARCHIVED and current == ShipmentStatus.CLOSED:
        raise ConflictError("A closed shipment cannot be archived", code="INVALID_TRANSITION")


def update_shipment(identity, shipment_id, payload: dict) -> Shipment:
    """
    Patch allowlisted fields.

    A real status change appends one timeline event in the same commit.
    Changing any CIF field recomputes cif_value_gnf.
    """
    ensure_role(identity, AGENT_ROLES)
    payload = payload or {}
    patch = validate_payload(model=Shipment, payload=payload, policy=SHIPMENT_UPDATE_POLICY, partial=True)
    _normalize_currency(patch)
    client_id = parse_int_arg(payload.get("client_id"), "client_id") if "client_id" in payload else None

    def _op():
        shipment = tenant_service.require_shipment_in_company(
            shipment_id, identity.company_id,
            query=lock_for_update(db.session.query(Shipment)),
        )
        new_status = patch.get("status")
        status_changed = new_status is not None and new_status != shipment.status
        if status_changed:
            _check_transition(shipment.status, new_status)

        if client_id is not None:
            shipment.client_id = tenant_service.require_client_in_company(client_id, identity.company_id).id

        for k, v in patch.items():
            if k != "status":
                setattr(shipment, k, v)
        if any(k in patch for k in CIF_FIELDS):
            shipment.cif_value_gnf = _cif_value_gnf(shipment)

        if status_changed:
            shipment.status = new_status
            _timeline_event(shipment, identity, f"Status changed: {new_status.value}", status=new_status)

        db.session.commit()
        return shipment, status_changed

    shipment, status_changed = run_with_retry(_op)
    audit(
        "Shipment updated",
        shipment_id=shipment.id,
        fields=sorted(patch),
        status=shipment.status.value if status_changed else None,
        user_id=identity.user_id,
    )
    return shipment


def archive_shipment(identity, shipment_id) -> Shipment:
    """
    Soft delete: move to ARCHIVED with a timeline event.

    Archiving an archived shipment is a no-op; CLOSED cannot be archived.
    """
    ensure_role(identity, AGENT_ROLES)

    def _op():
        shipment = tenant_service.require_shipment_in_company(
            shipment_id, identity.company_id,
            query=lock_for_update(db.session.query(Shipment)),
        )
        if shipment.status == ShipmentStatus.ARCHIVED:
            return shipment, False
        _check_transition(shipment.status, ShipmentStatus.ARCHIVED)
        shipment.status = ShipmentStatus.ARCHIVED
        _timeline_event(shipment, identity, "Shipment archived", status=ShipmentStatus.ARCHIVED)
        db.session.commit()
        return shipment, True

    shipment, changed = run_with_retry(_op)
    if changed:
        audit("Shipment archived", shipment_id=shipment.id, user_id=identity.user_id)
    return shipment


# =============================================================================
# READS
# =============================================================================

def get_shipment(identity, shipment_id) -> dict:
    """Shipment with containers, documents, expenses, timeline and finance summary."""
    shipment = tenant_service.require_shipment_in_company(shipment_id, identity.company_id)
    data = shipment.to_dict(include_children=True)
    data["finance"] = ledger_service.summarize(shipment.expenses)
    return data


def list_shipments(identity, status: str | None = None, search: str | None = None, page=1, limit=DEFAULT_PAGE_LIMIT) -> dict:
    page, limit = clamp_pagination(page, limit, DEFAULT_PAGE_LIMIT)
    query = tenant_service.shipment_query(identity.company_id)

    if status and status.upper() != "ALL":
        try:
            query = query.filter(Shipment.status == ShipmentStatus(status.upper()))
        except ValueError:
            raise ValidationError("Invalid data", errors=[{"field": "status", "message": "Unknown status"}])

    search = (search or "").strip()
    if search:
        pattern = f"%{search}%"
        query = query.filter(db.or_(
            Shipment.tracking_number.ilike(pattern),
            Shipment.bl_number.ilike(pattern),
            Shipment.client_name.ilike(pattern),
        ))

    total = query.count()
    rows = (
        query.order_by(Shipment.created_at.desc(), Shipment.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )

    items = []
    for s in rows:
        item = s.to_dict()
        item["document_count"] = len(s.documents)
        item["expense_count"] = len(s.expenses)
        item["created_by"] = {"id": s.created_by.id, "name": s.created_by.name} if s.created_by else None
        items.append(item)

    return {"shipments": items, "pagination": pagination_dict(page, limit, total)}


def shipment_stats(identity) -> dict:
    base = tenant_service.shipment_query(identity.company_id)
    finance = ledger_service.company_summary(identity)
    recent = (
        base.order_by(Shipment.created_at.desc(), Shipment.id.desc())
        .limit(RECENT_SHIPMENTS)
        .all()
    )
    return {
        "shipments": {
            "total": base.count(),
            "pending": base.filter(Shipment.status == ShipmentStatus.PENDING).count(),
            "in_progress": base.filter(Shipment.status.in_(IN_PROGRESS_STATUSES)).count(),
            "delivered": base.filter(Shipment.status == ShipmentStatus.DELIVERED).count(),
        },
        "finance": {
            "total_provisions": finance["total_provisions"],
            "total_disbursements": finance["total_disbursements"],
            "balance": finance["balance"],
            "unpaid": finance["unpaid_disbursements"],
        },
        "recent_shipments": [s.to_dict() for s in recent],
    }


# =============================================================================
# DUTIES
# =============================================================================

def apply_duties(identity, shipment_id) -> dict:
    """
    Run the duty calculator on the shipment and book the result.

    Stores the duty columns and creates one unpaid DISBURSEMENT per non-zero
    line. Raises ConflictError(DUTIES_ALREADY_APPLIED) if any duty-category
    expense already exists.
    """
    ensure_role(identity, ACCOUNTANT_ROLES)

    def _op():
        shipment = tenant_service.require_shipment_in_company(
            shipment_id, identity.company_id,
            query=lock_for_update(db.session.query(Shipment)),
        )
        if shipment.cif_value is None:
            raise BusinessRuleError("Shipment has no CIF value", code="MISSING_CIF_VALUE")
        existing = db.session.query(Expense.id).filter(
            Expense.shipment_id == shipment.id,
            Expense.category.in_(DUTY_CATEGORIES),
        ).first()
        if existing is not None:
            raise ConflictError("Duties have already been applied to this shipment", code="DUTIES_ALREADY_APPLIED")

        calculation = _calculate_for(shipment)
        lines = _apply_duty_lines(shipment, calculation)
        shipment.cif_value_gnf = calculation["cif_value_gnf"]
        ledger_service.touch(shipment)
        db.session.commit()
        return shipment, calculation, lines

    shipment, calculation, lines = run_with_retry(_op)
    audit("Duties applied", shipment_id=shipment.id, total_duties=calculation["total_duties"],
          lines=len(lines), user_id=identity.user_id)
    return {
        "calculation": calculation,
        "expenses": [e.to_dict() for e in lines],
        "shipment": shipment.to_dict(),
    }


# =============================================================================
# DOCUMENTS
# =============================================================================

def add_document(identity, shipment_id, payload: dict) -> Document:
    ensure_role(identity, AGENT_ROLES)
    data = validate_payload(model=Document, payload=payload, policy=DOCUMENT_POLICY, partial=False)
    shipment = tenant_service.require_shipment_in_company(shipment_id, identity.company_id)
    document = Document(shipment_id=shipment.id, **data)
    db.session.add(document)
    db.session.commit()
    audit("Document added", shipment_id=shipment.id, document_id=document.id, user_id=identity.user_id)
    return document


def remove_document(identity, shipment_id, document_id) -> None:
    ensure_role(identity, AGENT_ROLES)
    shipment = tenant_service.require_shipment_in_company(shipment_id, identity.company_id)
    document = db.session.query(Document).filter_by(id=document_id, shipment_id=shipment.id).first()
    if document is None:
        raise NotFoundError("Document not found")
    db.session.delete(document)
    db.session.commit()
    audit("Document deleted", shipment_id=shipment.id, document_id=document_id, user_id=identity.user_id)
