# Overview: Service-layer operations for the shipment ledger; expenses, payments and balance.

"""
Shipment Ledger Service

WHY: Every shipment carries a small cash ledger. PROVISION lines are money
the client advanced; DISBURSEMENT lines are money the agency pays out on
the client's behalf (duties, terminal fees, transport...).

BALANCE INVARIANT (per shipment):
    balance = sum(PROVISION.amount) - sum(paid DISBURSEMENT.amount) >= 0

No pay, update or delete may leave the balance negative.

CONCURRENCY:
Every mutation runs inside run_with_retry and:
1. locks the shipment row (SELECT ... FOR UPDATE where supported), and
   only then reads the expense being changed
2. recomputes the balance from the database
3. touches shipment.ledger_updated_at, which bumps the shipment's
   optimistic version_id at flush
Two writers that read the same version cannot both commit: the loser gets
StaleDataError (or a lock error on SQLite), rolls back and starts over
with a freshly computed balance.

IMMUTABILITY:
A paid line cannot be re-paid, un-paid or deleted, and its type, category
and amounts are frozen. paid_at is stamped server-side exactly once.
"""

from __future__ import annotations

from sqlalchemy import case, func

from ..errors import ConflictError, InsufficientBalanceError, NotFoundError, ValidationError
from ..extensions import db
from ..logging_config import audit
from ..models import Expense, ExpenseCategory, ExpenseType, Shipment
from ..permissions import ACCOUNTANT_ROLES, ensure_role
from ..time_utils import utcnow
from ..validation import ModelValidationPolicy, clamp_pagination, pagination_dict, parse_int_arg, validate_payload
from . import tenant_service
from .concurrency import lock_for_update, run_with_retry

EXPENSE_POLICY = ModelValidationPolicy(
    writable_fields=frozenset({
        "type", "category", "description", "amount",
        "quantity", "unit_price", "reference", "supplier",
    }),
    required_on_create=frozenset({"type", "category", "description", "amount"}),
)

# Fields a paid expense still accepts
PAID_EDITABLE_FIELDS = frozenset({"description", "reference", "supplier"})

DEFAULT_PAGE_LIMIT = 50


# =============================================================================
# BALANCE
# =============================================================================

def compute_balance(shipment_id: int) -> int:
    """Current balance of one shipment, computed in SQL from committed state."""
    provisions = func.coalesce(func.sum(
        case((Expense.type == ExpenseType.PROVISION, Expense.amount), else_=0)
    ), 0)
    paid_disbursements = func.coalesce(func.sum(
        case(
            (db.and_(Expense.type == ExpenseType.DISBURSEMENT, Expense.paid.is_(True)), Expense.amount),
            else_=0,
        )
    ), 0)
    row = db.session.query(provisions, paid_disbursements).filter(
        Expense.shipment_id == shipment_id
    ).one()
    return int(row[0]) - int(row[1])


def balance_effect(expense_type: ExpenseType, amount: int, paid: bool) -> int:
    """Contribution of one line to the balance."""
    if expense_type == ExpenseType.PROVISION:
        return amount
    return -amount if paid else 0


def summarize(expenses) -> dict:
    """
    Totals for a set of expenses.

    by_category covers disbursements only, paid or not.
    """
    total_provisions = 0
    total_disbursements = 0
    paid_disbursements = 0
    by_category: dict[str, int] = {}

    for e in expenses:
        if e.type == ExpenseType.PROVISION:
            total_provisions += e.amount
        else:
            total_disbursements += e.amount
            if e.paid:
                paid_disbursements += e.amount
            by_category[e.category.value] = by_category.get(e.category.value, 0) + e.amount

    return {
        "total_provisions": total_provisions,
        "total_disbursements": total_disbursements,
        "paid_disbursements": paid_disbursements,
        "unpaid_disbursements": total_disbursements - paid_disbursements,
        "balance": total_provisions - paid_disbursements,
        "by_category": by_category,
    }


# =============================================================================
# READS
# =============================================================================

def list_expenses(
    identity,
    shipment_id=None,
    category: str | None = None,
    paid: bool | None = None,
    page=1,
    limit=DEFAULT_PAGE_LIMIT,
) -> dict:
    """
    Company-scoped expense listing, newest first.

    Returns {"expenses": [...], "pagination": {page, limit, total, total_pages}}.
    """
    page, limit = clamp_pagination(page, limit, DEFAULT_PAGE_LIMIT)
    query = tenant_service.expense_query(identity.company_id)

    shipment_id = parse_int_arg(shipment_id, "shipment_id")
    if shipment_id is not None:
        query = query.filter(Expense.shipment_id == shipment_id)
    if category:
        try:
            query = query.filter(Expense.category == ExpenseCategory(category.upper()))
        except ValueError:
            raise ValidationError("Invalid data", errors=[{"field": "category", "message": "Unknown category"}])
    if paid is not None:
        query = query.filter(Expense.paid.is_(paid))

    total = query.count()
    rows = (
        query.order_by(Expense.created_at.desc(), Expense.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "expenses": [e.to_dict(include_shipment=True) for e in rows],
        "pagination": pagination_dict(page, limit, total),
    }


def company_summary(identity) -> dict:
    return summarize(tenant_service.expense_query(identity.company_id).all())


def shipment_summary(identity, shipment_id) -> dict:
    shipment = tenant_service.require_shipment_in_company(shipment_id, identity.company_id)
    expenses = (
        db.session.query(Expense)
        .filter(Expense.shipment_id == shipment.id)
        .order_by(Expense.created_at.desc(), Expense.id.desc())
        .all()
    )
    data = summarize(expenses)
    data["expenses"] = [e.to_dict() for e in expenses]
    return data


# =============================================================================
# WRITES
# =============================================================================

def _lock_shipment(shipment_id: int, company_id: int) -> Shipment:
    return tenant_service.require_shipment_in_company(
        shipment_id,
        company_id,
        query=lock_for_update(db.session.query(Shipment)),
    )


def _lock_expense(expense_id, company_id: int) -> tuple[Expense, Shipment]:
    """
    Lock the owning shipment, then read the expense under that lock.

    The expense row must never be read before the shipment lock is held.
    """
    shipment_id = (
        tenant_service.expense_query(company_id)
        .with_entities(Expense.shipment_id)
        .filter(Expense.id == expense_id)
        .scalar()
    )
    if shipment_id is None:
        raise NotFoundError("Expense not found")
    shipment = _lock_shipment(shipment_id, company_id)
    expense = (
        tenant_service.expense_query(company_id)
        .populate_existing()
        .with_for_update(of=Expense)
        .filter(Expense.id == expense_id)
        .first()
    )
    if expense is None:
        raise NotFoundError("Expense not found")
    return expense, shipment


def touch(shipment: Shipment) -> None:
    """Bump the shipment's version so concurrent ledger writers conflict."""
    shipment.ledger_updated_at = utcnow()


def _require_positive_amount(patch: dict) -> None:
    if "amount" in patch and (patch["amount"] is None or patch["amount"] <= 0):
        raise ValidationError("Invalid data", errors=[{"field": "amount", "message": "amount must be a positive integer"}])
    for field in ("quantity", "unit_price"):
        if patch.get(field) is not None and patch[field] < 0:
            raise ValidationError("Invalid data", errors=[{"field": field, "message": f"{field} must be >= 0"}])


def create_expense(identity, payload: dict) -> Expense:
    """
    Add a ledger line to a shipment of the caller's company.

    Lines are created unpaid. Accountant or director only.
    """
    ensure_role(identity, ACCOUNTANT_ROLES)
    payload = payload or {}
    shipment_id = payload.get("shipment_id")
    if shipment_id is None or shipment_id == "":
        raise ValidationError("Invalid data", errors=[{"field": "shipment_id", "message": "shipment_id is required"}])
    shipment_id = parse_int_arg(shipment_id, "shipment_id")

    data = validate_payload(model=Expense, payload=payload, policy=EXPENSE_POLICY, partial=False)
    _require_positive_amount(data)

    def _op():
        shipment = _lock_shipment(shipment_id, identity.company_id)
        expense = Expense(shipment_id=shipment.id, paid=False, **data)
        db.session.add(expense)
        touch(shipment)
        db.session.commit()
        return expense

    expense = run_with_retry(_op)
    audit(
        "Expense created",
        expense_id=expense.id,
        shipment_id=expense.shipment_id,
        type=expense.type.value,
        amount=expense.amount,
        user_id=identity.user_id,
    )
    return expense


def _pay_locked(expense: Expense, shipment: Shipment) -> None:
    if expense.paid:
        raise ConflictError("Expense already paid", code="ALREADY_PAID")
    if expense.type == ExpenseType.DISBURSEMENT:
        balance = compute_balance(shipment.id)
        if balance < expense.amount:
            raise InsufficientBalanceError(balance)
    expense.paid = True
    expense.paid_at = utcnow()


def pay_expense(identity, expense_id) -> Expense:
    """
    Mark an expense paid.

    DISBURSEMENT requires balance >= amount; PROVISION skips the check.
    Raises ConflictError(ALREADY_PAID) or InsufficientBalanceError.
    """
    ensure_role(identity, ACCOUNTANT_ROLES)

    def _op():
        expense, shipment = _lock_expense(expense_id, identity.company_id)
        _pay_locked(expense, shipment)
        touch(shipment)
        db.session.commit()
        return expense

    expense = run_with_retry(_op)
    audit("Expense paid", expense_id=expense.id, shipment_id=expense.shipment_id,
          amount=expense.amount, user_id=identity.user_id)
    return expense


def update_expense(identity, expense_id, payload: dict) -> Expense:
    """
    Patch an expense.

    - paid: true on an unpaid line goes through the pay path
    - paid: false on a paid line is rejected
    - a paid line only accepts description/reference/supplier changes
    - a client-supplied paid_at is ignored
    - any change leaving the shipment balance negative is rejected
    """
    ensure_role(identity, ACCOUNTANT_ROLES)
    payload = payload or {}
    wants_paid = payload.get("paid")
    if wants_paid is not None and not isinstance(wants_paid, bool):
        raise ValidationError("Invalid data", errors=[{"field": "paid", "message": "paid must be a boolean"}])

    patch = validate_payload(model=Expense, payload=payload, policy=EXPENSE_POLICY, partial=True)
    _require_positive_amount(patch)

    def _op():
        expense, shipment = _lock_expense(expense_id, identity.company_id)
        changes = {k: v for k, v in patch.items() if getattr(expense, k) != v}

        if expense.paid:
            if wants_paid is False:
                raise ConflictError("A paid expense cannot be marked unpaid", code="ALREADY_PAID")
            frozen = sorted(set(changes) - PAID_EDITABLE_FIELDS)
            if frozen:
                raise ConflictError(
                    f"A paid expense cannot change: {', '.join(frozen)}",
                    code="EXPENSE_PAID",
                )
        else:
            new_type = changes.get("type", expense.type)
            new_amount = changes.get("amount", expense.amount)
            balance = compute_balance(shipment.id)
            projected = (
                balance
                - balance_effect(expense.type, expense.amount, False)
                + balance_effect(new_type, new_amount, bool(wants_paid))
            )
            if projected < 0:
                raise InsufficientBalanceError(balance)

        for k, v in changes.items():
            setattr(expense, k, v)
        if wants_paid is True and not expense.paid:
            expense.paid = True
            expense.paid_at = utcnow()

        touch(shipment)
        db.session.commit()
        return expense

    expense = run_with_retry(_op)
    audit("Expense updated", expense_id=expense.id, shipment_id=expense.shipment_id,
          fields=sorted(patch), paid=expense.paid, user_id=identity.user_id)
    return expense


def delete_expense(identity, expense_id) -> None:
    """
    Delete an unpaid expense.

    Raises ConflictError(CANNOT_DELETE_PAID) for paid lines and
    InsufficientBalanceError when removing a provision would overdraw.
    """
    ensure_role(identity, ACCOUNTANT_ROLES)

    def _op():
        expense, shipment = _lock_expense(expense_id, identity.company_id)
        if expense.paid:
            raise ConflictError("A paid expense cannot be deleted", code="CANNOT_DELETE_PAID")
        balance = compute_balance(shipment.id)
        if balance - balance_effect(expense.type, expense.amount, expense.paid) < 0:
            raise InsufficientBalanceError(balance)
        info = (expense.id, expense.shipment_id, expense.type.value, expense.amount)
        db.session.delete(expense)
        touch(shipment)
        db.session.commit()
        return info

    expense_id, shipment_id, expense_type, amount = run_with_retry(_op)
    audit("Expense deleted", expense_id=expense_id, shipment_id=shipment_id,
          type=expense_type, amount=amount, user_id=identity.user_id)
