"""
Shipment ledger tests.

Verifies:
- balance = provisions - paid disbursements, never negative
- paid lines are immutable (no re-pay, un-pay, delete, amount change)
- ledger writes bump the shipment version
- two concurrent payments cannot overdraw the same shipment
"""

import threading

import pytest

from etrans import create_app
from etrans.errors import ConflictError, InsufficientBalanceError, NotFoundError, ValidationError
from etrans.extensions import db
from etrans.models import Company, Expense, ExpenseType, Role, Shipment, User
from etrans.services import ledger_service
from etrans.services.session_service import Identity


def _provision(identity, shipment, amount):
    return ledger_service.create_expense(identity, {
        "shipment_id": shipment.id,
        "type": "PROVISION",
        "category": "AUTRE",
        "description": "Client advance",
        "amount": amount,
    })


def _disbursement(identity, shipment, amount, category="TRANSPORT"):
    return ledger_service.create_expense(identity, {
        "shipment_id": shipment.id,
        "type": "DISBURSEMENT",
        "category": category,
        "description": "Truck to Kankan",
        "amount": amount,
    })


# =============================================================================
# BALANCE
# =============================================================================


class TestBalance:
    def test_unpaid_disbursements_do_not_reduce_balance(self, identity_a, shipment_a):
        _provision(identity_a, shipment_a, 100)
        _disbursement(identity_a, shipment_a, 60)
        assert ledger_service.compute_balance(shipment_a.id) == 100

    def test_paid_disbursement_reduces_balance(self, identity_a, shipment_a):
        _provision(identity_a, shipment_a, 100)
        expense = _disbursement(identity_a, shipment_a, 60)
        ledger_service.pay_expense(identity_a, expense.id)
        assert ledger_service.compute_balance(shipment_a.id) == 40

    def test_pay_more_than_balance_fails(self, identity_a, shipment_a, db_session):
        _provision(identity_a, shipment_a, 20)
        expense = _disbursement(identity_a, shipment_a, 30)

        with pytest.raises(InsufficientBalanceError) as exc_info:
            ledger_service.pay_expense(identity_a, expense.id)
        assert exc_info.value.available_balance == 20

        db_session.refresh(expense)
        assert expense.paid is False
        assert expense.paid_at is None

    def test_pay_exact_balance_succeeds(self, identity_a, shipment_a):
        _provision(identity_a, shipment_a, 30)
        expense = _disbursement(identity_a, shipment_a, 30)
        ledger_service.pay_expense(identity_a, expense.id)
        assert ledger_service.compute_balance(shipment_a.id) == 0

    def test_provision_counts_whether_paid_or_not(self, identity_a, shipment_a):
        provision = _provision(identity_a, shipment_a, 50)
        assert ledger_service.compute_balance(shipment_a.id) == 50
        ledger_service.pay_expense(identity_a, provision.id)
        assert ledger_service.compute_balance(shipment_a.id) == 50

    def test_summary(self, identity_a, shipment_a):
        _provision(identity_a, shipment_a, 100)
        paid = _disbursement(identity_a, shipment_a, 60)
        _disbursement(identity_a, shipment_a, 25, category="SCANNER")
        ledger_service.pay_expense(identity_a, paid.id)

        summary = ledger_service.shipment_summary(identity_a, shipment_a.id)
        assert summary["total_provisions"] == 100
        assert summary["total_disbursements"] == 85
        assert summary["paid_disbursements"] == 60
        assert summary["unpaid_disbursements"] == 25
        assert summary["balance"] == 40
        assert summary["by_category"] == {"TRANSPORT": 60, "SCANNER": 25}
        assert len(summary["expenses"]) == 3

    def test_ledger_write_bumps_shipment_version(self, identity_a, shipment_a, db_session):
        before = shipment_a.version_id
        _provision(identity_a, shipment_a, 100)
        db_session.refresh(shipment_a)
        assert shipment_a.version_id == before + 1
        assert shipment_a.ledger_updated_at is not None


# =============================================================================
# IMMUTABILITY
# =============================================================================


class TestPaidLines:
    @pytest.fixture
    def paid_expense(self, identity_a, shipment_a):
        _provision(identity_a, shipment_a, 100)
        expense = _disbursement(identity_a, shipment_a, 60)
        return ledger_service.pay_expense(identity_a, expense.id)

    def test_cannot_pay_twice(self, identity_a, paid_expense):
        with pytest.raises(ConflictError) as exc_info:
            ledger_service.pay_expense(identity_a, paid_expense.id)
        assert exc_info.value.code == "ALREADY_PAID"

    def test_cannot_delete_paid(self, identity_a, paid_expense):
        with pytest.raises(ConflictError) as exc_info:
            ledger_service.delete_expense(identity_a, paid_expense.id)
        assert exc_info.value.code == "CANNOT_DELETE_PAID"

    def test_cannot_unpay(self, identity_a, paid_expense):
        with pytest.raises(ConflictError) as exc_info:
            ledger_service.update_expense(identity_a, paid_expense.id, {"paid": False})
        assert exc_info.value.code == "ALREADY_PAID"

    def test_amount_is_frozen(self, identity_a, paid_expense):
        with pytest.raises(ConflictError) as exc_info:
            ledger_service.update_expense(identity_a, paid_expense.id, {"amount": 10})
        assert exc_info.value.code == "EXPENSE_PAID"

    def test_description_still_editable(self, identity_a, paid_expense):
        updated = ledger_service.update_expense(
            identity_a, paid_expense.id, {"description": "Truck to Labé", "reference": "REC-9"},
        )
        assert updated.description == "Truck to Labé"
        assert updated.reference == "REC-9"
        assert updated.paid is True

    def test_client_paid_at_is_ignored(self, identity_a, paid_expense, db_session):
        stamped = paid_expense.paid_at
        ledger_service.update_expense(
            identity_a, paid_expense.id, {"description": "x", "paid_at": "2001-01-01T00:00:00Z"},
        )
        db_session.refresh(paid_expense)
        assert paid_expense.paid_at == stamped


class TestUpdatesAndDeletes:
    def test_update_paid_true_goes_through_balance_check(self, identity_a, shipment_a, db_session):
        _provision(identity_a, shipment_a, 20)
        expense = _disbursement(identity_a, shipment_a, 30)
        with pytest.raises(InsufficientBalanceError):
            ledger_service.update_expense(identity_a, expense.id, {"paid": True})
        db_session.refresh(expense)
        assert expense.paid is False

    def test_update_paid_true_stamps_paid_at(self, identity_a, shipment_a):
        _provision(identity_a, shipment_a, 100)
        expense = _disbursement(identity_a, shipment_a, 30)
        updated = ledger_service.update_expense(identity_a, expense.id, {"paid": True})
        assert updated.paid is True
        assert updated.paid_at is not None

    def test_shrinking_provision_below_paid_total_fails(self, identity_a, shipment_a):
        provision = _provision(identity_a, shipment_a, 100)
        expense = _disbursement(identity_a, shipment_a, 80)
        ledger_service.pay_expense(identity_a, expense.id)
        with pytest.raises(InsufficientBalanceError):
            ledger_service.update_expense(identity_a, provision.id, {"amount": 50})

    def test_deleting_provision_that_funds_payments_fails(self, identity_a, shipment_a):
        provision = _provision(identity_a, shipment_a, 100)
        expense = _disbursement(identity_a, shipment_a, 80)
        ledger_service.pay_expense(identity_a, expense.id)
        with pytest.raises(InsufficientBalanceError):
            ledger_service.delete_expense(identity_a, provision.id)

    def test_delete_unpaid(self, identity_a, shipment_a, db_session):
        expense = _disbursement(identity_a, shipment_a, 80)
        expense_id = expense.id
        ledger_service.delete_expense(identity_a, expense_id)
        assert db_session.get(Expense, expense_id) is None

    @pytest.mark.parametrize("amount", [0, -5, "abc", 1.5])
    def test_invalid_amounts(self, identity_a, shipment_a, amount):
        with pytest.raises(ValidationError):
            _provision(identity_a, shipment_a, amount)

    def test_create_requires_shipment_id(self, identity_a):
        with pytest.raises(ValidationError) as exc_info:
            ledger_service.create_expense(identity_a, {
                "type": "PROVISION", "category": "AUTRE", "description": "x", "amount": 1,
            })
        assert exc_info.value.errors[0]["field"] == "shipment_id"

    def test_unknown_category(self, identity_a, shipment_a):
        with pytest.raises(ValidationError):
            ledger_service.create_expense(identity_a, {
                "shipment_id": shipment_a.id, "type": "PROVISION",
                "category": "BRIBE", "description": "x", "amount": 1,
            })

    def test_expense_of_other_company_is_not_found(self, identity_a, identity_b, shipment_a):
        expense = _provision(identity_a, shipment_a, 100)
        with pytest.raises(NotFoundError):
            ledger_service.pay_expense(identity_b, expense.id)
        with pytest.raises(NotFoundError):
            ledger_service.delete_expense(identity_b, expense.id)


# =============================================================================
# HTTP SURFACE
# =============================================================================


class TestFinanceRoutes:
    def test_insufficient_balance_response(self, client, director_a, shipment_a, identity_a, auth_headers):
        _provision(identity_a, shipment_a, 20)
        expense = _disbursement(identity_a, shipment_a, 30)
        resp = client.post(f"/api/finance/expenses/{expense.id}/pay", headers=auth_headers(director_a))
        assert resp.status_code == 400
        body = resp.get_json()
        assert body["code"] == "INSUFFICIENT_BALANCE"
        assert body["available_balance"] == 20

    def test_list_filters(self, client, director_a, shipment_a, identity_a, auth_headers):
        _provision(identity_a, shipment_a, 100)
        paid = _disbursement(identity_a, shipment_a, 60)
        _disbursement(identity_a, shipment_a, 10, category="SCANNER")
        ledger_service.pay_expense(identity_a, paid.id)
        headers = auth_headers(director_a)

        resp = client.get("/api/finance/expenses?paid=false&category=scanner", headers=headers)
        data = resp.get_json()["data"]
        assert data["pagination"]["total"] == 1
        assert data["expenses"][0]["shipment"]["tracking_number"] == shipment_a.tracking_number

        resp = client.get(f"/api/finance/expenses?shipment_id={shipment_a.id}&limit=1000", headers=headers)
        data = resp.get_json()["data"]
        assert data["pagination"]["total"] == 3
        assert data["pagination"]["limit"] == 100

    def test_company_summary(self, client, director_a, shipment_a, identity_a, auth_headers):
        _provision(identity_a, shipment_a, 100)
        resp = client.get("/api/finance/summary", headers=auth_headers(director_a))
        assert resp.status_code == 200
        assert resp.get_json()["data"]["balance"] == 100

    def test_create_and_delete(self, client, director_a, shipment_a, auth_headers):
        headers = auth_headers(director_a)
        resp = client.post("/api/finance/expenses", json={
            "shipment_id": shipment_a.id,
            "type": "DISBURSEMENT",
            "category": "MAGASINAGE",
            "description": "Storage",
            "amount": 250000,
            "paid": True,
        }, headers=headers)
        assert resp.status_code == 201
        expense = resp.get_json()["data"]["expense"]
        assert expense["paid"] is False

        resp = client.delete(f"/api/finance/expenses/{expense['id']}", headers=headers)
        assert resp.status_code == 200


# =============================================================================
# CONCURRENCY
# =============================================================================


def _file_backed_app(tmp_path):
    """App on a SQLite file so several threads can share the database."""
    app = create_app({
        "TESTING": True,
        "SQLALCHEMY_DATABASE_URI": f"sqlite:///{tmp_path / 'ledger.sqlite3'}",
        "RATELIMIT_ENABLED": False,
    })
    with app.app_context():
        db.create_all()
        company = Company(name="Race Transit", slug="race-transit")
        user = User(
            company=company, email="race@example.com", name="Race Director",
            password_hash="x", role=Role.DIRECTOR, email_verified=True, is_active=True,
        )
        shipment = Shipment(company=company, tracking_number="TR-RACE-0001", client_name="C", description="D")
        db.session.add_all([company, user, shipment])
        db.session.commit()
        identity = Identity.from_user(user)
        shipment_id = shipment.id
        _provision(identity, shipment, 100)
        db.session.remove()
    return app, identity, shipment_id


def test_concurrent_payments_cannot_overdraw(tmp_path, monkeypatch):
    """
    Two accountants pay two different 60 disbursements against a 100
    provision at the same moment. Both read balance 100 before either
    commits; exactly one payment may win.
    """
    app, identity, shipment_id = _file_backed_app(tmp_path)
    with app.app_context():
        shipment = db.session.get(Shipment, shipment_id)
        first = _disbursement(identity, shipment, 60).id
        second = _disbursement(identity, shipment, 60).id
        db.session.remove()

    original = ledger_service.compute_balance
    barrier = threading.Barrier(2)
    state = threading.local()

    def synchronized_balance(sid):
        balance = original(sid)
        if not getattr(state, "waited", False):
            state.waited = True
            try:
                barrier.wait(timeout=5)
            except threading.BrokenBarrierError:
                pass
        return balance

    monkeypatch.setattr(ledger_service, "compute_balance", synchronized_balance)

    results = []
    lock = threading.Lock()

    def pay(expense_id):
        with app.app_context():
            try:
                ledger_service.pay_expense(identity, expense_id)
                outcome = "paid"
            except InsufficientBalanceError:
                outcome = "insufficient"
            except Exception as exc:  # surfaced through the assertion below
                outcome = repr(exc)
            finally:
                db.session.remove()
        with lock:
            results.append(outcome)

    threads = [threading.Thread(target=pay, args=(eid,)) for eid in (first, second)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)

    assert sorted(results) == ["insufficient", "paid"]

    with app.app_context():
        assert original(shipment_id) == 40
        assert db.session.query(Expense).filter_by(paid=True, type=ExpenseType.DISBURSEMENT).count() == 1
        db.session.remove()
        db.engine.dispose()


def _run_late_writer(app, monkeypatch, late_op, early_op):
    """
    Start late_op in a thread and hold it just before it takes the shipment
    lock, run early_op to completion, then let late_op continue.
    """
    reached_lock = threading.Event()
    early_done = threading.Event()
    original_lock = ledger_service._lock_shipment

    def held_lock(shipment_id, company_id):
        if threading.current_thread().name == "late-writer":
            reached_lock.set()
            early_done.wait(timeout=10)
        return original_lock(shipment_id, company_id)

    monkeypatch.setattr(ledger_service, "_lock_shipment", held_lock)
    outcome = {}

    def late():
        with app.app_context():
            try:
                late_op()
                outcome["late"] = "ok"
            except ConflictError as exc:
                outcome["late"] = exc.code
            except Exception as exc:  # surfaced through the assertion below
                outcome["late"] = repr(exc)
            finally:
                db.session.remove()

    thread = threading.Thread(target=late, name="late-writer")
    thread.start()
    assert reached_lock.wait(timeout=10)
    with app.app_context():
        early_op()
        db.session.remove()
    early_done.set()
    thread.join(timeout=30)
    return outcome.get("late")


def test_late_payer_sees_committed_payment(tmp_path, monkeypatch):
    app, identity, shipment_id = _file_backed_app(tmp_path)
    with app.app_context():
        expense_id = _disbursement(identity, db.session.get(Shipment, shipment_id), 30).id
        db.session.remove()

    late = _run_late_writer(
        app, monkeypatch,
        late_op=lambda: ledger_service.pay_expense(identity, expense_id),
        early_op=lambda: ledger_service.pay_expense(identity, expense_id),
    )
    assert late == "ALREADY_PAID"

    with app.app_context():
        expense = db.session.get(Expense, expense_id)
        assert expense.paid is True
        assert ledger_service.compute_balance(shipment_id) == 70
        db.session.remove()
        db.engine.dispose()


def test_late_delete_cannot_remove_freshly_paid_expense(tmp_path, monkeypatch):
    app, identity, shipment_id = _file_backed_app(tmp_path)
    with app.app_context():
        expense_id = _disbursement(identity, db.session.get(Shipment, shipment_id), 30).id
        db.session.remove()

    late = _run_late_writer(
        app, monkeypatch,
        late_op=lambda: ledger_service.delete_expense(identity, expense_id),
        early_op=lambda: ledger_service.pay_expense(identity, expense_id),
    )
    assert late == "CANNOT_DELETE_PAID"

    with app.app_context():
        assert db.session.get(Expense, expense_id) is not None
        assert ledger_service.compute_balance(shipment_id) == 70
        db.session.remove()
        db.engine.dispose()


def test_late_update_cannot_change_freshly_paid_amount(tmp_path, monkeypatch):
    app, identity, shipment_id = _file_backed_app(tmp_path)
    with app.app_context():
        expense_id = _disbursement(identity, db.session.get(Shipment, shipment_id), 30).id
        db.session.remove()

    late = _run_late_writer(
        app, monkeypatch,
        late_op=lambda: ledger_service.update_expense(identity, expense_id, {"amount": 10}),
        early_op=lambda: ledger_service.pay_expense(identity, expense_id),
    )
    assert late == "EXPENSE_PAID"

    with app.app_context():
        assert db.session.get(Expense, expense_id).amount == 30
        db.session.remove()
        db.engine.dispose()
