"""Flask CLI command tests."""

from datetime import timedelta

from etrans.models import Expense, RefreshToken, Shipment, User
from etrans.time_utils import utcnow


def test_db_init(app, db_session):
    result = app.test_cli_runner().invoke(args=["db-init"])
    assert result.exit_code == 0
    assert "PASS" in result.output


def test_seed_demo_is_idempotent(app, db_session):
    runner = app.test_cli_runner()
    result = runner.invoke(args=["seed-demo"])
    assert result.exit_code == 0, result.output
    assert db_session.query(User).count() == 3
    shipment = db_session.query(Shipment).one()
    assert shipment.total_duties is not None
    assert db_session.query(Expense).filter_by(shipment_id=shipment.id).count() == 7

    result = runner.invoke(args=["seed-demo"])
    assert result.exit_code == 0
    assert "SKIP" in result.output
    assert db_session.query(User).count() == 3


def test_seed_demo_rejects_weak_password(app, db_session):
    result = app.test_cli_runner().invoke(args=["seed-demo", "--password", "weak"])
    assert result.exit_code != 0
    assert db_session.query(User).count() == 0


def test_users_list(app, director_a, director_b):
    result = app.test_cli_runner().invoke(args=["users", "list", "--company-id", str(director_a.company_id)])
    assert result.exit_code == 0
    assert director_a.email in result.output
    assert director_b.email not in result.output


def test_cleanup_refresh_tokens(app, db_session, director_a):
    db_session.add(RefreshToken(
        user_id=director_a.id,
        token_hash="0" * 64,
        expires_at=utcnow() - timedelta(days=60),
    ))
    db_session.commit()
    result = app.test_cli_runner().invoke(args=["maintenance", "cleanup-refresh-tokens", "--retention-days", "30"])
    assert result.exit_code == 0
    assert "Deleted 1 refresh tokens" in result.output
