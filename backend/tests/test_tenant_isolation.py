"""
Multi-tenant isolation tests.

Verifies that:
- Services only see rows of the caller's company
- Foreign resources are indistinguishable from missing ones (404)
- Cross-tenant probes are logged
"""

import logging

import pytest

from etrans.errors import NotFoundError
from etrans.services import ledger_service, shipment_service, tenant_service


class TestTenantScoping:
    def test_require_shipment_in_company_valid(self, db_session, company_a, shipment_a):
        assert tenant_service.require_shipment_in_company(shipment_a.id, company_a.id).id == shipment_a.id

    def test_require_shipment_in_company_cross_tenant(self, db_session, company_a, shipment_b):
        with pytest.raises(NotFoundError):
            tenant_service.require_shipment_in_company(shipment_b.id, company_a.id)

    def test_require_shipment_in_company_nonexistent(self, db_session, company_a):
        with pytest.raises(NotFoundError):
            tenant_service.require_shipment_in_company(99999, company_a.id)

    def test_cross_tenant_access_is_logged(self, db_session, company_a, shipment_b, caplog):
        with caplog.at_level(logging.WARNING, logger="etrans.services.tenant_service"):
            with pytest.raises(NotFoundError):
                tenant_service.require_shipment_in_company(shipment_b.id, company_a.id)
        assert any(r.getMessage() == "Cross-tenant access attempt" for r in caplog.records)

    def test_shipment_query_filters(self, db_session, company_a, shipment_a, shipment_b):
        ids = [s.id for s in tenant_service.shipment_query(company_a.id).all()]
        assert ids == [shipment_a.id]

    def test_expense_query_filters(self, identity_a, identity_b, shipment_a, shipment_b):
        for identity, shipment in ((identity_a, shipment_a), (identity_b, shipment_b)):
            ledger_service.create_expense(identity, {
                "shipment_id": shipment.id, "type": "PROVISION",
                "category": "AUTRE", "description": "Advance", "amount": 10,
            })
        listing = ledger_service.list_expenses(identity_a)
        assert [e["shipment_id"] for e in listing["expenses"]] == [shipment_a.id]
        assert ledger_service.company_summary(identity_b)["total_provisions"] == 10


class TestServicesRespectTenant:
    def test_update_foreign_shipment(self, identity_a, shipment_b):
        with pytest.raises(NotFoundError):
            shipment_service.update_shipment(identity_a, shipment_b.id, {"status": "ARRIVED"})

    def test_archive_foreign_shipment(self, identity_a, shipment_b):
        with pytest.raises(NotFoundError):
            shipment_service.archive_shipment(identity_a, shipment_b.id)

    def test_expense_on_foreign_shipment(self, identity_a, shipment_b):
        with pytest.raises(NotFoundError):
            ledger_service.create_expense(identity_a, {
                "shipment_id": shipment_b.id, "type": "PROVISION",
                "category": "AUTRE", "description": "Advance", "amount": 10,
            })

    def test_stats_are_per_company(self, identity_a, shipment_a, shipment_b):
        assert shipment_service.shipment_stats(identity_a)["shipments"]["total"] == 1


class TestHttpIsolation:
    def test_foreign_and_missing_look_the_same(self, client, director_a, shipment_b, auth_headers):
        headers = auth_headers(director_a)
        foreign = client.get(f"/api/shipments/{shipment_b.id}", headers=headers)
        missing = client.get("/api/shipments/99999", headers=headers)
        assert foreign.status_code == missing.status_code == 404
        assert foreign.get_json() == missing.get_json()

    def test_list_only_own_shipments(self, client, director_a, shipment_a, shipment_b, auth_headers):
        data = client.get("/api/shipments", headers=auth_headers(director_a)).get_json()["data"]
        assert [s["id"] for s in data["shipments"]] == [shipment_a.id]

    def test_foreign_finance(self, client, director_a, shipment_b, auth_headers):
        resp = client.get(f"/api/finance/shipment/{shipment_b.id}", headers=auth_headers(director_a))
        assert resp.status_code == 404
