"""Customs duty calculator tests (pure, no database)."""

from decimal import Decimal

import pytest

from etrans.errors import ValidationError
from etrans.services import duty_service


class TestCalculateDuties:
    def test_reference_declaration(self):
        result = duty_service.calculate_duties("0207", 18240, "USD", 8646.285)
        duties = result["duties"]

        assert result["cif_value_gnf"] == 157_708_238
        assert duties["dd"]["amount"] == 55_197_883
        assert duties["rtl"]["amount"] == 3_154_165
        assert duties["pc"]["amount"] == 788_541
        assert duties["ca"]["amount"] == 394_271
        assert duties["tva"]["base"] == 212_906_121
        assert duties["tva"]["amount"] == 38_323_102
        assert duties["bfu"]["amount"] == 500_000
        assert result["total_duties"] == 98_357_962
        assert result["disclaimer"]

    def test_rates_reported_as_percent(self):
        duties = duty_service.calculate_duties("1006", 100)["duties"]
        assert duties["dd"]["rate"] == 35.0
        assert duties["tva"]["rate"] == 18.0
        assert duties["ca"]["rate"] == 0.25

    def test_total_is_sum_of_lines(self):
        result = duty_service.calculate_duties("8703", 5000, "EUR")
        duties = result["duties"]
        assert result["total_duties"] == sum(line["amount"] for line in duties.values())

    def test_table_rate_used_without_explicit_rate(self):
        result = duty_service.calculate_duties("1006", 1000, "eur")
        assert result["currency"] == "EUR"
        assert result["exchange_rate"] == 9400.0
        assert result["cif_value_gnf"] == 9_400_000

    def test_unknown_currency_falls_back_to_usd(self):
        result = duty_service.calculate_duties("1006", 1000, "XOF")
        assert result["exchange_rate"] == 8646.0

    @pytest.mark.parametrize("value", [0, -1, "abc", None, True, "nan"])
    def test_invalid_cif_value(self, value):
        with pytest.raises(ValidationError):
            duty_service.calculate_duties("1006", value)

    def test_invalid_exchange_rate(self):
        with pytest.raises(ValidationError):
            duty_service.calculate_duties("1006", 100, "USD", 0)


class TestBfu:
    @pytest.mark.parametrize(
        "converted,expected",
        [
            (Decimal("10000000"), 200_000),
            (Decimal("50000000"), 200_000),
            (Decimal("50000001"), 350_000),
            (Decimal("100000000"), 350_000),
            (Decimal("100000001"), 500_000),
        ],
    )
    def test_brackets(self, converted, expected):
        assert duty_service.bfu_for(converted) == expected


def test_round_half_up():
    assert duty_service.round_gnf(Decimal("2.5")) == 3
    assert duty_service.round_gnf(Decimal("3.5")) == 4
    assert duty_service.round_gnf(Decimal("2.49")) == 2


class TestCalculateCustomsRoute:
    def test_route(self, client, director_a, auth_headers):
        resp = client.post("/api/ai/calculate-customs", json={
            "hs_code": "0207", "value": 18240, "currency": "USD", "exchange_rate": 8646.285,
        }, headers=auth_headers(director_a))
        assert resp.status_code == 200
        assert resp.get_json()["data"]["total_duties"] == 98_357_962

    def test_short_hs_code(self, client, director_a, auth_headers):
        resp = client.post("/api/ai/calculate-customs", json={"hs_code": "02", "value": 100},
                           headers=auth_headers(director_a))
        assert resp.status_code == 400
        assert resp.get_json()["errors"][0]["field"] == "hs_code"
