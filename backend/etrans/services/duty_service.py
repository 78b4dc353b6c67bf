# Overview: Guinea customs duty calculator (pure, never persists).

"""
Customs Duty Calculator

Indicative duties for an import declared at CIF value in a foreign currency.

    converted = cif_value * rate           (GNF)
    DD   35%    of converted               (droit de douane)
    RTL   2%    of converted               (redevance de traitement)
    PC    0.5%  of converted               (prélèvement communautaire)
    CA    0.25% of converted               (centime additionnel)
    TVA  18%    of (converted + DD)
    BFU  flat: 500 000 above 100M GNF, 350 000 above 50M, else 200 000

Every amount rounds half-up to a whole GNF. Arithmetic is Decimal so that
results do not depend on binary float representation.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from ..errors import ValidationError

# GNF per unit of currency; unknown currencies fall back to USD
EXCHANGE_RATES = {
    "USD": Decimal("8646"),
    "EUR": Decimal("9400"),
    "GNF": Decimal("1"),
}
DEFAULT_CURRENCY = "USD"

DD_RATE = Decimal("0.35")
RTL_RATE = Decimal("0.02")
PC_RATE = Decimal("0.005")
CA_RATE = Decimal("0.0025")
TVA_RATE = Decimal("0.18")

BFU_BRACKETS = (
    (Decimal("100000000"), 500_000),
    (Decimal("50000000"), 350_000),
)
BFU_MINIMUM = 200_000

DISCLAIMER = (
    "These figures are indicative. Actual rates may vary with the HS code "
    "and the regulations in force."
)


def round_gnf(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _decimal(value, field: str) -> Decimal:
    if isinstance(value, bool):
        raise ValidationError("Invalid data", errors=[{"field": field, "message": f"{field} must be a number"}])
    try:
        number = Decimal(str(value).strip())
    except (InvalidOperation, TypeError):
        raise ValidationError("Invalid data", errors=[{"field": field, "message": f"{field} must be a number"}])
    if not number.is_finite():
        raise ValidationError("Invalid data", errors=[{"field": field, "message": f"{field} must be a number"}])
    return number


def resolve_rate(currency: str | None, exchange_rate=None) -> Decimal:
    """Explicit exchange_rate wins; otherwise the table, USD for unknown currencies."""
    if exchange_rate is not None:
        rate = _decimal(exchange_rate, "exchange_rate")
        if rate <= 0:
            raise ValidationError("Invalid data", errors=[
                {"field": "exchange_rate", "message": "exchange_rate must be positive"},
            ])
        return rate
    code = (currency or DEFAULT_CURRENCY).upper()
    return EXCHANGE_RATES.get(code, EXCHANGE_RATES[DEFAULT_CURRENCY])


def convert_to_gnf(cif_value, currency: str | None = DEFAULT_CURRENCY, exchange_rate=None) -> int:
    return round_gnf(_decimal(cif_value, "cif_value") * resolve_rate(currency, exchange_rate))


def bfu_for(converted: Decimal) -> int:
    for threshold, amount in BFU_BRACKETS:
        if converted > threshold:
            return amount
    return BFU_MINIMUM


def _percent(rate: Decimal) -> float:
    return float(rate * 100)


def calculate_duties(hs_code: str | None, cif_value, currency: str | None = DEFAULT_CURRENCY, exchange_rate=None) -> dict:
    """
    Compute the duty breakdown for a CIF value.

    Raises ValidationError when cif_value is not a positive number.
    """
    value = _decimal(cif_value, "cif_value")
    if value <= 0:
        raise ValidationError("Invalid data", errors=[{"field": "cif_value", "message": "cif_value must be positive"}])

    currency = (currency or DEFAULT_CURRENCY).upper()
    rate = resolve_rate(currency, exchange_rate)
    converted = value * rate

    dd = round_gnf(converted * DD_RATE)
    rtl = round_gnf(converted * RTL_RATE)
    pc = round_gnf(converted * PC_RATE)
    ca = round_gnf(converted * CA_RATE)
    tva_base = converted + dd
    tva = round_gnf(tva_base * TVA_RATE)
    bfu = bfu_for(converted)

    return {
        "hs_code": hs_code,
        "cif_value": float(value),
        "currency": currency,
        "exchange_rate": float(rate),
        "cif_value_gnf": round_gnf(converted),
        "duties": {
            "dd": {"rate": _percent(DD_RATE), "amount": dd},
            "rtl": {"rate": _percent(RTL_RATE), "amount": rtl},
            "pc": {"rate": _percent(PC_RATE), "amount": pc},
            "ca": {"rate": _percent(CA_RATE), "amount": ca},
            "tva": {"rate": _percent(TVA_RATE), "base": round_gnf(tva_base), "amount": tva},
            "bfu": {"amount": bfu},
        },
        "total_duties": dd + rtl + pc + ca + tva + bfu,
        "disclaimer": DISCLAIMER,
    }
