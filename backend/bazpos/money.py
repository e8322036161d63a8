# Overview: Currency helpers; amounts are stored as floats in documents and computed in cents.

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

MONEY_QUANT = Decimal("0.01")
ZERO_MONEY = Decimal("0.00")


def to_money(value: Decimal | int | float | str | None) -> Decimal:
    if value is None or value == "":
        return ZERO_MONEY
    try:
        return Decimal(str(value)).quantize(MONEY_QUANT, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise ValueError(f"invalid amount: {value!r}")


def money_to_cents(value) -> int:
    return int(to_money(value) * 100)


def cents_to_money(value_cents: int) -> float:
    return float((Decimal(value_cents) / 100).quantize(MONEY_QUANT, rounding=ROUND_HALF_UP))
