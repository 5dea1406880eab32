# casa_cart/domain/money.py
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Annotated, Any

from pydantic import BeforeValidator, PlainSerializer

CENT = Decimal("0.01")
ZERO = Decimal("0.00")
# largest amount a Numeric(12, 2) column holds
MAX_AMOUNT = Decimal("9999999999.99")
WIRE_KEY = "$numberDecimal"


def to_money(value: Any) -> Decimal:
    """
    Coerce a wire or db value into a two-place Decimal.

    Accepts ``{"$numberDecimal": "199.00"}``, decimal strings, ints, floats
    and Decimals. Floats go through ``str`` so ``0.1`` stays ``0.10``.
    """
    if isinstance(value, dict):
        if WIRE_KEY not in value:
            raise ValueError(f"money object must contain {WIRE_KEY!r}")
        value = value[WIRE_KEY]

    if isinstance(value, bool) or value is None:
        raise ValueError(f"invalid money value: {value!r}")

    if isinstance(value, float):
        value = str(value)

    try:
        amount = Decimal(value)
    except (InvalidOperation, TypeError) as e:
        raise ValueError(f"invalid money value: {value!r}") from e

    if not amount.is_finite():
        raise ValueError(f"invalid money value: {value!r}")

    try:
        amount = amount.quantize(CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation as e:
        raise ValueError(f"money value out of range: {value!r}") from e

    if abs(amount) > MAX_AMOUNT:
        raise ValueError(f"money value out of range: {value!r}")

    return amount


def to_wire(amount: Decimal) -> dict:
    return {WIRE_KEY: f"{to_money(amount):.2f}"}


# pydantic field type: parses any accepted form, always dumps the wrapped form
Money = Annotated[
    Decimal,
    BeforeValidator(to_money),
    PlainSerializer(to_wire, return_type=dict),
]
