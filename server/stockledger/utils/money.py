from decimal import Decimal, InvalidOperation, ROUND_HALF_UP


QUANTITY_TOLERANCE = Decimal("0.000001")


def quantize_money(value: Decimal | float | int | str | None) -> Decimal | None:
    if value is None:
        return None
    return Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def to_decimal(value: Decimal | float | int | str | None, default: Decimal = Decimal("0")) -> Decimal:
    """Coerce loosely typed numeric input to Decimal; non-numeric input yields ``default``."""
    if value is None:
        return default
    if isinstance(value, Decimal):
        return value
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return default
    return result if result.is_finite() else default


def line_amount(unit_cost: Decimal | None, quantity: Decimal) -> Decimal | None:
    """Extended amount for a movement, or None when there is no positive unit cost."""
    if unit_cost is None or unit_cost <= 0:
        return None
    return quantize_money(unit_cost * quantity)
