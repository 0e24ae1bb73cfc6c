from decimal import Decimal, InvalidOperation


def ensure_positive_int(value: int, field: str) -> int:
    if value is None or int(value) < 0:
        raise ValueError(f"{field} must be >= 0")
    return int(value)


def ensure_non_negative_amount(value, field: str) -> Decimal:
    try:
        amount = Decimal(str(value if value is not None else 0))
    except InvalidOperation as exc:
        raise ValueError(f"{field} must be a number") from exc
    if not amount.is_finite() or amount < 0:
        raise ValueError(f"{field} must be >= 0")
    return amount
