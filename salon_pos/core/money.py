"""Денежные суммы: только Decimal с двумя знаками."""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

ZERO = Decimal("0.00")
CENT = Decimal("0.01")


def to_money(value) -> Decimal:
    """Привести число/строку/None к Decimal с копейками (ROUND_HALF_UP).

    float переводится через str, чтобы не тащить двоичный хвост.
    Пустое значение — ноль.
    """
    if value is None or value == "":
        return ZERO
    if isinstance(value, float):
        value = str(value)
    try:
        amount = Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise ValueError(f"Некорректная сумма: {value!r}")
    if not amount.is_finite():
        raise ValueError(f"Некорректная сумма: {value!r}")
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def money_sum(values) -> Decimal:
    total = ZERO
    for v in values:
        total += to_money(v)
    return total
