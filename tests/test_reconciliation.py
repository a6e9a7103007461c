"""Чистая сверка смены: сводка по способам оплаты, корте, закрытие."""
from datetime import date
from decimal import Decimal
from types import SimpleNamespace

import pytest

from salon_pos.models import PaymentMethod, ShiftStatus
from salon_pos.services.reconciliation import (
    AlreadyClosedError,
    CashNotCountedError,
    CloseNow,
    CutPending,
    MixedPaymentMismatchError,
    ReconciliationError,
    ShiftNotPendingError,
    ShiftSnapshot,
    build_cash_cut,
    close_shift,
    compute_summary,
    expand_sale,
    expense_movement,
    is_pending_cut,
    purchase_movement,
    reconcile,
)

DAY = date(2026, 3, 14)
CASH, CARD, TRANSFER = PaymentMethod.CASH, PaymentMethod.CARD, PaymentMethod.TRANSFER


def D(v):
    return Decimal(str(v))


def make_shift(initial="2000", status=ShiftStatus.OPEN, final_cash=None, shift_id=1):
    return ShiftSnapshot(
        id=shift_id,
        branch_id=1,
        user_id=1,
        date=DAY,
        start_time="09:00",
        initial_cash=D(initial),
        status=status,
        final_cash=D(final_cash) if final_cash is not None else None,
    )


def sale(total, method="cash", payments=(), sale_id=1):
    return SimpleNamespace(
        id=sale_id,
        date=DAY,
        branch_id=1,
        total=D(total),
        payment_method=method,
        payments=[SimpleNamespace(method=m, amount=D(a)) for m, a in payments],
    )


def expense(amount, method="cash"):
    return SimpleNamespace(date=DAY, branch_id=1, amount=D(amount), payment_method=method)


def purchase(total, method="cash"):
    return SimpleNamespace(date=DAY, branch_id=1, total=D(total), payment_method=method)


def example_movements():
    """Продажа 800 пополам наличными/картой и расход 150 наличными."""
    movements = expand_sale(sale("800", "mixed", [("cash", "400"), ("card", "400")]))
    movements.append(expense_movement(expense("150")))
    return movements


def test_zero_activity_expects_initial_cash():
    """Без движений ожидаемые наличные равны начальной кассе."""
    summary = compute_summary(make_shift("1234.50"), [])
    assert summary.expected_by_method[CASH] == D("1234.50")
    assert summary.expected_by_method[CARD] == 0
    assert summary.expected_by_method[TRANSFER] == 0
    assert summary.total_sales == 0
    assert summary.used_methods == (CASH,)


def test_example_expected_by_method():
    """Продажа 800 пополам и расход 150: ожидается 2250 наличными и 400 картой."""
    summary = compute_summary(make_shift("2000"), example_movements())
    assert summary.sales_by_method == {CASH: D("400"), CARD: D("400"), TRANSFER: D("0")}
    assert summary.expenses_by_method == {CASH: D("150"), CARD: D("0"), TRANSFER: D("0")}
    assert summary.expected_by_method == {CASH: D("2250"), CARD: D("400"), TRANSFER: D("0")}


def test_example_counted_exact_has_zero_difference():
    """Посчитано ровно ожидаемое — разница 0."""
    shift = make_shift("2000")
    summary = compute_summary(shift, example_movements())
    draft = close_shift(shift, summary, {"cash": "2250", "card": "400"})
    assert draft.expected_cash == D("2250")
    assert draft.final_cash == D("2250")
    assert draft.difference == 0


def test_example_short_cash_difference():
    """Наличных на 50 меньше — разница −50."""
    shift = make_shift("2000")
    summary = compute_summary(shift, example_movements())
    draft = close_shift(shift, summary, {"cash": "2200", "card": "400"})
    assert draft.difference == D("-50")
    assert draft.difference_by_method[CASH] == D("-50")
    assert draft.difference_by_method[CARD] == 0


def test_mixed_sale_total_sales_equals_sale_totals():
    """Смешанные оплаты не меняют сумму продаж."""
    sales = [
        sale("800", "mixed", [("cash", "400"), ("card", "400")], sale_id=1),
        sale("120.10", "transfer", sale_id=2),
        sale("99.99", "mixed", [("card", "50"), ("transfer", "49.99")], sale_id=3),
    ]
    movements = [m for s in sales for m in expand_sale(s)]
    summary = compute_summary(make_shift(), movements)
    assert summary.total_sales == D("1020.09")
    assert sum(summary.sales_by_method.values()) == summary.total_sales


def test_purchases_reduce_expected_separately_from_expenses():
    """Закупки и расходы учитываются раздельно."""
    movements = [purchase_movement(purchase("300", "transfer")), expense_movement(expense("20", "card"))]
    summary = compute_summary(make_shift("100"), movements)
    assert summary.purchases_by_method[TRANSFER] == D("300")
    assert summary.expenses_by_method[CARD] == D("20")
    assert summary.expected_by_method[TRANSFER] == D("-300")
    assert summary.total_purchases == D("300")
    assert summary.used_methods == (CASH, CARD, TRANSFER)


def test_negative_amounts_pass_through():
    """Отрицательные суммы проходят в итоги как есть."""
    summary = compute_summary(make_shift("0"), expand_sale(sale("-50")))
    assert summary.sales_by_method[CASH] == D("-50")
    assert summary.expected_by_method[CASH] == D("-50")


def test_compute_summary_is_deterministic():
    """Одинаковые данные — одинаковая сводка."""
    shift = make_shift()
    movements = example_movements()
    assert compute_summary(shift, movements) == compute_summary(shift, list(movements))


def test_strict_mixed_mismatch():
    """В строгом режиме расхождение частей и итога — ошибка."""
    bad = sale("800", "mixed", [("cash", "400"), ("card", "300")], sale_id=7)
    assert len(expand_sale(bad)) == 2
    with pytest.raises(MixedPaymentMismatchError) as exc:
        expand_sale(bad, strict=True)
    assert exc.value.sale_id == 7
    assert exc.value.paid == D("700")


def test_unused_method_not_in_difference():
    """Незадействованный способ оплаты не входит в разницу."""
    shift = make_shift("100")
    summary = compute_summary(shift, [])
    draft = build_cash_cut(shift, summary, {"cash": "100", "card": "999"})
    assert draft.difference == 0
    assert CARD not in draft.difference_by_method
    assert draft.counted_by_method[CARD] == D("999")


def test_cash_must_be_counted():
    """Без посчитанных наличных закрыть смену нельзя."""
    shift = make_shift()
    summary = compute_summary(shift, [])
    with pytest.raises(CashNotCountedError):
        close_shift(shift, summary, {"card": "10"})
    with pytest.raises(CashNotCountedError):
        close_shift(shift, summary, {"cash": ""})


def test_double_close_raises():
    """Повторное закрытие — AlreadyClosedError."""
    shift = make_shift(status=ShiftStatus.CLOSED, final_cash="2000")
    summary = compute_summary(shift, [])
    with pytest.raises(AlreadyClosedError):
        close_shift(shift, summary, {"cash": "2000"})
    with pytest.raises(AlreadyClosedError):
        reconcile(CloseNow(shift.id), shift, summary, {"cash": "2000"})


def test_cut_pending_uses_final_cash_by_default():
    """Корте позже берёт final_cash смены, если наличные не указаны."""
    shift = make_shift("2000", status=ShiftStatus.CLOSED, final_cash="2240")
    summary = compute_summary(shift, example_movements())
    draft = reconcile(CutPending(shift.id), shift, summary, {PaymentMethod.CARD: "400"})
    assert draft.final_cash == D("2240")
    assert draft.difference == D("-10")


def test_cut_pending_rejects_open_or_already_cut_shift():
    """Корте позже только для закрытой смены без корте."""
    open_shift = make_shift()
    summary = compute_summary(open_shift, [])
    with pytest.raises(ShiftNotPendingError):
        reconcile(CutPending(open_shift.id), open_shift, summary, {"cash": "1"})
    closed = make_shift(status=ShiftStatus.CLOSED, final_cash="2000")
    with pytest.raises(ShiftNotPendingError):
        reconcile(CutPending(closed.id), closed, summary, {"cash": "1"}, has_cut=True)


def test_request_for_other_shift_rejected():
    """Запрос для другой смены отклоняется."""
    shift = make_shift(shift_id=1)
    with pytest.raises(ReconciliationError):
        reconcile(CloseNow(2), shift, compute_summary(shift, []), {"cash": "1"})


def test_is_pending_cut():
    """Закрытая смена без корте — pending."""
    closed = SimpleNamespace(id=3, status="closed")
    opened = SimpleNamespace(id=4, status="open")
    assert is_pending_cut(closed, set())
    assert not is_pending_cut(closed, {3})
    assert not is_pending_cut(opened, set())
