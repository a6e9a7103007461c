"""
Сверка смены (turno) и корте кассы.

Чистые функции над уже загруженными данными: никаких запросов к БД и чтения часов.
Загрузка продаж/расходов/закупок и сохранение корте — в shift_service.

Ожидаемая сумма по способу оплаты:
    наличные:        начальная наличность + продажи − расходы − закупки
    карта/перевод:   продажи − расходы − закупки
Разница корте — сумма (посчитано − ожидается) по задействованным способам;
наличные задействованы всегда.
"""
import enum
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Dict, Iterable, List, Mapping, Optional, Tuple, Union

from salon_pos.core.money import ZERO, money_sum, to_money
from salon_pos.models.cash_shift import ShiftStatus
from salon_pos.models.sale import PaymentMethod, SaleMethod

METHODS: Tuple[PaymentMethod, ...] = (
    PaymentMethod.CASH,
    PaymentMethod.CARD,
    PaymentMethod.TRANSFER,
)


class ReconciliationError(Exception):
    """Ошибка валидации сверки: действие отклоняется, ничего не записывается."""


class AlreadyClosedError(ReconciliationError):
    def __init__(self, shift_id):
        super().__init__(f"Turno {shift_id} ya está cerrado")
        self.shift_id = shift_id


class CashNotCountedError(ReconciliationError):
    def __init__(self):
        super().__init__("Ingresa el efectivo contado en caja")


class ShiftNotPendingError(ReconciliationError):
    def __init__(self, shift_id, reason: str):
        super().__init__(f"Turno {shift_id} no tiene corte pendiente: {reason}")
        self.shift_id = shift_id


class MixedPaymentMismatchError(ReconciliationError):
    def __init__(self, sale_id, total: Decimal, paid: Decimal):
        super().__init__(
            f"Venta {sale_id}: los pagos suman {paid} y el total es {total}"
        )
        self.sale_id = sale_id
        self.total = total
        self.paid = paid


class Direction(str, enum.Enum):
    IN = "in"
    OUT = "out"


class MovementSource(str, enum.Enum):
    SALE = "sale"
    EXPENSE = "expense"
    PURCHASE = "purchase"


@dataclass(frozen=True)
class MoneyMovement:
    """Одно движение денег по одному способу оплаты."""
    date: date
    branch_id: int
    amount: Decimal
    method: PaymentMethod
    direction: Direction
    source: MovementSource


@dataclass(frozen=True)
class ShiftSnapshot:
    id: int
    branch_id: int
    user_id: int
    date: date
    start_time: str
    initial_cash: Decimal
    status: ShiftStatus
    final_cash: Optional[Decimal] = None

    @classmethod
    def from_model(cls, shift) -> "ShiftSnapshot":
        return cls(
            id=shift.id,
            branch_id=shift.branch_id,
            user_id=shift.user_id,
            date=shift.date,
            start_time=shift.start_time,
            initial_cash=to_money(shift.initial_cash),
            status=ShiftStatus(shift.status),
            final_cash=to_money(shift.final_cash) if shift.final_cash is not None else None,
        )


def _by_method() -> Dict[PaymentMethod, Decimal]:
    return {m: ZERO for m in METHODS}


@dataclass(frozen=True)
class ShiftSummary:
    sales_by_method: Dict[PaymentMethod, Decimal]
    expenses_by_method: Dict[PaymentMethod, Decimal]
    purchases_by_method: Dict[PaymentMethod, Decimal]
    expected_by_method: Dict[PaymentMethod, Decimal]
    total_sales: Decimal
    total_expenses: Decimal
    total_purchases: Decimal
    completed_appointments_count: int = 0
    direct_sales_count: int = 0

    @property
    def used_methods(self) -> Tuple[PaymentMethod, ...]:
        """Наличные всегда, остальные — если было хоть какое-то движение."""
        used = []
        for m in METHODS:
            if m is PaymentMethod.CASH or any(
                bucket[m] != ZERO
                for bucket in (self.sales_by_method, self.expenses_by_method, self.purchases_by_method)
            ):
                used.append(m)
        return tuple(used)


@dataclass(frozen=True)
class CashCutDraft:
    """Корте до сохранения: после создания не меняется."""
    shift_id: int
    branch_id: int
    date: date
    user_id: int
    initial_cash: Decimal
    final_cash: Decimal
    expected_cash: Decimal
    difference: Decimal
    sales_by_method: Dict[PaymentMethod, Decimal]
    counted_by_method: Dict[PaymentMethod, Decimal]
    difference_by_method: Dict[PaymentMethod, Decimal]
    total_sales: Decimal
    total_expenses: Decimal
    total_purchases: Decimal
    appointments_count: int
    direct_sales_count: int


@dataclass(frozen=True)
class CloseNow:
    """Закрыть открытую смену и сразу сделать корте."""
    shift_id: int


@dataclass(frozen=True)
class CutPending:
    """Сделать корте для уже закрытой смены без корте."""
    shift_id: int


ReconciliationRequest = Union[CloseNow, CutPending]


# --- Движения денег из продаж, расходов и закупок ---

def expand_sale(sale, strict: bool = False) -> List[MoneyMovement]:
    """Продажа → движения «in». Смешанная оплата раскладывается по частям.

    Совпадение суммы частей с итогом продажи проверяется только при strict=True.
    """
    method = SaleMethod(sale.payment_method)
    if method is not SaleMethod.MIXED:
        return [
            MoneyMovement(
                date=sale.date,
                branch_id=sale.branch_id,
                amount=to_money(sale.total),
                method=PaymentMethod(method.value),
                direction=Direction.IN,
                source=MovementSource.SALE,
            )
        ]
    parts = list(sale.payments or [])
    if strict:
        paid = money_sum(p.amount for p in parts)
        total = to_money(sale.total)
        if paid != total:
            raise MixedPaymentMismatchError(sale.id, total, paid)
    return [
        MoneyMovement(
            date=sale.date,
            branch_id=sale.branch_id,
            amount=to_money(p.amount),
            method=PaymentMethod(p.method),
            direction=Direction.IN,
            source=MovementSource.SALE,
        )
        for p in parts
    ]


def expense_movement(expense) -> MoneyMovement:
    return MoneyMovement(
        date=expense.date,
        branch_id=expense.branch_id,
        amount=to_money(expense.amount),
        method=PaymentMethod(expense.payment_method),
        direction=Direction.OUT,
        source=MovementSource.EXPENSE,
    )


def purchase_movement(purchase) -> MoneyMovement:
    return MoneyMovement(
        date=purchase.date,
        branch_id=purchase.branch_id,
        amount=to_money(purchase.total),
        method=PaymentMethod(purchase.payment_method),
        direction=Direction.OUT,
        source=MovementSource.PURCHASE,
    )


# --- Сводка и корте ---

def compute_summary(
    shift: ShiftSnapshot,
    movements: Iterable[MoneyMovement],
    completed_appointments: int = 0,
    direct_sales_count: int = 0,
) -> ShiftSummary:
    """Итоги смены по способам оплаты.

    movements уже отфильтрованы по филиалу и дню смены (точное совпадение даты).
    Отрицательные суммы не отклоняются: проходят в итоги как есть.
    """
    sales = _by_method()
    expenses = _by_method()
    purchases = _by_method()
    for mv in movements:
        if mv.direction is Direction.IN:
            bucket = sales
        elif mv.source is MovementSource.PURCHASE:
            bucket = purchases
        else:
            bucket = expenses
        bucket[mv.method] += to_money(mv.amount)

    expected = {}
    for m in METHODS:
        base = to_money(shift.initial_cash) if m is PaymentMethod.CASH else ZERO
        expected[m] = base + sales[m] - expenses[m] - purchases[m]

    return ShiftSummary(
        sales_by_method=sales,
        expenses_by_method=expenses,
        purchases_by_method=purchases,
        expected_by_method=expected,
        total_sales=sum(sales.values(), ZERO),
        total_expenses=sum(expenses.values(), ZERO),
        total_purchases=sum(purchases.values(), ZERO),
        completed_appointments_count=completed_appointments,
        direct_sales_count=direct_sales_count,
    )


def _normalize_counted(counted_by_method: Mapping) -> Dict[PaymentMethod, Decimal]:
    counted = {}
    for key, value in counted_by_method.items():
        if value is None or value == "":
            continue
        counted[PaymentMethod(key)] = to_money(value)
    return counted


def build_cash_cut(
    shift: ShiftSnapshot,
    summary: ShiftSummary,
    counted_by_method: Mapping,
) -> CashCutDraft:
    """Корте по сводке и посчитанным суммам. Статус смены не проверяет."""
    counted = _normalize_counted(counted_by_method)
    if PaymentMethod.CASH not in counted:
        raise CashNotCountedError()

    diffs = {}
    for m in summary.used_methods:
        diffs[m] = counted.get(m, ZERO) - summary.expected_by_method[m]

    return CashCutDraft(
        shift_id=shift.id,
        branch_id=shift.branch_id,
        date=shift.date,
        user_id=shift.user_id,
        initial_cash=to_money(shift.initial_cash),
        final_cash=counted[PaymentMethod.CASH],
        expected_cash=summary.expected_by_method[PaymentMethod.CASH],
        difference=sum(diffs.values(), ZERO),
        sales_by_method=dict(summary.sales_by_method),
        counted_by_method={m: counted.get(m, ZERO) for m in METHODS},
        difference_by_method=diffs,
        total_sales=summary.total_sales,
        total_expenses=summary.total_expenses,
        total_purchases=summary.total_purchases,
        appointments_count=summary.completed_appointments_count,
        direct_sales_count=summary.direct_sales_count,
    )


def close_shift(
    shift: ShiftSnapshot,
    summary: ShiftSummary,
    counted_by_method: Mapping,
) -> CashCutDraft:
    """Закрытие смены: корте + final_cash = посчитанные наличные.

    Повторное закрытие не поддерживается: AlreadyClosedError.
    """
    if shift.status is ShiftStatus.CLOSED:
        raise AlreadyClosedError(shift.id)
    return build_cash_cut(shift, summary, counted_by_method)


def is_pending_cut(shift, cut_shift_ids) -> bool:
    return ShiftStatus(shift.status) is ShiftStatus.CLOSED and shift.id not in cut_shift_ids


def reconcile(
    request: ReconciliationRequest,
    shift: ShiftSnapshot,
    summary: ShiftSummary,
    counted_by_method: Mapping,
    has_cut: bool = False,
) -> CashCutDraft:
    """Единая точка для «закрыть сейчас» и «корте позже»."""
    if request.shift_id != shift.id:
        raise ReconciliationError(f"Solicitud para turno {request.shift_id}, recibido {shift.id}")
    if isinstance(request, CloseNow):
        return close_shift(shift, summary, counted_by_method)
    if shift.status is not ShiftStatus.CLOSED:
        raise ShiftNotPendingError(shift.id, "el turno sigue abierto")
    if has_cut:
        raise ShiftNotPendingError(shift.id, "ya existe un corte")
    counted = _normalize_counted(counted_by_method)
    # При корте позже наличные по умолчанию: те, что записаны при закрытии смены
    if PaymentMethod.CASH not in counted and shift.final_cash is not None:
        counted[PaymentMethod.CASH] = shift.final_cash
    return build_cash_cut(shift, summary, counted)
