"""
Смены и корте: загрузка данных дня, вызов чистой сверки, сохранение результата.

Продажи, расходы и закупки выбираются по точному совпадению (branch_id, date)
со сменой — без временного окна и часовых поясов.
"""
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import List, Mapping, Optional

from sqlalchemy import exists, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from salon_pos.core.logging_config import get_logger
from salon_pos.core.money import to_money
from salon_pos.models import (
    Appointment,
    AppointmentStatus,
    CashCut,
    CashShift,
    Expense,
    Purchase,
    PurchaseStatus,
    Sale,
    SaleType,
    ShiftStatus,
)
from salon_pos.models.sale import PaymentMethod
from salon_pos.services import reconciliation
from salon_pos.services.reconciliation import (
    AlreadyClosedError,
    CashCutDraft,
    CloseNow,
    MoneyMovement,
    ReconciliationError,
    ReconciliationRequest,
    ShiftNotPendingError,
    ShiftSnapshot,
    ShiftSummary,
)

logger = get_logger(__name__)


class ShiftAlreadyOpenError(ReconciliationError):
    def __init__(self, shift_id: int, branch_id: int):
        super().__init__(f"La sucursal {branch_id} ya tiene un turno abierto (id={shift_id})")
        self.shift_id = shift_id
        self.branch_id = branch_id


class ShiftNotFoundError(LookupError):
    pass


@dataclass
class DayActivity:
    movements: List[MoneyMovement]
    completed_appointments: int
    direct_sales_count: int


async def get_shift(db: AsyncSession, shift_id: int) -> Optional[CashShift]:
    r = await db.execute(select(CashShift).where(CashShift.id == shift_id))
    return r.scalar_one_or_none()


async def get_open_shift(db: AsyncSession, branch_id: int) -> Optional[CashShift]:
    q = select(CashShift).where(
        CashShift.branch_id == branch_id,
        CashShift.status == ShiftStatus.OPEN,
    ).order_by(CashShift.opened_at.desc()).limit(1)
    r = await db.execute(q)
    return r.scalar_one_or_none()


async def open_shift(
    db: AsyncSession,
    branch_id: int,
    user_id: int,
    initial_cash: Decimal,
    now: Optional[datetime] = None,
) -> CashShift:
    """Открыть смену. Вторая открытая смена в филиале не допускается."""
    current = await get_open_shift(db, branch_id)
    if current:
        raise ShiftAlreadyOpenError(current.id, branch_id)
    now = now or datetime.now()
    shift = CashShift(
        branch_id=branch_id,
        user_id=user_id,
        date=now.date(),
        start_time=now.strftime("%H:%M"),
        initial_cash=to_money(initial_cash),
        status=ShiftStatus.OPEN,
        opened_at=now,
    )
    db.add(shift)
    await db.flush()
    logger.info("Открыт турно id=%s филиал=%s нач.касса=%s", shift.id, branch_id, shift.initial_cash)
    return shift


async def load_day_activity(
    db: AsyncSession,
    branch_id: int,
    day: date,
    strict: bool = False,
) -> DayActivity:
    """Движения денег и счётчики за календарный день филиала."""
    sales = (await db.execute(
        select(Sale).where(Sale.branch_id == branch_id, Sale.date == day).order_by(Sale.id)
    )).scalars().all()
    expenses = (await db.execute(
        select(Expense).where(Expense.branch_id == branch_id, Expense.date == day).order_by(Expense.id)
    )).scalars().all()
    purchases = (await db.execute(
        select(Purchase).where(
            Purchase.branch_id == branch_id,
            Purchase.date == day,
            Purchase.status != PurchaseStatus.CANCELLED,
        ).order_by(Purchase.id)
    )).scalars().all()
    completed = (await db.execute(
        select(func.count(Appointment.id)).where(
            Appointment.branch_id == branch_id,
            Appointment.date == day,
            Appointment.status == AppointmentStatus.COMPLETED,
        )
    )).scalar_one()

    movements: List[MoneyMovement] = []
    for sale in sales:
        movements.extend(reconciliation.expand_sale(sale, strict=strict))
    movements.extend(reconciliation.expense_movement(e) for e in expenses)
    movements.extend(reconciliation.purchase_movement(p) for p in purchases)
    direct = sum(1 for s in sales if s.type == SaleType.DIRECT)
    return DayActivity(movements=movements, completed_appointments=int(completed or 0), direct_sales_count=direct)


async def summarize(db: AsyncSession, shift: ShiftSnapshot, strict: bool = False) -> ShiftSummary:
    activity = await load_day_activity(db, shift.branch_id, shift.date, strict=strict)
    return reconciliation.compute_summary(
        shift,
        activity.movements,
        completed_appointments=activity.completed_appointments,
        direct_sales_count=activity.direct_sales_count,
    )


async def has_cut(db: AsyncSession, shift_id: int) -> bool:
    r = await db.execute(select(CashCut.id).where(CashCut.shift_id == shift_id))
    return r.scalar_one_or_none() is not None


def _cut_from_draft(draft: CashCutDraft) -> CashCut:
    return CashCut(
        shift_id=draft.shift_id,
        branch_id=draft.branch_id,
        date=draft.date,
        user_id=draft.user_id,
        initial_cash=draft.initial_cash,
        final_cash=draft.final_cash,
        expected_cash=draft.expected_cash,
        difference=draft.difference,
        sales_cash=draft.sales_by_method[PaymentMethod.CASH],
        sales_card=draft.sales_by_method[PaymentMethod.CARD],
        sales_transfer=draft.sales_by_method[PaymentMethod.TRANSFER],
        counted_card=draft.counted_by_method[PaymentMethod.CARD],
        counted_transfer=draft.counted_by_method[PaymentMethod.TRANSFER],
        total_sales=draft.total_sales,
        total_expenses=draft.total_expenses,
        total_purchases=draft.total_purchases,
        appointments_count=draft.appointments_count,
        direct_sales_count=draft.direct_sales_count,
    )


async def reconcile(
    db: AsyncSession,
    request: ReconciliationRequest,
    counted_by_method: Mapping,
    closed_by_id: Optional[int] = None,
    strict: bool = False,
    now: Optional[datetime] = None,
) -> CashCut:
    """Закрыть смену с корте (CloseNow) или сделать корте закрытой смены (CutPending).

    Закрытие — условный UPDATE по status = open: если параллельно смену уже закрыли,
    обновится 0 строк и будет AlreadyClosedError. Второй корте на смену не пройдёт
    уникальный индекс cash_cuts.shift_id.
    """
    shift = await get_shift(db, request.shift_id)
    if shift is None:
        raise ShiftNotFoundError(request.shift_id)
    snapshot = ShiftSnapshot.from_model(shift)
    summary = await summarize(db, snapshot, strict=strict)
    draft = reconciliation.reconcile(
        request,
        snapshot,
        summary,
        counted_by_method,
        has_cut=await has_cut(db, shift.id),
    )

    if isinstance(request, CloseNow):
        now = now or datetime.now()
        r = await db.execute(
            update(CashShift)
            .where(CashShift.id == shift.id, CashShift.status == ShiftStatus.OPEN)
            .values(
                status=ShiftStatus.CLOSED,
                final_cash=draft.final_cash,
                end_time=now.strftime("%H:%M"),
                closed_at=now,
                closed_by_id=closed_by_id,
            )
        )
        if r.rowcount == 0:
            raise AlreadyClosedError(shift.id)
        await db.refresh(shift)

    cut = _cut_from_draft(draft)
    db.add(cut)
    try:
        await db.flush()
    except IntegrityError:
        raise ShiftNotPendingError(shift.id, "ya existe un corte")
    logger.info(
        "Корте id=%s турно=%s ожидалось=%s факт=%s разница=%s",
        cut.id, shift.id, cut.expected_cash, cut.final_cash, cut.difference,
    )
    return cut


async def list_pending_shifts(db: AsyncSession, branch_id: Optional[int] = None) -> List[CashShift]:
    """Закрытые смены без корте."""
    q = select(CashShift).where(
        CashShift.status == ShiftStatus.CLOSED,
        ~exists().where(CashCut.shift_id == CashShift.id),
    ).order_by(CashShift.date.desc(), CashShift.start_time.desc())
    if branch_id is not None:
        q = q.where(CashShift.branch_id == branch_id)
    r = await db.execute(q)
    return list(r.scalars().all())
