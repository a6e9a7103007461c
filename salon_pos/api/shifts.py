"""API смен (turnos): открытие, текущая смена, сводка, закрытие с корте."""
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from salon_pos.api.auth import UserInfo, ensure_branch_access, require_permission
from salon_pos.config import settings
from salon_pos.core.database import get_db
from salon_pos.core.logging_config import get_logger
from salon_pos.core.permissions import Action, Module
from salon_pos.models import CashShift, Employee, ShiftStatus
from salon_pos.schemas.cash import (
    ShiftClose,
    ShiftOpen,
    ShiftResponse,
    ShiftSummaryResponse,
    cut_to_response,
    shift_to_response,
    summary_to_response,
)
from salon_pos.services import shift_service
from salon_pos.services.reconciliation import (
    AlreadyClosedError,
    CloseNow,
    ReconciliationError,
    ShiftSnapshot,
)

logger = get_logger(__name__)
router = APIRouter(prefix="/shifts", tags=["shifts"])

RequireShiftView = require_permission(Module.TURNOS, Action.VIEW)
RequireShiftManage = require_permission(Module.TURNOS, Action.CREATE)


async def _get_shift_or_404(db: AsyncSession, shift_id: int, user: UserInfo) -> CashShift:
    shift = await shift_service.get_shift(db, shift_id)
    if not shift:
        raise HTTPException(status_code=404, detail="Turno no encontrado")
    ensure_branch_access(user, shift.branch_id)
    return shift


@router.post("", response_model=ShiftResponse)
async def open_shift(
    body: ShiftOpen,
    db: AsyncSession = Depends(get_db),
    user: UserInfo = Depends(RequireShiftManage),
):
    """Открыть смену филиала. Ответственный по умолчанию — текущий пользователь."""
    ensure_branch_access(user, body.branch_id)
    user_id = body.user_id or user.id
    r = await db.execute(select(Employee).where(Employee.id == user_id, Employee.is_active == True))
    responsible = r.scalar_one_or_none()
    if responsible is None:
        raise HTTPException(status_code=400, detail="Responsable no encontrado")
    if responsible.branch_id is not None and responsible.branch_id != body.branch_id:
        raise HTTPException(status_code=400, detail="El responsable no pertenece a esta sucursal")
    try:
        shift = await shift_service.open_shift(db, body.branch_id, user_id, body.initial_cash)
    except ReconciliationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return shift_to_response(shift)


@router.get("/current")
async def get_current_shift(
    branch_id: int = Query(...),
    db: AsyncSession = Depends(get_db),
    user: UserInfo = Depends(RequireShiftView),
):
    """Открытая смена филиала (или null)."""
    ensure_branch_access(user, branch_id)
    shift = await shift_service.get_open_shift(db, branch_id)
    return {"shift": shift_to_response(shift) if shift else None}


@router.get("", response_model=list[ShiftResponse])
async def list_shifts(
    branch_id: Optional[int] = Query(None),
    status: Optional[str] = Query(None),
    limit: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
    user: UserInfo = Depends(RequireShiftView),
):
    """История смен (последние сверху)."""
    if branch_id is None:
        branch_id = user.branch_id
    q = select(CashShift).order_by(CashShift.date.desc(), CashShift.start_time.desc()).limit(limit)
    if branch_id is not None:
        ensure_branch_access(user, branch_id)
        q = q.where(CashShift.branch_id == branch_id)
    if status is not None:
        try:
            q = q.where(CashShift.status == ShiftStatus(status))
        except ValueError:
            raise HTTPException(status_code=400, detail=f"Estado desconocido: {status}")
    r = await db.execute(q)
    return [shift_to_response(s) for s in r.scalars().all()]


@router.get("/{shift_id}/summary", response_model=ShiftSummaryResponse)
async def get_shift_summary(
    shift_id: int,
    db: AsyncSession = Depends(get_db),
    user: UserInfo = Depends(RequireShiftView),
):
    """Итоги смены по способам оплаты и ожидаемые суммы в кассе."""
    shift = await _get_shift_or_404(db, shift_id, user)
    try:
        summary = await shift_service.summarize(
            db, ShiftSnapshot.from_model(shift), strict=settings.strict_mixed_payments
        )
    except ReconciliationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return summary_to_response(shift, summary)


@router.post("/{shift_id}/close")
async def close_shift(
    shift_id: int,
    body: ShiftClose,
    db: AsyncSession = Depends(get_db),
    user: UserInfo = Depends(RequireShiftManage),
):
    """Закрыть смену: посчитанные суммы → корте. Повторное закрытие — 409."""
    shift = await _get_shift_or_404(db, shift_id, user)
    try:
        cut = await shift_service.reconcile(
            db,
            CloseNow(shift.id),
            body.as_mapping(),
            closed_by_id=user.id,
            strict=settings.strict_mixed_payments,
        )
    except AlreadyClosedError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ReconciliationError as e:
        logger.warning("Закрытие турно %s отклонено: %s", shift_id, e)
        raise HTTPException(status_code=400, detail=str(e))
    return {"shift": shift_to_response(shift), "cash_cut": cut_to_response(cut)}
