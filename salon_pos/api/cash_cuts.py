"""API корте: список, смены без корте, корте для закрытой смены."""
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from salon_pos.api.auth import UserInfo, ensure_branch_access, require_permission
from salon_pos.config import settings
from salon_pos.core.database import get_db
from salon_pos.core.logging_config import get_logger
from salon_pos.core.permissions import Action, Module
from salon_pos.models import CashCut
from salon_pos.schemas.cash import (
    CashCutCreate,
    CashCutResponse,
    ShiftResponse,
    cut_to_response,
    shift_to_response,
)
from salon_pos.services import shift_service
from salon_pos.services.reconciliation import CutPending, ReconciliationError, ShiftNotPendingError
from salon_pos.services.shift_service import ShiftNotFoundError

logger = get_logger(__name__)
router = APIRouter(prefix="/cash-cuts", tags=["cash-cuts"])

RequireCutView = require_permission(Module.CORTES, Action.VIEW)
RequireCutCreate = require_permission(Module.CORTES, Action.CREATE)


@router.get("", response_model=list[CashCutResponse])
async def list_cash_cuts(
    branch_id: Optional[int] = Query(None),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
    user: UserInfo = Depends(RequireCutView),
):
    """Корте по филиалу и периоду (последние сверху)."""
    if branch_id is None:
        branch_id = user.branch_id
    q = select(CashCut).order_by(CashCut.date.desc(), CashCut.id.desc()).limit(limit)
    if branch_id is not None:
        ensure_branch_access(user, branch_id)
        q = q.where(CashCut.branch_id == branch_id)
    if start_date is not None:
        q = q.where(CashCut.date >= start_date)
    if end_date is not None:
        q = q.where(CashCut.date <= end_date)
    r = await db.execute(q)
    return [cut_to_response(c) for c in r.scalars().all()]


@router.get("/pending", response_model=list[ShiftResponse])
async def list_pending(
    branch_id: Optional[int] = Query(None),
    db: AsyncSession = Depends(get_db),
    user: UserInfo = Depends(RequireCutView),
):
    """Закрытые смены, по которым ещё нет корте."""
    if branch_id is None:
        branch_id = user.branch_id
    if branch_id is not None:
        ensure_branch_access(user, branch_id)
    shifts = await shift_service.list_pending_shifts(db, branch_id)
    return [shift_to_response(s) for s in shifts]


@router.post("", response_model=CashCutResponse)
async def create_cash_cut(
    body: CashCutCreate,
    db: AsyncSession = Depends(get_db),
    user: UserInfo = Depends(RequireCutCreate),
):
    """Корте для закрытой смены — тот же расчёт, что и при закрытии."""
    shift = await shift_service.get_shift(db, body.shift_id)
    if not shift:
        raise HTTPException(status_code=404, detail="Turno no encontrado")
    ensure_branch_access(user, shift.branch_id)
    try:
        cut = await shift_service.reconcile(
            db,
            CutPending(shift.id),
            body.as_mapping(),
            strict=settings.strict_mixed_payments,
        )
    except ShiftNotFoundError:
        raise HTTPException(status_code=404, detail="Turno no encontrado")
    except ShiftNotPendingError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ReconciliationError as e:
        logger.warning("Корте для турно %s отклонено: %s", body.shift_id, e)
        raise HTTPException(status_code=400, detail=str(e))
    return cut_to_response(cut)


@router.get("/{cut_id}", response_model=CashCutResponse)
async def get_cash_cut(
    cut_id: int,
    db: AsyncSession = Depends(get_db),
    user: UserInfo = Depends(RequireCutView),
):
    r = await db.execute(select(CashCut).where(CashCut.id == cut_id))
    cut = r.scalar_one_or_none()
    if not cut:
        raise HTTPException(status_code=404, detail="Corte no encontrado")
    ensure_branch_access(user, cut.branch_id)
    return cut_to_response(cut)
