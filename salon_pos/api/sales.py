"""API продаж: прямые и по записи, смешанная оплата проверяется при создании."""
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from salon_pos.api.auth import UserInfo, ensure_branch_access, require_permission
from salon_pos.core.database import get_db
from salon_pos.core.logging_config import get_logger
from salon_pos.core.money import money_sum, to_money
from salon_pos.core.permissions import Action, Module
from salon_pos.models import Appointment, Sale, SaleMethod, SalePayment, SaleType
from salon_pos.schemas.sales import SaleCreate
from salon_pos.services import shift_service

logger = get_logger(__name__)
router = APIRouter(prefix="/sales", tags=["sales"])


def sale_to_response(s: Sale) -> dict:
    return {
        "id": s.id,
        "branch_id": s.branch_id,
        "date": s.date.isoformat(),
        "type": s.type.value,
        "appointment_id": s.appointment_id,
        "payment_method": s.payment_method.value,
        "total": float(s.total),
        "payments": [
            {"method": p.method.value, "amount": float(p.amount), "reference": p.reference}
            for p in s.payments
        ],
        "created_by_id": s.created_by_id,
    }


@router.post("", response_model=dict)
async def create_sale(
    body: SaleCreate,
    db: AsyncSession = Depends(get_db),
    user: UserInfo = Depends(require_permission(Module.VENTAS, Action.CREATE)),
):
    ensure_branch_access(user, body.branch_id)
    # Продажа только при открытой смене филиала
    if await shift_service.get_open_shift(db, body.branch_id) is None:
        raise HTTPException(status_code=400, detail="Abre un turno antes de registrar ventas")
    total = to_money(body.total)
    if body.payment_method == SaleMethod.MIXED:
        if not body.payments:
            raise HTTPException(status_code=400, detail="El pago mixto requiere al menos un método")
        paid = money_sum(p.amount for p in body.payments)
        if paid != total:
            raise HTTPException(
                status_code=400,
                detail=f"La suma de los pagos ({paid}) no coincide con el total ({total})",
            )
    elif body.payments:
        raise HTTPException(status_code=400, detail="Los pagos parciales solo aplican al pago mixto")
    if body.type == SaleType.APPOINTMENT:
        if body.appointment_id is None:
            raise HTTPException(status_code=400, detail="Venta de cita sin appointment_id")
        r = await db.execute(select(Appointment.id).where(Appointment.id == body.appointment_id))
        if r.scalar_one_or_none() is None:
            raise HTTPException(status_code=404, detail="Cita no encontrada")

    sale = Sale(
        branch_id=body.branch_id,
        date=body.date or date.today(),
        type=body.type,
        appointment_id=body.appointment_id,
        payment_method=body.payment_method,
        total=total,
        created_by_id=user.id,
        payments=[
            SalePayment(method=p.method, amount=to_money(p.amount), reference=p.reference)
            for p in body.payments
        ],
    )
    db.add(sale)
    await db.flush()
    logger.info("Продажа id=%s филиал=%s %s %s", sale.id, sale.branch_id, sale.payment_method.value, sale.total)
    return sale_to_response(sale)


@router.get("", response_model=list)
async def list_sales(
    branch_id: int = Query(...),
    day: Optional[date] = Query(None, alias="date"),
    db: AsyncSession = Depends(get_db),
    user: UserInfo = Depends(require_permission(Module.VENTAS, Action.VIEW)),
):
    ensure_branch_access(user, branch_id)
    q = select(Sale).where(Sale.branch_id == branch_id).order_by(Sale.date.desc(), Sale.id.desc())
    if day is not None:
        q = q.where(Sale.date == day)
    r = await db.execute(q)
    return [sale_to_response(s) for s in r.scalars().all()]
