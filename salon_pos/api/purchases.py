"""API закупок. Отмена не удаляет запись, а исключает её из сверки."""
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from salon_pos.api.auth import UserInfo, ensure_branch_access, require_permission
from salon_pos.core.database import get_db
from salon_pos.core.logging_config import get_logger
from salon_pos.core.money import to_money
from salon_pos.core.permissions import Action, Module
from salon_pos.models import Purchase, PurchaseStatus
from salon_pos.schemas.sales import PurchaseCreate

logger = get_logger(__name__)
router = APIRouter(prefix="/purchases", tags=["purchases"])


def _purchase_to_response(p: Purchase) -> dict:
    return {
        "id": p.id,
        "branch_id": p.branch_id,
        "date": p.date.isoformat(),
        "supplier_name": p.supplier_name,
        "total": float(p.total),
        "payment_method": p.payment_method.value,
        "status": p.status.value,
    }


@router.post("", response_model=dict)
async def create_purchase(
    body: PurchaseCreate,
    db: AsyncSession = Depends(get_db),
    user: UserInfo = Depends(require_permission(Module.COMPRAS, Action.CREATE)),
):
    ensure_branch_access(user, body.branch_id)
    purchase = Purchase(
        branch_id=body.branch_id,
        date=body.date or date.today(),
        supplier_name=body.supplier_name,
        total=to_money(body.total),
        payment_method=body.payment_method,
        status=PurchaseStatus.ACTIVE,
    )
    db.add(purchase)
    await db.flush()
    return _purchase_to_response(purchase)


@router.get("", response_model=list)
async def list_purchases(
    branch_id: int = Query(...),
    day: Optional[date] = Query(None, alias="date"),
    db: AsyncSession = Depends(get_db),
    user: UserInfo = Depends(require_permission(Module.COMPRAS, Action.VIEW)),
):
    ensure_branch_access(user, branch_id)
    q = select(Purchase).where(Purchase.branch_id == branch_id).order_by(Purchase.date.desc(), Purchase.id.desc())
    if day is not None:
        q = q.where(Purchase.date == day)
    r = await db.execute(q)
    return [_purchase_to_response(p) for p in r.scalars().all()]


@router.patch("/{purchase_id}/cancel", response_model=dict)
async def cancel_purchase(
    purchase_id: int,
    db: AsyncSession = Depends(get_db),
    user: UserInfo = Depends(require_permission(Module.COMPRAS, Action.EDIT)),
):
    r = await db.execute(select(Purchase).where(Purchase.id == purchase_id))
    purchase = r.scalar_one_or_none()
    if not purchase:
        raise HTTPException(status_code=404, detail="Compra no encontrada")
    ensure_branch_access(user, purchase.branch_id)
    if purchase.status == PurchaseStatus.CANCELLED:
        raise HTTPException(status_code=400, detail="La compra ya está cancelada")
    purchase.status = PurchaseStatus.CANCELLED
    await db.flush()
    logger.info("Закупка id=%s отменена пользователем %s", purchase.id, user.login)
    return _purchase_to_response(purchase)
