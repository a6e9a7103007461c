"""API записей (agenda). В корте попадает число завершённых записей за день."""
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from salon_pos.api.auth import UserInfo, ensure_branch_access, require_permission
from salon_pos.core.database import get_db
from salon_pos.core.money import to_money
from salon_pos.core.permissions import Action, Module
from salon_pos.models import Appointment, AppointmentStatus
from salon_pos.schemas.sales import AppointmentCreate, AppointmentStatusUpdate

router = APIRouter(prefix="/appointments", tags=["appointments"])


def _appointment_to_response(a: Appointment) -> dict:
    return {
        "id": a.id,
        "branch_id": a.branch_id,
        "date": a.date.isoformat(),
        "time": a.time,
        "client_name": a.client_name,
        "stylist_id": a.stylist_id,
        "status": a.status.value,
        "total": float(a.total),
    }


@router.post("", response_model=dict)
async def create_appointment(
    body: AppointmentCreate,
    db: AsyncSession = Depends(get_db),
    user: UserInfo = Depends(require_permission(Module.AGENDA, Action.CREATE)),
):
    ensure_branch_access(user, body.branch_id)
    appointment = Appointment(
        branch_id=body.branch_id,
        date=body.date,
        time=body.time,
        client_name=body.client_name,
        stylist_id=body.stylist_id,
        status=AppointmentStatus.SCHEDULED,
        total=to_money(body.total),
    )
    db.add(appointment)
    await db.flush()
    return _appointment_to_response(appointment)


@router.get("", response_model=list)
async def list_appointments(
    branch_id: int = Query(...),
    day: Optional[date] = Query(None, alias="date"),
    db: AsyncSession = Depends(get_db),
    user: UserInfo = Depends(require_permission(Module.AGENDA, Action.VIEW)),
):
    ensure_branch_access(user, branch_id)
    q = select(Appointment).where(Appointment.branch_id == branch_id).order_by(Appointment.date, Appointment.time)
    if day is not None:
        q = q.where(Appointment.date == day)
    r = await db.execute(q)
    return [_appointment_to_response(a) for a in r.scalars().all()]


@router.patch("/{appointment_id}/status", response_model=dict)
async def update_appointment_status(
    appointment_id: int,
    body: AppointmentStatusUpdate,
    db: AsyncSession = Depends(get_db),
    user: UserInfo = Depends(require_permission(Module.AGENDA, Action.EDIT)),
):
    r = await db.execute(select(Appointment).where(Appointment.id == appointment_id))
    appointment = r.scalar_one_or_none()
    if not appointment:
        raise HTTPException(status_code=404, detail="Cita no encontrada")
    ensure_branch_access(user, appointment.branch_id)
    appointment.status = body.status
    await db.flush()
    return _appointment_to_response(appointment)
