"""API филиалов."""
from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from salon_pos.api.auth import RequireAnyAuth, UserInfo, require_permission
from salon_pos.core.database import get_db
from salon_pos.core.permissions import Action, Module, can_access_branch
from salon_pos.models import Branch
from salon_pos.schemas.sales import BranchCreate

router = APIRouter(prefix="/branches", tags=["branches"])


def _branch_to_response(b: Branch) -> dict:
    return {"id": b.id, "name": b.name, "address": b.address, "phone": b.phone, "is_active": b.is_active}


@router.get("", response_model=list)
async def list_branches(
    db: AsyncSession = Depends(get_db),
    user: UserInfo = Depends(RequireAnyAuth),
):
    """Активные филиалы, доступные пользователю."""
    r = await db.execute(select(Branch).where(Branch.is_active == True).order_by(Branch.id))
    return [
        _branch_to_response(b)
        for b in r.scalars().all()
        if can_access_branch(user.role, user.branch_id, b.id)
    ]


@router.post("", response_model=dict)
async def create_branch(
    body: BranchCreate,
    db: AsyncSession = Depends(get_db),
    _user: UserInfo = Depends(require_permission(Module.CONFIGURACION, Action.CREATE)),
):
    branch = Branch(name=body.name.strip(), address=body.address, phone=body.phone, is_active=True)
    db.add(branch)
    await db.flush()
    return _branch_to_response(branch)
