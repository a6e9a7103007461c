"""API расходов филиала."""
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from salon_pos.api.auth import UserInfo, ensure_branch_access, require_permission
from salon_pos.core.database import get_db
from salon_pos.core.money import to_money
from salon_pos.core.permissions import Action, Module
from salon_pos.models import Expense
from salon_pos.schemas.sales import ExpenseCreate

router = APIRouter(prefix="/expenses", tags=["expenses"])


def _expense_to_response(e: Expense) -> dict:
    return {
        "id": e.id,
        "branch_id": e.branch_id,
        "date": e.date.isoformat(),
        "category": e.category.value,
        "description": e.description,
        "amount": float(e.amount),
        "payment_method": e.payment_method.value,
    }


@router.post("", response_model=dict)
async def create_expense(
    body: ExpenseCreate,
    db: AsyncSession = Depends(get_db),
    user: UserInfo = Depends(require_permission(Module.GASTOS, Action.CREATE)),
):
    ensure_branch_access(user, body.branch_id)
    expense = Expense(
        branch_id=body.branch_id,
        date=body.date or date.today(),
        category=body.category,
        description=body.description,
        amount=to_money(body.amount),
        payment_method=body.payment_method,
    )
    db.add(expense)
    await db.flush()
    return _expense_to_response(expense)


@router.get("", response_model=list)
async def list_expenses(
    branch_id: int = Query(...),
    day: Optional[date] = Query(None, alias="date"),
    db: AsyncSession = Depends(get_db),
    user: UserInfo = Depends(require_permission(Module.GASTOS, Action.VIEW)),
):
    ensure_branch_access(user, branch_id)
    q = select(Expense).where(Expense.branch_id == branch_id).order_by(Expense.date.desc(), Expense.id.desc())
    if day is not None:
        q = q.where(Expense.date == day)
    r = await db.execute(q)
    return [_expense_to_response(e) for e in r.scalars().all()]
