from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from salon_pos.api.auth import RequireAdmin, RequireAnyAuth, UserInfo
from salon_pos.core.database import get_db
from salon_pos.core.logging_config import get_logger
from salon_pos.core.permissions import can_access_branch
from salon_pos.models import Employee
from salon_pos.models.employee import EmployeeRole
from salon_pos.schemas.employee import EmployeeCreate, EmployeeResponse, EmployeeUpdate
from salon_pos.services.auth_service import hash_password

logger = get_logger(__name__)
router = APIRouter(prefix="/employees", tags=["employees"])


def _emp_to_response(e: Employee) -> EmployeeResponse:
    return EmployeeResponse(
        id=e.id,
        name=e.name,
        role=e.role.value,
        login=e.login,
        branch_id=e.branch_id,
        is_active=e.is_active,
    )


async def _ensure_login_free(db: AsyncSession, login: str, exclude_id: Optional[int] = None) -> None:
    q = select(Employee.id).where(Employee.login == login)
    if exclude_id is not None:
        q = q.where(Employee.id != exclude_id)
    r = await db.execute(q)
    if r.scalar_one_or_none() is not None:
        raise HTTPException(status_code=400, detail="El usuario ya está en uso")


@router.get("", response_model=list[EmployeeResponse])
async def list_employees(
    branch_id: Optional[int] = Query(None),
    all_employees: bool = Query(False, alias="all", description="Только для админа: показать неактивных"),
    db: AsyncSession = Depends(get_db),
    current_user: UserInfo = Depends(RequireAnyAuth),
):
    """Сотрудники (для выбора ответственного смены и стилиста записи)."""
    q = select(Employee).order_by(Employee.id)
    if not (all_employees and current_user.role == EmployeeRole.ROLE_ADMIN.value):
        q = q.where(Employee.is_active == True)
    if branch_id is not None:
        q = q.where((Employee.branch_id == branch_id) | (Employee.branch_id.is_(None)))
    result = await db.execute(q)
    return [
        _emp_to_response(e)
        for e in result.scalars().all()
        if e.branch_id is None or can_access_branch(current_user.role, current_user.branch_id, e.branch_id)
    ]


@router.post("", response_model=EmployeeResponse)
async def create_employee(
    data: EmployeeCreate,
    db: AsyncSession = Depends(get_db),
    _user: UserInfo = Depends(RequireAdmin),
):
    login = data.login.strip() if data.login else None
    if login:
        await _ensure_login_free(db, login)
    emp = Employee(
        name=data.name,
        role=data.role,
        login=login or None,
        password_hash=hash_password(data.password) if data.password else None,
        branch_id=data.branch_id,
        is_active=True,
    )
    db.add(emp)
    await db.flush()
    logger.info("Создан сотрудник id=%s роль=%s", emp.id, emp.role.value)
    return _emp_to_response(emp)


@router.patch("/{employee_id}", response_model=EmployeeResponse)
async def update_employee(
    employee_id: int,
    data: EmployeeUpdate,
    db: AsyncSession = Depends(get_db),
    _user: UserInfo = Depends(RequireAdmin),
):
    result = await db.execute(select(Employee).where(Employee.id == employee_id))
    emp = result.scalar_one_or_none()
    if not emp:
        raise HTTPException(status_code=404, detail="Empleado no encontrado")
    if data.name is not None:
        emp.name = data.name
    if data.role is not None:
        emp.role = data.role
    if data.login is not None:
        login = data.login.strip()
        if login:
            await _ensure_login_free(db, login, exclude_id=emp.id)
        emp.login = login or None
    if data.password is not None and data.password.strip():
        emp.password_hash = hash_password(data.password)
    if "branch_id" in data.model_fields_set:
        emp.branch_id = data.branch_id
    if data.is_active is not None:
        emp.is_active = data.is_active
    await db.flush()
    return _emp_to_response(emp)
