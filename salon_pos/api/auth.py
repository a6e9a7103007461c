"""Веб-авторизация: логин по login+пароль, JWT, проверка прав по модулям."""
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer, OAuth2PasswordRequestForm
from pydantic import BaseModel
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from salon_pos.core.database import get_db
from salon_pos.core.logging_config import get_logger
from salon_pos.core.permissions import Action, Module, can, can_access_branch, get_menu_items, permissions_for
from salon_pos.models import Employee
from salon_pos.services.auth_service import (
    create_access_token,
    decode_token,
    hash_password,
    verify_password,
)

router = APIRouter(prefix="/auth", tags=["auth"])
security = HTTPBearer(auto_error=False)
logger = get_logger(__name__)


class UserInfo(BaseModel):
    id: int
    name: str
    role: str
    login: str
    branch_id: Optional[int] = None


class LoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserInfo


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Optional[UserInfo]:
    has_header = credentials is not None and credentials.scheme.lower() == "bearer"
    if not has_header:
        return None
    payload = decode_token(credentials.credentials)
    if not payload or "sub" not in payload:
        logger.warning("auth: токен не прошёл проверку (неверный или истёк)")
        return None
    sub = payload["sub"]
    return UserInfo(
        id=int(sub),
        name=payload.get("name", ""),
        role=payload.get("role", ""),
        login=payload.get("login", ""),
        branch_id=payload.get("branch_id"),
    )


async def RequireAnyAuth(
    current_user: Optional[UserInfo] = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> UserInfo:
    """Пользователь из токена; роль и филиал берутся из БД, а не из claims."""
    emp = None
    if current_user:
        r = await db.execute(select(Employee).where(Employee.id == current_user.id))
        emp = r.scalar_one_or_none()
    if not emp or not emp.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Inicia sesión para continuar",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return UserInfo(
        id=emp.id,
        name=emp.name,
        role=emp.role.value,
        login=emp.login or "",
        branch_id=emp.branch_id,
    )


def require_permission(module: Module, action: Action):
    async def _check(current_user: UserInfo = Depends(RequireAnyAuth)) -> UserInfo:
        if not can(current_user.role, module, action):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="No tienes permiso para esta acción")
        return current_user
    return _check


def ensure_branch_access(user: UserInfo, branch_id: int) -> None:
    if not can_access_branch(user.role, user.branch_id, branch_id):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Sin acceso a esta sucursal")


RequireAdmin = require_permission(Module.PERMISOS, Action.EDIT)


@router.post("/login", response_model=LoginResponse)
async def login(
    form: OAuth2PasswordRequestForm = Depends(),
    db: AsyncSession = Depends(get_db),
):
    username = (form.username or "").strip().lower()
    if not username:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Usuario o contraseña incorrectos")
    result = await db.execute(
        select(Employee).where(
            func.lower(Employee.login) == username,
            Employee.is_active == True,
        )
    )
    emp = result.scalar_one_or_none()
    if not emp or not emp.password_hash or not verify_password(form.password, emp.password_hash):
        logger.warning("login: неудачная попытка для %s", username)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Usuario o contraseña incorrectos",
        )
    token = create_access_token(
        subject=emp.id,
        role=emp.role.value,
        name=emp.name,
        login=emp.login or "",
        branch_id=emp.branch_id,
    )
    return LoginResponse(
        access_token=token,
        user=UserInfo(id=emp.id, name=emp.name, role=emp.role.value, login=emp.login or "", branch_id=emp.branch_id),
    )


class MenuItem(BaseModel):
    id: str
    label: str
    href: str
    divider: Optional[bool] = None
    action: Optional[str] = None


class MeResponse(BaseModel):
    id: int
    name: str
    role: str
    login: str
    branch_id: Optional[int] = None
    permissions: Dict[str, List[str]]
    menu_items: List[MenuItem]


@router.get("/me", response_model=MeResponse)
async def me(current_user: UserInfo = Depends(RequireAnyAuth)):
    """Текущий пользователь, его права по модулям и пункты меню."""
    menu = get_menu_items(current_user.role)
    return MeResponse(
        id=current_user.id,
        name=current_user.name,
        role=current_user.role,
        login=current_user.login,
        branch_id=current_user.branch_id,
        permissions=permissions_for(current_user.role),
        menu_items=[MenuItem(**m) for m in menu],
    )


class ChangePasswordBody(BaseModel):
    old_password: str
    new_password: str


@router.post("/change-password")
async def change_password(
    body: ChangePasswordBody,
    current_user: UserInfo = Depends(RequireAnyAuth),
    db: AsyncSession = Depends(get_db),
):
    """Смена пароля текущего пользователя (требуется старый пароль)."""
    if not body.new_password or len(body.new_password) < 6:
        raise HTTPException(status_code=400, detail="La nueva contraseña debe tener al menos 6 caracteres")
    result = await db.execute(select(Employee).where(Employee.id == current_user.id))
    emp = result.scalar_one_or_none()
    if not emp or not emp.password_hash:
        raise HTTPException(status_code=404, detail="Usuario no encontrado")
    if not verify_password(body.old_password, emp.password_hash):
        raise HTTPException(status_code=400, detail="La contraseña actual no es correcta")
    emp.password_hash = hash_password(body.new_password)
    db.add(emp)
    await db.flush()
    return {"ok": True}
