"""
RBAC: роль × модуль × действие (view/create/edit/delete).
Роли системные: администратор, менеджер, ресепшн, стилист.
"""
from enum import Enum
from typing import Dict, List, Optional

from salon_pos.models.employee import EmployeeRole


class Module(str, Enum):
    """Модули системы (названия как в интерфейсе)."""
    DASHBOARD = "dashboard"
    AGENDA = "agenda"
    VENTAS = "ventas"
    GASTOS = "gastos"
    COMPRAS = "compras"
    INVENTARIO = "inventario"
    SERVICIOS = "servicios"
    PRODUCTOS = "productos"
    TURNOS = "turnos"
    CORTES = "cortes"
    HORARIOS = "horarios"
    CONFIGURACION = "configuracion"
    PERMISOS = "permisos"


class Action(str, Enum):
    VIEW = "view"
    CREATE = "create"
    EDIT = "edit"
    DELETE = "delete"


ALL = frozenset(Action)
VIEW = frozenset({Action.VIEW})
NONE: frozenset = frozenset()

MODULE_LABELS = {
    Module.DASHBOARD: "Dashboard",
    Module.AGENDA: "Agenda",
    Module.VENTAS: "Ventas",
    Module.GASTOS: "Gastos",
    Module.COMPRAS: "Compras",
    Module.INVENTARIO: "Inventario",
    Module.SERVICIOS: "Servicios",
    Module.PRODUCTOS: "Productos",
    Module.TURNOS: "Turnos",
    Module.CORTES: "Cortes",
    Module.HORARIOS: "Horarios",
    Module.CONFIGURACION: "Configuración",
    Module.PERMISOS: "Permisos",
}

# Роль → модуль → разрешённые действия. Чего нет в словаре, то запрещено.
ROLE_PERMISSIONS: Dict[EmployeeRole, Dict[Module, frozenset]] = {
    EmployeeRole.ROLE_ADMIN: {m: ALL for m in Module},
    EmployeeRole.ROLE_MANAGER: {m: ALL for m in Module if m is not Module.PERMISOS},
    EmployeeRole.ROLE_RECEPTIONIST: {
        Module.DASHBOARD: VIEW,
        Module.AGENDA: ALL,
        Module.VENTAS: frozenset({Action.VIEW, Action.CREATE}),
        Module.INVENTARIO: VIEW,
        Module.SERVICIOS: VIEW,
        Module.PRODUCTOS: VIEW,
        Module.TURNOS: frozenset({Action.VIEW, Action.CREATE}),
        Module.HORARIOS: VIEW,
    },
    EmployeeRole.ROLE_STYLIST: {
        Module.DASHBOARD: VIEW,
        Module.AGENDA: VIEW,
        Module.SERVICIOS: VIEW,
        Module.PRODUCTOS: VIEW,
        Module.TURNOS: VIEW,
        Module.HORARIOS: VIEW,
    },
}


def _parse_role(role: str) -> Optional[EmployeeRole]:
    try:
        return EmployeeRole(role)
    except ValueError:
        return None


def can(role: str, module: Module, action: Action) -> bool:
    """Проверка: разрешено ли роли действие в модуле."""
    r = _parse_role(role)
    if r is None:
        return False
    return action in ROLE_PERMISSIONS.get(r, {}).get(module, NONE)


def permissions_for(role: str) -> Dict[str, List[str]]:
    """Права роли в виде {модуль: [действия]} для фронтенда."""
    r = _parse_role(role)
    if r is None:
        return {}
    out = {}
    for module in Module:
        actions = ROLE_PERMISSIONS.get(r, {}).get(module, NONE)
        if actions:
            out[module.value] = sorted(a.value for a in actions)
    return out


def can_access_branch(role: str, user_branch_id: Optional[int], branch_id: int) -> bool:
    """Сотрудник без филиала (админ, менеджер сети) видит все филиалы."""
    if _parse_role(role) is None:
        return False
    return user_branch_id is None or user_branch_id == branch_id


def get_menu_items(role: str) -> List[dict]:
    """Пункты меню: модули с правом view, затем смена пароля и выход."""
    if _parse_role(role) is None:
        return []
    items = [
        {"id": m.value, "label": MODULE_LABELS[m], "href": f"/{m.value}"}
        for m in Module
        if can(role, m, Action.VIEW)
    ]
    items.append({"id": "_div", "label": "", "href": "#", "divider": True})
    items.append({"id": "password", "label": "Cambiar contraseña", "href": "#", "action": "change_password"})
    items.append({"id": "logout", "label": "Cerrar sesión", "href": "/login", "action": "logout"})
    return items
