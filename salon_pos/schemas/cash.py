"""Схемы для смен (turnos) и корте."""
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field


class ShiftOpen(BaseModel):
    """Открыть смену."""
    branch_id: int
    user_id: Optional[int] = Field(default=None, description="Ответственный; по умолчанию — текущий пользователь")
    initial_cash: Decimal = Field(..., ge=0)


class CountedAmounts(BaseModel):
    """Посчитанные суммы по способам оплаты. Наличные обязательны при закрытии."""
    cash: Optional[Decimal] = Field(default=None, ge=0)
    card: Optional[Decimal] = Field(default=None, ge=0)
    transfer: Optional[Decimal] = Field(default=None, ge=0)

    def as_mapping(self) -> dict:
        return {"cash": self.cash, "card": self.card, "transfer": self.transfer}


class ShiftClose(CountedAmounts):
    """Закрыть смену."""
    cash: Decimal = Field(..., ge=0)


class CashCutCreate(CountedAmounts):
    """Корте для закрытой смены. Без cash берётся final_cash смены."""
    shift_id: int


class ShiftResponse(BaseModel):
    id: int
    branch_id: int
    user_id: int
    date: str
    start_time: str
    end_time: Optional[str] = None
    initial_cash: float
    final_cash: Optional[float] = None
    status: str


class MethodAmounts(BaseModel):
    cash: float
    card: float
    transfer: float


class ShiftSummaryResponse(BaseModel):
    shift: ShiftResponse
    sales_by_method: MethodAmounts
    expenses_by_method: MethodAmounts
    purchases_by_method: MethodAmounts
    expected_by_method: MethodAmounts
    used_methods: list[str]
    total_sales: float
    total_expenses: float
    total_purchases: float
    completed_appointments_count: int
    direct_sales_count: int


class CashCutResponse(BaseModel):
    id: int
    shift_id: int
    branch_id: int
    date: str
    user_id: int
    initial_cash: float
    final_cash: float
    expected_cash: float
    difference: float
    sales_by_method: MethodAmounts
    counted_card: float
    counted_transfer: float
    total_sales: float
    total_expenses: float
    total_purchases: float
    appointments_count: int
    direct_sales_count: int
    created_at: str


# --- Модели БД → ответы API (деньги отдаются как float) ---

def shift_to_response(shift) -> dict:
    return {
        "id": shift.id,
        "branch_id": shift.branch_id,
        "user_id": shift.user_id,
        "date": shift.date.isoformat(),
        "start_time": shift.start_time,
        "end_time": shift.end_time,
        "initial_cash": float(shift.initial_cash),
        "final_cash": float(shift.final_cash) if shift.final_cash is not None else None,
        "status": shift.status.value,
    }


def _amounts(by_method: dict) -> dict:
    return {m.value: float(v) for m, v in by_method.items()}


def summary_to_response(shift, summary) -> dict:
    return {
        "shift": shift_to_response(shift),
        "sales_by_method": _amounts(summary.sales_by_method),
        "expenses_by_method": _amounts(summary.expenses_by_method),
        "purchases_by_method": _amounts(summary.purchases_by_method),
        "expected_by_method": _amounts(summary.expected_by_method),
        "used_methods": [m.value for m in summary.used_methods],
        "total_sales": float(summary.total_sales),
        "total_expenses": float(summary.total_expenses),
        "total_purchases": float(summary.total_purchases),
        "completed_appointments_count": summary.completed_appointments_count,
        "direct_sales_count": summary.direct_sales_count,
    }


def cut_to_response(cut) -> dict:
    return {
        "id": cut.id,
        "shift_id": cut.shift_id,
        "branch_id": cut.branch_id,
        "date": cut.date.isoformat(),
        "user_id": cut.user_id,
        "initial_cash": float(cut.initial_cash),
        "final_cash": float(cut.final_cash),
        "expected_cash": float(cut.expected_cash),
        "difference": float(cut.difference),
        "sales_by_method": {
            "cash": float(cut.sales_cash),
            "card": float(cut.sales_card),
            "transfer": float(cut.sales_transfer),
        },
        "counted_card": float(cut.counted_card),
        "counted_transfer": float(cut.counted_transfer),
        "total_sales": float(cut.total_sales),
        "total_expenses": float(cut.total_expenses),
        "total_purchases": float(cut.total_purchases),
        "appointments_count": cut.appointments_count,
        "direct_sales_count": cut.direct_sales_count,
        "created_at": cut.created_at.isoformat() if cut.created_at else "",
    }
