"""Схемы для продаж, расходов, закупок, записей и филиалов."""
import datetime as dt
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

from salon_pos.models import (
    AppointmentStatus,
    ExpenseCategory,
    PaymentMethod,
    SaleMethod,
    SaleType,
)


class SalePaymentIn(BaseModel):
    """Часть смешанной оплаты."""
    method: PaymentMethod
    amount: Decimal = Field(..., gt=0)
    reference: Optional[str] = None


class SaleCreate(BaseModel):
    branch_id: int
    date: Optional[dt.date] = Field(default=None, description="По умолчанию — сегодня")
    type: SaleType = SaleType.DIRECT
    appointment_id: Optional[int] = None
    payment_method: SaleMethod
    total: Decimal = Field(..., ge=0)
    # Только для payment_method = mixed: сумма частей должна совпасть с total
    payments: List[SalePaymentIn] = []


class ExpenseCreate(BaseModel):
    branch_id: int
    date: Optional[dt.date] = None
    category: ExpenseCategory = ExpenseCategory.OTHER
    description: str = ""
    amount: Decimal = Field(..., gt=0)
    payment_method: PaymentMethod


class PurchaseCreate(BaseModel):
    branch_id: int
    date: Optional[dt.date] = None
    supplier_name: str = ""
    total: Decimal = Field(..., gt=0)
    payment_method: PaymentMethod


class AppointmentCreate(BaseModel):
    branch_id: int
    date: dt.date
    time: str = Field(default="09:00", pattern=r"^\d{2}:\d{2}$")
    client_name: str = ""
    stylist_id: Optional[int] = None
    total: Decimal = Field(default=Decimal("0"), ge=0)


class AppointmentStatusUpdate(BaseModel):
    status: AppointmentStatus


class BranchCreate(BaseModel):
    name: str = Field(..., min_length=1)
    address: Optional[str] = None
    phone: Optional[str] = None
