"""Корте (corte de caja): запись сверки ожидаемых и посчитанных денег по смене."""
from datetime import date, datetime
from decimal import Decimal
from sqlalchemy import Numeric, Integer, Date, DateTime, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from salon_pos.core.database import Base


class CashCut(Base):
    """Создаётся один раз на смену и больше не меняется (shift_id уникален)."""
    __tablename__ = "cash_cuts"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    shift_id: Mapped[int] = mapped_column(ForeignKey("cash_shifts.id"), unique=True, nullable=False)
    branch_id: Mapped[int] = mapped_column(ForeignKey("branches.id"), nullable=False, index=True)
    date: Mapped[date] = mapped_column(Date, nullable=False)
    user_id: Mapped[int] = mapped_column(ForeignKey("employees.id"), nullable=False)
    initial_cash: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    final_cash: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    expected_cash: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)  # только наличные
    difference: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)  # факт − ожидание, по всем способам
    # Снимок продаж по способам оплаты
    sales_cash: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"), nullable=False)
    sales_card: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"), nullable=False)
    sales_transfer: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"), nullable=False)
    # Посчитанное по безналу (наличные в final_cash)
    counted_card: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"), nullable=False)
    counted_transfer: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"), nullable=False)
    total_sales: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"), nullable=False)
    total_expenses: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"), nullable=False)
    total_purchases: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"), nullable=False)
    appointments_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    direct_sales_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    shift = relationship("CashShift")
