"""Смены (turnos): открытие с начальной наличностью, закрытие с пересчётом кассы."""
import enum
from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from sqlalchemy import String, Enum, Numeric, Date, DateTime, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from salon_pos.core.database import Base


class ShiftStatus(str, enum.Enum):
    OPEN = "open"
    CLOSED = "closed"


class CashShift(Base):
    """Смена филиала. После закрытия не меняется."""
    __tablename__ = "cash_shifts"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    branch_id: Mapped[int] = mapped_column(ForeignKey("branches.id"), nullable=False, index=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("employees.id"), nullable=False)  # ответственный
    date: Mapped[date] = mapped_column(Date, nullable=False)  # календарный день смены
    start_time: Mapped[str] = mapped_column(String(5), nullable=False)  # HH:MM
    end_time: Mapped[Optional[str]] = mapped_column(String(5), nullable=True)
    initial_cash: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"), nullable=False)
    final_cash: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    status: Mapped[ShiftStatus] = mapped_column(
        Enum(ShiftStatus), default=ShiftStatus.OPEN, nullable=False
    )
    closed_by_id: Mapped[Optional[int]] = mapped_column(ForeignKey("employees.id"), nullable=True)
    opened_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    closed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    user = relationship("Employee", foreign_keys=[user_id])
    closed_by = relationship("Employee", foreign_keys=[closed_by_id])
