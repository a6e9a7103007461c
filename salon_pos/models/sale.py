"""Продажи: по записи (appointment) или прямые, с возможной смешанной оплатой."""
import enum
from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from sqlalchemy import String, Enum, Numeric, Date, DateTime, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from salon_pos.core.database import Base


class PaymentMethod(str, enum.Enum):
    """Способ оплаты для сверки. Закрытый набор, без «смешанной»."""
    CASH = "cash"
    CARD = "card"
    TRANSFER = "transfer"


class SaleMethod(str, enum.Enum):
    """Способ оплаты продажи: MIXED раскладывается на части (SalePayment)."""
    CASH = "cash"
    CARD = "card"
    TRANSFER = "transfer"
    MIXED = "mixed"


class SaleType(str, enum.Enum):
    APPOINTMENT = "appointment"
    DIRECT = "direct"


class Sale(Base):
    __tablename__ = "sales"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    branch_id: Mapped[int] = mapped_column(ForeignKey("branches.id"), nullable=False, index=True)
    date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    type: Mapped[SaleType] = mapped_column(Enum(SaleType), default=SaleType.DIRECT, nullable=False)
    appointment_id: Mapped[Optional[int]] = mapped_column(ForeignKey("appointments.id"), nullable=True)
    payment_method: Mapped[SaleMethod] = mapped_column(Enum(SaleMethod), nullable=False)
    total: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"), nullable=False)
    created_by_id: Mapped[Optional[int]] = mapped_column(ForeignKey("employees.id"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    payments = relationship(
        "SalePayment", back_populates="sale", cascade="all, delete-orphan", lazy="selectin"
    )


class SalePayment(Base):
    """Часть смешанной оплаты."""
    __tablename__ = "sale_payments"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    sale_id: Mapped[int] = mapped_column(ForeignKey("sales.id", ondelete="CASCADE"), nullable=False)
    method: Mapped[PaymentMethod] = mapped_column(Enum(PaymentMethod), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    reference: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)

    sale = relationship("Sale", back_populates="payments")
