from salon_pos.core.database import Base
from salon_pos.models.branch import Branch
from salon_pos.models.employee import Employee, EmployeeRole
from salon_pos.models.cash_shift import CashShift, ShiftStatus
from salon_pos.models.cash_cut import CashCut
from salon_pos.models.sale import Sale, SalePayment, SaleMethod, SaleType, PaymentMethod
from salon_pos.models.expense import Expense, ExpenseCategory
from salon_pos.models.purchase import Purchase, PurchaseStatus
from salon_pos.models.appointment import Appointment, AppointmentStatus

__all__ = [
    "Base",
    "Appointment",
    "AppointmentStatus",
    "Branch",
    "CashCut",
    "CashShift",
    "ShiftStatus",
    "Employee",
    "EmployeeRole",
    "Expense",
    "ExpenseCategory",
    "PaymentMethod",
    "Purchase",
    "PurchaseStatus",
    "Sale",
    "SaleMethod",
    "SalePayment",
    "SaleType",
]
