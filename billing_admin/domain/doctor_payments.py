from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

STATUSES = ('pending', 'paid', 'cancelled')
PAYMENT_METHODS = ('cash', 'card', 'bank_transfer', 'check')


def compute_net_payment(basic_salary=0, holiday_pay=0, incentives=0, deductions=0) -> Decimal:
    """net = basic salary + holiday pay + incentives - deductions"""
    return (
        Decimal(str(basic_salary or 0))
        + Decimal(str(holiday_pay or 0))
        + Decimal(str(incentives or 0))
        - Decimal(str(deductions or 0))
    )


@dataclass
class DoctorPayment:
    id: Optional[int]
    doctor_id: int
    payment_date: str
    basic_salary: Decimal = Decimal('0')
    deductions: Decimal = Decimal('0')
    holiday_pay: Decimal = Decimal('0')
    incentives: Decimal = Decimal('0')
    payment_method: str = 'cash'
    payment_reference: Optional[str] = None
    status: str = 'pending'
    notes: Optional[str] = None
    paid_date: Optional[str] = None
    created_by: Optional[int] = None

    @property
    def net_payment(self) -> Decimal:
        return compute_net_payment(self.basic_salary, self.holiday_pay, self.incentives, self.deductions)

    def can_be_edited(self) -> bool:
        return self.status == 'pending'

    def can_be_paid(self) -> bool:
        return self.status == 'pending'
