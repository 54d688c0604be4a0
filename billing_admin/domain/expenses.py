from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

STATUSES = ('draft', 'pending', 'approved', 'cancelled')
CATEGORIES = (
    'office_supplies', 'medical_supplies', 'equipment', 'utilities',
    'rent', 'maintenance', 'marketing', 'other',
)
PAYMENT_METHODS = ('cash', 'card', 'bank_transfer', 'check')


@dataclass
class Expense:
    id: Optional[int]
    expense_category: str
    expense_name: str
    amount: Decimal
    expense_date: str
    payment_method: str = 'cash'
    status: str = 'pending'
    description: Optional[str] = None
    payment_reference: Optional[str] = None
    vendor_name: Optional[str] = None
    vendor_contact: Optional[str] = None
    receipt_number: Optional[str] = None
    notes: Optional[str] = None
    created_by: Optional[int] = None

    def can_be_edited(self) -> bool:
        return self.status != 'cancelled'
