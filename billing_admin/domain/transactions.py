from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional, List

STATUSES = ('draft', 'pending', 'paid', 'cancelled', 'refunded')
PAYMENT_METHODS = ('cash', 'card', 'bank_transfer', 'check', 'hmo')
PAYMENT_TYPES = ('cash', 'health_card', 'discount')
ITEM_TYPES = ('consultation', 'laboratory', 'medicine', 'procedure', 'other')


@dataclass
class TransactionItem:
    item_type: str
    item_name: str
    quantity: int = 1
    unit_price: Decimal = Decimal('0')
    item_description: Optional[str] = None
    lab_test_id: Optional[int] = None
    id: Optional[int] = None

    @property
    def total_price(self) -> Decimal:
        return Decimal(self.quantity) * Decimal(str(self.unit_price))


@dataclass
class BillingTransaction:
    id: Optional[int]
    transaction_id: str
    patient_id: Optional[int]
    doctor_id: Optional[int]
    payment_method: str
    total_amount: Decimal
    amount: Decimal
    transaction_date: str
    status: str = 'pending'
    payment_type: str = 'cash'
    payment_reference: Optional[str] = None
    hmo_provider: Optional[str] = None
    hmo_reference_number: Optional[str] = None
    discount_amount: Decimal = Decimal('0')
    senior_discount_amount: Decimal = Decimal('0')
    senior_discount_percentage: Decimal = Decimal('0')
    is_senior_citizen: bool = False
    description: Optional[str] = None
    notes: Optional[str] = None
    due_date: Optional[str] = None
    created_by: Optional[int] = None
    items: List[TransactionItem] = field(default_factory=list)

    def can_be_edited(self) -> bool:
        return self.status in ('pending', 'draft')

    def can_be_cancelled(self) -> bool:
        return self.status in ('pending', 'draft')

    def can_be_paid(self) -> bool:
        return self.status == 'pending'

    @classmethod
    def from_row(cls, row: dict) -> 'BillingTransaction':
        return cls(
            id=row['id'],
            transaction_id=row['transaction_id'],
            patient_id=row.get('patient_id'),
            doctor_id=row.get('doctor_id'),
            payment_method=row.get('payment_method') or 'cash',
            total_amount=Decimal(str(row.get('total_amount') or 0)),
            amount=Decimal(str(row.get('amount') or 0)),
            transaction_date=row.get('transaction_date'),
            status=row.get('status') or 'pending',
            payment_type=row.get('payment_type') or 'cash',
            payment_reference=row.get('payment_reference'),
            hmo_provider=row.get('hmo_provider'),
            hmo_reference_number=row.get('hmo_reference_number'),
            discount_amount=Decimal(str(row.get('discount_amount') or 0)),
            senior_discount_amount=Decimal(str(row.get('senior_discount_amount') or 0)),
            senior_discount_percentage=Decimal(str(row.get('senior_discount_percentage') or 0)),
            is_senior_citizen=bool(row.get('is_senior_citizen')),
            description=row.get('description'),
            notes=row.get('notes'),
            due_date=row.get('due_date'),
            created_by=row.get('created_by'),
        )


def format_transaction_code(sequence: int) -> str:
    """7 -> 'TXN-000007'"""
    return f"TXN-{sequence:06d}"
