from dataclasses import dataclass, field
from typing import Optional, List

# Appointments in these states may still be pulled into a new transaction
BILLABLE_STATUS = 'Confirmed'
UNBILLED_STATES = (None, '', 'pending', 'not_billed')


@dataclass
class LabTest:
    id: int
    test_name: str
    unit_price: float = 0


@dataclass
class Appointment:
    id: int
    patient_id: int
    appointment_type: str
    price: float
    appointment_date: str
    status: str = 'Pending'
    billing_status: Optional[str] = 'pending'
    specialist_id: Optional[int] = None
    appointment_time: Optional[str] = None

    # Joined fields (optional)
    patient_name: Optional[str] = None
    specialist_name: Optional[str] = None
    lab_tests: List[LabTest] = field(default_factory=list)

    @property
    def is_billable(self) -> bool:
        return self.status == BILLABLE_STATUS and self.billing_status in UNBILLED_STATES

    @property
    def lab_amount(self) -> float:
        return sum(float(t.unit_price or 0) for t in self.lab_tests)

    @property
    def type_label(self) -> str:
        return (self.appointment_type or '').replace('_', ' ').title()
