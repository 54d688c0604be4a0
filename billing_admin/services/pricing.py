"""Totals for a transaction built from selected appointments.

subtotal        = appointment prices + lab test amounts
senior discount = rate x (prices of consultation-type appointments),
                  only when the patient is a senior citizen and the
                  payment method is not HMO
final total     = subtotal - senior discount
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Optional

from billing_admin.common.utils import to_money

CONSULTATION_TYPES = frozenset({'consultation', 'general_consultation'})
SENIOR_DISCOUNT_RATE = Decimal('0.20')


@dataclass(frozen=True)
class BillingTotals:
    subtotal: Decimal
    consultation_amount: Decimal
    lab_amount: Decimal
    senior_discount: Decimal
    final_total: Decimal
    discount_percentage: Decimal

    @property
    def appointment_amount(self) -> Decimal:
        return self.subtotal - self.lab_amount

    def as_dict(self) -> dict:
        return {
            'subtotal': float(self.subtotal),
            'consultation_amount': float(self.consultation_amount),
            'lab_amount': float(self.lab_amount),
            'senior_discount': float(self.senior_discount),
            'final_total': float(self.final_total),
            'discount_percentage': float(self.discount_percentage),
        }


def is_consultation(appointment_type: Optional[str]) -> bool:
    return (appointment_type or '').strip().lower() in CONSULTATION_TYPES


def _field(appointment, name, default=None):
    if isinstance(appointment, dict):
        return appointment.get(name, default)
    return getattr(appointment, name, default)


def compute_totals(appointments: Iterable, is_senior_citizen: bool, payment_method: Optional[str],
                   lab_amounts: Optional[Iterable] = None, rate=SENIOR_DISCOUNT_RATE) -> BillingTotals:
    """Accepts Appointment objects or dicts with `price` and `appointment_type`."""
    rate = Decimal(str(rate))
    appointment_total = Decimal('0')
    consultation_amount = Decimal('0')
    for appointment in appointments:
        price = to_money(_field(appointment, 'price', 0))
        appointment_total += price
        if is_consultation(_field(appointment, 'appointment_type')):
            consultation_amount += price

    lab_amount = sum((to_money(x) for x in (lab_amounts or [])), Decimal('0'))
    subtotal = appointment_total + lab_amount

    senior_discount = Decimal('0')
    if is_senior_citizen and (payment_method or '').lower() != 'hmo':
        senior_discount = to_money(consultation_amount * rate)

    return BillingTotals(
        subtotal=to_money(subtotal),
        consultation_amount=to_money(consultation_amount),
        lab_amount=to_money(lab_amount),
        senior_discount=senior_discount,
        final_total=to_money(subtotal - senior_discount),
        discount_percentage=(rate * 100).quantize(Decimal('0.01')) if senior_discount > 0 else Decimal('0'),
    )
