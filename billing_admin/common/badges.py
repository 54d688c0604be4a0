from dataclasses import dataclass


@dataclass(frozen=True)
class Badge:
    label: str
    color: str

    @property
    def css_class(self) -> str:
        return f"badge badge-{self.color}"


TRANSACTION_STATUS = {
    'draft': Badge('Draft', 'gray'),
    'pending': Badge('Pending', 'yellow'),
    'paid': Badge('Paid', 'green'),
    'cancelled': Badge('Cancelled', 'red'),
    'refunded': Badge('Refunded', 'orange'),
}

PAYMENT_METHOD = {
    'cash': Badge('Cash', 'green'),
    'card': Badge('Card', 'blue'),
    'bank_transfer': Badge('Bank Transfer', 'purple'),
    'check': Badge('Check', 'yellow'),
    'hmo': Badge('HMO', 'indigo'),
}

PAYMENT_TYPE = {
    'cash': Badge('Cash', 'green'),
    'health_card': Badge('Health Card', 'blue'),
    'discount': Badge('Discount', 'orange'),
}

DOCTOR_PAYMENT_STATUS = {
    'pending': Badge('Pending', 'yellow'),
    'paid': Badge('Paid', 'green'),
    'cancelled': Badge('Cancelled', 'red'),
}

EXPENSE_STATUS = {
    'draft': Badge('Draft', 'gray'),
    'pending': Badge('Pending', 'yellow'),
    'approved': Badge('Approved', 'green'),
    'cancelled': Badge('Cancelled', 'red'),
}

EXPENSE_CATEGORY = {
    'office_supplies': Badge('Office Supplies', 'blue'),
    'medical_supplies': Badge('Medical Supplies', 'green'),
    'equipment': Badge('Equipment', 'purple'),
    'utilities': Badge('Utilities', 'yellow'),
    'rent': Badge('Rent', 'orange'),
    'maintenance': Badge('Maintenance', 'gray'),
    'marketing': Badge('Marketing', 'pink'),
    'other': Badge('Other', 'gray'),
}

ITEM_TYPE = {
    'consultation': Badge('Consultation', 'blue'),
    'laboratory': Badge('Laboratory', 'purple'),
    'medicine': Badge('Medicine', 'green'),
    'procedure': Badge('Procedure', 'orange'),
    'other': Badge('Other', 'gray'),
}

PROVIDER_STATUS = {
    'active': Badge('Active', 'green'),
    'inactive': Badge('Inactive', 'gray'),
}

DAILY_TYPE = {
    'billing': Badge('Billing', 'green'),
    'doctor_payment': Badge('Doctor Payment', 'purple'),
    'expense': Badge('Expense', 'red'),
}

BADGE_MAPS = {
    'transaction_status': TRANSACTION_STATUS,
    'payment_method': PAYMENT_METHOD,
    'payment_type': PAYMENT_TYPE,
    'doctor_payment_status': DOCTOR_PAYMENT_STATUS,
    'expense_status': EXPENSE_STATUS,
    'expense_category': EXPENSE_CATEGORY,
    'item_type': ITEM_TYPE,
    'daily_type': DAILY_TYPE,
    'provider_status': PROVIDER_STATUS,
}


def humanize(value) -> str:
    """'bank_transfer' -> 'Bank Transfer'"""
    if value is None or value == '':
        return '—'
    return str(value).replace('_', ' ').replace('-', ' ').title()


def badge(kind: str, value) -> Badge:
    """Look up the badge for an enum value; unknown values fall back to gray."""
    mapping = BADGE_MAPS.get(kind)
    if mapping is None:
        raise KeyError(f"Unknown badge kind: {kind}")
    key = str(value).lower() if value is not None else ''
    return mapping.get(key) or Badge(humanize(value), 'gray')


def choices(kind: str) -> list[tuple[str, str]]:
    """(value, label) pairs for select inputs, in declaration order."""
    return [(value, b.label) for value, b in BADGE_MAPS[kind].items()]
