"""Form validation helpers.

Each helper either returns the cleaned value or records a message in the
`errors` dict under the field name. Services collect all field errors and
raise a single ValidationError so routes can render them inline.
"""
import re
from datetime import datetime
from decimal import Decimal, InvalidOperation


class ValidationError(Exception):
    """Field-keyed validation failure."""

    def __init__(self, errors: dict):
        self.errors = dict(errors)
        super().__init__('; '.join(f"{k}: {v}" for k, v in self.errors.items()))

    @property
    def first_message(self) -> str:
        return next(iter(self.errors.values()), 'Invalid input.')


class BillingError(Exception):
    """A request that breaks a billing rule (e.g. paying a cancelled transaction)."""


def require(form, field: str, errors: dict, label: str | None = None, max_length: int | None = None) -> str | None:
    value = (form.get(field) or '').strip()
    if not value:
        errors[field] = f"The {label or field.replace('_', ' ')} field is required."
        return None
    if max_length and len(value) > max_length:
        errors[field] = f"The {label or field.replace('_', ' ')} may not be greater than {max_length} characters."
        return None
    return value


def optional(form, field: str, errors: dict, max_length: int = 1000) -> str | None:
    value = (form.get(field) or '').strip()
    if not value:
        return None
    if len(value) > max_length:
        errors[field] = f"The {field.replace('_', ' ')} may not be greater than {max_length} characters."
        return None
    return value


def parse_amount(form, field: str, errors: dict, required: bool = True, minimum=0) -> Decimal | None:
    """Parse a non-negative money amount."""
    raw = (str(form.get(field) or '')).strip().replace(',', '')
    if not raw:
        if required:
            errors[field] = f"The {field.replace('_', ' ')} field is required."
        return None if required else Decimal('0')
    try:
        value = Decimal(raw)
    except InvalidOperation:
        errors[field] = f"The {field.replace('_', ' ')} must be a number."
        return None
    if not value.is_finite():
        errors[field] = f"The {field.replace('_', ' ')} must be a number."
        return None
    if minimum is not None and value < Decimal(str(minimum)):
        errors[field] = f"The {field.replace('_', ' ')} must be at least {minimum}."
        return None
    return value


def parse_int(form, field: str, errors: dict, required: bool = True, minimum: int | None = None) -> int | None:
    raw = (str(form.get(field) or '')).strip()
    if not raw:
        if required:
            errors[field] = f"The {field.replace('_', ' ')} field is required."
        return None
    try:
        value = int(raw)
    except ValueError:
        errors[field] = f"The {field.replace('_', ' ')} must be an integer."
        return None
    if minimum is not None and value < minimum:
        errors[field] = f"The {field.replace('_', ' ')} must be at least {minimum}."
        return None
    return value


def parse_choice(form, field: str, choices, errors: dict, required: bool = True, default: str | None = None) -> str | None:
    value = (form.get(field) or '').strip()
    if not value:
        if required and default is None:
            errors[field] = f"The {field.replace('_', ' ')} field is required."
            return None
        return default
    if value not in choices:
        errors[field] = f"The selected {field.replace('_', ' ')} is invalid."
        return None
    return value


def parse_bool(form, field: str) -> bool:
    value = form.get(field)
    if isinstance(value, bool):
        return value
    return str(value or '').strip().lower() in ('1', 'true', 'on', 'yes')


def is_email(value: str) -> bool:
    """
    Loose address check: one '@', no spaces, a dot in the domain.

    Examples:
        >>> is_email('claims@maxicare.com.ph')
        True
        >>> is_email('claims@maxicare')
        False
    """
    return bool(value) and re.fullmatch(r'[^@\s]+@[^@\s]+\.[^@\s]+', value) is not None


def is_iso_date(value: str) -> bool:
    """
    Examples:
        >>> is_iso_date('2025-02-28')
        True
        >>> is_iso_date('2025-02-30')
        False
        >>> is_iso_date('28/02/2025')
        False
    """
    if not value or not re.fullmatch(r'\d{4}-\d{2}-\d{2}', value):
        return False
    try:
        datetime.strptime(value, '%Y-%m-%d')
    except ValueError:
        return False
    return True


def parse_iso_date(form, field: str, errors: dict, required: bool = True) -> str | None:
    value = (form.get(field) or '').strip()
    if not value:
        if required:
            errors[field] = f"The {field.replace('_', ' ')} field is required."
        return None
    if not is_iso_date(value):
        errors[field] = f"The {field.replace('_', ' ')} must be a valid date (YYYY-MM-DD)."
        return None
    return value


def is_month(value: str) -> bool:
    """
    Examples:
        >>> is_month('2025-12')
        True
        >>> is_month('2025-13')
        False
    """
    if not value or not re.fullmatch(r'\d{4}-\d{2}', value):
        return False
    return 1 <= int(value[5:7]) <= 12


def is_year(value) -> bool:
    try:
        year = int(str(value))
    except ValueError:
        return False
    return 1900 <= year <= 2999


def parse_id_list(values, field: str, errors: dict) -> list[int]:
    """Accept ['1', '2'] or '1,2' and return unique ints in order."""
    if isinstance(values, str):
        values = [v for v in values.split(',')]
    ids = []
    for raw in values or []:
        raw = str(raw).strip()
        if not raw:
            continue
        if not raw.isdigit():
            errors[field] = f"The {field.replace('_', ' ')} must contain valid ids."
            return []
        value = int(raw)
        if value not in ids:
            ids.append(value)
    if not ids:
        errors[field] = f"The {field.replace('_', ' ')} field must have at least 1 item."
    return ids
