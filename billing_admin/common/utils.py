import calendar
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal, ROUND_HALF_UP

# Clinic local time is UTC+8
CLINIC_UTC_OFFSET = timedelta(hours=8)
CLINIC_TZ = timezone(CLINIC_UTC_OFFSET)


def clinic_now() -> datetime:
    """Return current clinic time as a naive datetime.

    Timestamps are stored in the DB as clinic local time (either via SQLite
    `datetime('now', '+8 hours')` or via Python), so the OS timezone never
    matters.
    """
    return datetime.now(timezone.utc).replace(tzinfo=None) + CLINIC_UTC_OFFSET


def clinic_today() -> date:
    return clinic_now().date()


def now_str() -> str:
    return clinic_now().strftime('%Y-%m-%d %H:%M:%S')


def parse_datetime(dt: datetime | str | None) -> datetime | None:
    """
    Parse a datetime string to datetime object.
    Accepts datetime object or string in format 'YYYY-MM-DD HH:MM:SS' or 'YYYY-MM-DD'.
    """
    if dt is None:
        return None

    if isinstance(dt, datetime):
        return dt

    if isinstance(dt, date):
        return datetime(dt.year, dt.month, dt.day)

    if isinstance(dt, str):
        if not dt or dt == '—':
            return None
        for fmt in ('%Y-%m-%d %H:%M:%S', '%Y-%m-%dT%H:%M:%S', '%Y-%m-%d %H:%M', '%Y-%m-%d'):
            try:
                return datetime.strptime(dt, fmt)
            except ValueError:
                continue
    return None


def parse_date(value: date | str | None) -> date | None:
    """Parse 'YYYY-MM-DD' (or a datetime string) into a date; None if invalid."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    parsed = parse_datetime(str(value).strip())
    return parsed.date() if parsed else None


def month_bounds(month: str) -> tuple[str, str]:
    """'2025-03' -> ('2025-03-01', '2025-03-31')"""
    year, mon = (int(p) for p in month.split('-'))
    last_day = calendar.monthrange(year, mon)[1]
    return f"{year:04d}-{mon:02d}-01", f"{year:04d}-{mon:02d}-{last_day:02d}"


def year_bounds(year: int) -> tuple[str, str]:
    return f"{int(year):04d}-01-01", f"{int(year):04d}-12-31"


def current_month_range(today: date | None = None) -> tuple[str, str]:
    today = today or clinic_today()
    return month_bounds(today.strftime('%Y-%m'))


def default_range(days: int = 30, today: date | None = None) -> tuple[str, str]:
    """Return (today - days, today) as ISO strings."""
    today = today or clinic_today()
    return (today - timedelta(days=days)).isoformat(), today.isoformat()


def get_datetime_range_for_date_range(date_from: str, date_to: str) -> tuple[str, str]:
    """Convert a date range to a half-open datetime range.

    - from: date_from 00:00:00
    - to:   (date_to + 1 day) 00:00:00
    """
    datetime_from = f"{date_from} 00:00:00"

    end_date = datetime.strptime(date_to, '%Y-%m-%d')
    next_day = end_date + timedelta(days=1)
    datetime_to = next_day.strftime('%Y-%m-%d') + ' 00:00:00'

    return datetime_from, datetime_to


def to_money(value) -> Decimal:
    """Round to centavos, half-up."""
    if value is None or value == '':
        return Decimal('0.00')
    return Decimal(str(value)).quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)


def format_currency(value, symbol: str = '₱') -> str:
    """1234.5 -> '₱1,234.50'; negatives keep the sign in front."""
    if value is None or value == '':
        value = 0
    try:
        amount = to_money(value)
    except (ArithmeticError, ValueError):
        return str(value)
    sign = '-' if amount < 0 else ''
    return f"{sign}{symbol}{abs(amount):,.2f}"


def format_date(value, fmt: str = '%b %d, %Y') -> str:
    parsed = parse_datetime(value)
    if parsed is None:
        return '—'
    return parsed.strftime(fmt)


def format_datetime(value) -> str:
    return format_date(value, '%b %d, %Y %I:%M %p')
