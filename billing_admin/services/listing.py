"""Search, sort and paginate listing rows for the table pages."""
import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

# Free-text search only looks at these fields for each listing.
TRANSACTION_SEARCH_FIELDS = (
    'transaction_id', 'patient.first_name', 'patient.last_name', 'patient.patient_no', 'doctor.name',
)
DOCTOR_PAYMENT_SEARCH_FIELDS = ('doctor_name', 'payment_reference')
EXPENSE_SEARCH_FIELDS = ('expense_name', 'vendor_name', 'receipt_number')
HMO_PROVIDER_SEARCH_FIELDS = ('name', 'code')


def resolve(row: Dict, path: str) -> Any:
    """'patient.first_name' -> row['patient']['first_name'] (None if missing)."""
    value: Any = row
    for part in path.split('.'):
        if not isinstance(value, dict):
            return None
        value = value.get(part)
    return value


def filter_rows(rows: Sequence[Dict], query: Optional[str], fields: Sequence[str]) -> List[Dict]:
    """Keep rows where any of `fields` contains `query`, ignoring case."""
    needle = (query or '').strip().casefold()
    if not needle:
        return list(rows)
    matched = []
    for row in rows:
        for path in fields:
            value = resolve(row, path)
            if value is not None and needle in str(value).casefold():
                matched.append(row)
                break
    return matched


def sort_rows(rows: Sequence[Dict], key: Optional[str], descending: bool = False) -> List[Dict]:
    """Stable sort on a (possibly dotted) key; None values always sort last."""
    if not key:
        return list(rows)
    present = [r for r in rows if resolve(r, key) is not None]
    missing = [r for r in rows if resolve(r, key) is None]

    def sort_key(row):
        value = resolve(row, key)
        return value.casefold() if isinstance(value, str) else value

    try:
        present.sort(key=sort_key, reverse=descending)
    except TypeError:
        present.sort(key=lambda r: str(resolve(r, key)), reverse=descending)
    return present + missing


def parse_sort(raw: Optional[str], allowed: Sequence[str]) -> tuple[Optional[str], bool]:
    """'-amount' -> ('amount', True); anything not in `allowed` is ignored."""
    if not raw:
        return None, False
    descending = raw.startswith('-')
    key = raw.lstrip('-')
    if key not in allowed:
        return None, False
    return key, descending


@dataclass
class Page:
    items: List[Dict]
    page: int
    page_size: int
    total: int
    page_count: int = field(init=False)

    def __post_init__(self):
        self.page_count = math.ceil(self.total / self.page_size) if self.page_size else 0

    @property
    def has_prev(self) -> bool:
        return self.page > 1

    @property
    def has_next(self) -> bool:
        return self.page < self.page_count

    @property
    def first_index(self) -> int:
        return (self.page - 1) * self.page_size + 1 if self.total else 0

    @property
    def last_index(self) -> int:
        return min(self.page * self.page_size, self.total)


def paginate(rows: Sequence[Dict], page: Optional[int], page_size: int = 15) -> Page:
    if page_size < 1:
        raise ValueError('page_size must be positive')
    total = len(rows)
    page_count = math.ceil(total / page_size)
    page = page or 1
    page = max(1, min(page, page_count or 1))
    start = (page - 1) * page_size
    return Page(items=list(rows[start:start + page_size]), page=page, page_size=page_size, total=total)
