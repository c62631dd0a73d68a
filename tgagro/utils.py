import math
from collections import defaultdict
from datetime import date, datetime


class ValidationError(ValueError):
    """Raised when a record is missing required fields or carries malformed values."""

    def __init__(self, message, fields=None):
        super().__init__(message)
        self.message = message
        self.fields = list(fields or [])


def to_number(value):
    """
    Converts a JSON/form value to float.
    Returns None for missing, blank or non-numeric values so callers can decide
    whether that means zero (sums) or "skip" (rates). A single comma is accepted
    as the decimal separator.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        text = str(value).strip()
        if not text:
            return None
        if text.count(',') == 1 and '.' not in text:
            text = text.replace(',', '.')
        try:
            number = float(text)
        except ValueError:
            return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def number_or_zero(value):
    """to_number() for summation: anything unusable counts as zero."""
    number = to_number(value)
    return number if number is not None else 0.0


def parse_date(value):
    """
    Accepts a date, a datetime or an ISO string ('2024-01-15' or
    '2024-01-15T00:00:00.000Z'). Returns a datetime.date or None.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()[:10]
    if not text:
        return None
    try:
        return datetime.strptime(text, '%Y-%m-%d').date()
    except ValueError:
        return None


def days_between(later, earlier):
    """Whole days from earlier to later; negative when the order is reversed."""
    return (later - earlier).days


def is_blank(value):
    return value is None or (isinstance(value, str) and not value.strip())


def require_fields(data, fields):
    """Raises ValidationError naming every required field that is absent or blank."""
    missing = [field for field in fields if is_blank((data or {}).get(field))]
    if missing:
        raise ValidationError(
            f"Preencha os campos obrigatórios: {', '.join(missing)}", fields=missing
        )


def to_id(value):
    """Foreign keys arrive as ints or numeric strings ('3'); returns int or None."""
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(str(value).strip())
    except ValueError:
        return None


def index_by_id(records):
    """{id: record} lookup, built once per view load instead of scanning per row."""
    return {to_id(record.get('id')): record for record in records}


def group_by(records, key):
    """{key value: [records...]} preserving input order inside each group."""
    groups = defaultdict(list)
    for record in records:
        groups[to_id(record.get(key))].append(record)
    return groups


def sort_by_date(records, field, reverse=False):
    """
    Sorts records by a date field (stable). Records whose date cannot be
    parsed always go last.
    """
    dated = [r for r in records if parse_date(r.get(field)) is not None]
    undated = [r for r in records if parse_date(r.get(field)) is None]
    dated.sort(key=lambda r: parse_date(r.get(field)), reverse=reverse)
    return dated + undated
