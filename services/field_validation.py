# User value: This file checks reviewed contract fields so bad names or dates never reach the server.
import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

DATE_FORMATS = ("%Y-%m-%d", "%m/%d/%Y")
MIN_DATE = date(1990, 1, 1)
MAX_DATE_YEARS_AHEAD = 50

VENDOR_NAME_MIN_LENGTH = 2
VENDOR_NAME_MAX_LENGTH = 255
_INVALID_NAME_CHARS = re.compile(r"[<>{}]")


@dataclass(frozen=True)
class FieldCheck:
    valid: bool
    formatted: Optional[str] = None
    error: Optional[str] = None


def _parse_date(value: str) -> Optional[date]:
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(value, fmt).date()
        except ValueError:
            continue
    return None


# User value: accepts MM/DD/YYYY or YYYY-MM-DD and normalizes to ISO so the server sees one format.
def validate_date(value: Optional[str], *, required: bool = False, today: Optional[date] = None) -> FieldCheck:
    text = str(value or "").strip()
    if not text:
        if required:
            return FieldCheck(valid=False, error="Date is required")
        return FieldCheck(valid=True)

    parsed = _parse_date(text)
    if parsed is None:
        return FieldCheck(
            valid=False,
            error="Please enter a valid date (MM/DD/YYYY or YYYY-MM-DD)",
        )

    today = today or date.today()
    max_date = date(today.year + MAX_DATE_YEARS_AHEAD, 12, 31)
    if parsed < MIN_DATE:
        return FieldCheck(valid=False, error=f"Date cannot be before {MIN_DATE.year}")
    if parsed > max_date:
        return FieldCheck(valid=False, error=f"Date cannot be after {max_date.year}")

    return FieldCheck(valid=True, formatted=parsed.isoformat())


# User value: keeps vendor names readable and within the limits the vendor directory accepts.
def validate_vendor_name(value: Optional[str], *, required: bool = True) -> FieldCheck:
    name = str(value or "").strip()
    if not name:
        if required:
            return FieldCheck(valid=False, error="Vendor name is required")
        return FieldCheck(valid=True)

    if len(name) < VENDOR_NAME_MIN_LENGTH:
        return FieldCheck(valid=False, error=f"Vendor name must be at least {VENDOR_NAME_MIN_LENGTH} characters long")

    if len(name) > VENDOR_NAME_MAX_LENGTH:
        return FieldCheck(valid=False, error=f"Vendor name cannot exceed {VENDOR_NAME_MAX_LENGTH} characters")

    if _INVALID_NAME_CHARS.search(name):
        return FieldCheck(valid=False, error="Vendor name contains invalid characters")

    return FieldCheck(valid=True, formatted=name)
