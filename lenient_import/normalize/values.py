from __future__ import annotations

import math
import re
from datetime import date, datetime, timedelta
from typing import Any

import pandas as pd

"""Cell value normalizers.

Pure, stateless conversions from an untyped spreadsheet cell (str, int,
float, bool, datetime, None) to a typed value. None of these functions
raise: irrecoverable input yields the "empty" value of the target type
(None, 0, False or []).

Two families live here:
- normalize_* : import-path helpers (number -> 0, date -> None, phones/emails -> list)
- parse_*     : schema-path parsers used by the row validator; they return None on
                failure so the caller can fall back to the raw string.
"""

__all__ = [
    "SERIAL_EPOCH_OFFSET_DAYS",
    "to_safe_string",
    "normalize_number",
    "normalize_date",
    "normalize_phones",
    "normalize_emails",
    "normalize_boolean",
    "parse_date",
    "parse_number",
    "parse_boolean",
    "parse_string",
    "parse_phone",
    "parse_contact",
    "parse_contacts",
    "merge_contacts",
    "is_blank",
]

# Days between the spreadsheet epoch (1899-12-30) and the Unix epoch.
SERIAL_EPOCH_OFFSET_DAYS = 25569
SERIAL_DATE_MIN = 0
SERIAL_DATE_MAX = 60000  # ~2064-04-09; larger numbers are not dates
UNIX_EPOCH = datetime(1970, 1, 1)
RELATIVE_DATE_TOKENS = frozenset({"now", "today", "tomorrow", "yesterday"})

TRUTHY_TOKENS = frozenset({"true", "yes", "1", "approved", "pending"})
SCHEMA_TRUTHY_TOKENS = frozenset({"yes", "y", "true", "1", "active", "enabled", "on"})
MAX_STRING_LENGTH = 500
MIN_PHONE_DIGITS = 8
LOCAL_PHONE_DIGITS = 10

_SPLIT_PHONES = re.compile(r"[,/;|\n]")
_SPLIT_EMAILS = re.compile(r"[,/;|\n\s]")
_EMAIL = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_EMAIL_SEARCH = re.compile(r"([a-zA-Z0-9._%-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,})")
_PHONE_RUN = re.compile(r"(\d{10,})")
_NON_DIGIT = re.compile(r"\D")
_NON_NUMERIC = re.compile(r"[^0-9.-]")
_LEADING_NUMBER = re.compile(r"-?(?:\d+\.?\d*|\.\d+)")
_DMY = re.compile(r"(\d{1,2})[-/](\d{1,2})[-/](\d{4})")
_YMD = re.compile(r"(\d{4})[-/](\d{1,2})[-/](\d{1,2})")


def is_blank(value: Any) -> bool:
    """None, NaN/NaT, or a whitespace-only string."""
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    if isinstance(value, float) and math.isnan(value):
        return True
    return value is pd.NaT


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def to_safe_string(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        if math.isnan(value):
            return None
        # 100.0 read from a sheet should round-trip as "100"
        return str(int(value)) if value.is_integer() else str(value)
    if isinstance(value, int):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value).strip()


def normalize_number(value: Any) -> float:
    """Strip everything but digits, '.', '-' and parse; non-numeric -> 0."""
    if not value or is_blank(value):
        return 0
    cleaned = _NON_NUMERIC.sub("", str(value))
    try:
        return float(cleaned)
    except ValueError:
        return 0


def _from_serial(serial: float) -> datetime | None:
    if not (SERIAL_DATE_MIN < serial < SERIAL_DATE_MAX):
        return None
    millis = round((serial - SERIAL_EPOCH_OFFSET_DAYS) * 86400 * 1000)
    return UNIX_EPOCH + timedelta(milliseconds=millis)


def _native_parse(text: str) -> datetime | None:
    # pandas resolves these against the clock
    if text.lower() in RELATIVE_DATE_TOKENS:
        return None
    parsed = pd.to_datetime(text, errors="coerce")
    if pd.isna(parsed):
        return None
    return parsed.to_pydatetime()


def _coerce_datetime(value: datetime | date) -> datetime:
    if isinstance(value, pd.Timestamp):
        return value.to_pydatetime()
    if isinstance(value, datetime):
        return value
    return datetime(value.year, value.month, value.day)


def normalize_date(value: Any) -> datetime | None:
    """Spreadsheet serial numbers or calendar strings; invalid -> None."""
    if not value or is_blank(value):
        return None
    if isinstance(value, (datetime, date)):
        return _coerce_datetime(value)
    if _is_number(value):
        return _from_serial(float(value))
    return _native_parse(str(value).strip())


def parse_date(value: Any) -> datetime | None:
    """Pattern-aware date parser used by the row validator.

    Tries, in order: datetime passthrough, spreadsheet serial (also as a
    numeric string), DD/MM/YYYY and YYYY/MM/DD (the 4-digit group is the
    year), then native parsing.
    """
    if not value or is_blank(value):
        return None
    if isinstance(value, (datetime, date)):
        return _coerce_datetime(value)

    text = str(value).strip()
    try:
        serial = float(text)
    except ValueError:
        serial = None
    if serial is not None and not math.isnan(serial):
        converted = _from_serial(serial)
        if converted is not None:
            return converted

    for pattern in (_DMY, _YMD):
        match = pattern.search(text)
        if not match:
            continue
        if len(match.group(3)) == 4:
            day, month, year = (int(g) for g in match.groups())
        else:
            year, month, day = (int(g) for g in match.groups())
        try:
            return datetime(year, month, day)
        except ValueError:
            continue

    return _native_parse(text)


def normalize_phones(value: Any) -> list[str]:
    """Split a multi-phone cell; keep pieces of 8+ digits, 10+ digit pieces cut to the last 10."""
    text = to_safe_string(value)
    if not text:
        return []
    phones = []
    for piece in _SPLIT_PHONES.split(text):
        digits = _NON_DIGIT.sub("", piece)
        if len(digits) < MIN_PHONE_DIGITS:
            continue
        phones.append(digits[-LOCAL_PHONE_DIGITS:] if len(digits) >= LOCAL_PHONE_DIGITS else digits)
    return phones


def normalize_emails(value: Any) -> list[str]:
    text = to_safe_string(value)
    if not text:
        return []
    return [p.strip() for p in _SPLIT_EMAILS.split(text) if _EMAIL.match(p.strip())]


def normalize_boolean(value: Any) -> bool:
    # NOTE: "approved"/"pending" count as true; status columns rely on it.
    if not value or is_blank(value):
        return False
    return str(value).strip().lower() in TRUTHY_TOKENS


def parse_number(value: Any, kind: str = "float") -> int | float | None:
    """Leading numeric part after stripping currency/grouping characters; None if there is none."""
    if value is None or value == "" or is_blank(value):
        return None
    if _is_number(value):
        number = float(value)
    else:
        cleaned = re.sub(r"[^\d.-]", "", str(value).strip())
        match = _LEADING_NUMBER.match(cleaned)
        if not match:
            return None
        number = float(match.group(0))
    if not math.isfinite(number):
        return None
    if kind == "int":
        return math.floor(number + 0.5)
    return number


def parse_boolean(value: Any) -> bool | None:
    if isinstance(value, bool):
        return value
    if value is None:
        return None
    if str(value).strip().lower() in SCHEMA_TRUTHY_TOKENS:
        return True
    return None


def parse_string(value: Any) -> str | None:
    if not value or is_blank(value):
        return None
    return re.sub(r"\s+", " ", str(value).strip())[:MAX_STRING_LENGTH]


def parse_phone(value: Any) -> str | None:
    """Single phone number: 10+ digits, cut to the last 10."""
    if not value or is_blank(value):
        return None
    digits = _NON_DIGIT.sub("", str(value).strip())
    if len(digits) >= LOCAL_PHONE_DIGITS:
        return digits[-LOCAL_PHONE_DIGITS:]
    return None


def parse_contact(value: Any) -> dict[str, str] | None:
    """Best-effort split of "Name (email, phone)" style cells into email / phone / name."""
    if not value or is_blank(value):
        return None
    text = str(value).strip()
    result: dict[str, str] = {}

    email_match = _EMAIL_SEARCH.search(text)
    if email_match:
        result["email"] = email_match.group(1)

    phone_match = _PHONE_RUN.search(text)
    if phone_match:
        phone = parse_phone(phone_match.group(1))
        if phone:
            result["phone"] = phone

    name = text
    if email_match:
        name = name.replace(email_match.group(0), "", 1)
    if phone_match:
        name = name.replace(phone_match.group(0), "", 1)
    name = re.sub(r"[(),\-]", "", name).strip()
    if name:
        result["name"] = name

    return result or None


def parse_contacts(row: dict[str, Any]) -> list[dict[str, str | None]]:
    """Pair the phones and emails of a row positionally."""
    phones = normalize_phones(row.get("contactPhone"))
    emails = normalize_emails(row.get("contactEmail"))
    contacts = []
    for i in range(max(len(phones), len(emails))):
        contacts.append({
            "phone": phones[i] if i < len(phones) else None,
            "email": emails[i] if i < len(emails) else None,
        })
    return contacts


def merge_contacts(fields: dict[str, Any]) -> dict[str, Any]:
    """Combine name / phone / email from arbitrarily named columns by keyword."""
    result: dict[str, Any] = {}
    for key, value in fields.items():
        if not value or is_blank(value):
            continue
        lower = key.lower()
        if "phone" in lower or "tel" in lower or "mobile" in lower:
            result["phone"] = value
        if "email" in lower or "mail" in lower:
            result["email"] = value
        if "name" in lower or "contact" in lower:
            result["name"] = value
    return result
