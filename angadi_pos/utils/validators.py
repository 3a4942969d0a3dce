# utils/validators.py
import re
from decimal import Decimal, InvalidOperation

from ..errors import ValidationError

_GSTIN_RE = re.compile(r"^[0-9]{2}[A-Z]{5}[0-9]{4}[A-Z]{1}[1-9A-Z]{1}Z[0-9A-Z]{1}$")
_PHONE_RE = re.compile(r"^[6-9]\d{9}$")
_PINCODE_RE = re.compile(r"^[1-9][0-9]{5}$")


# ---- Numeric parsing & validators ----

def try_parse_decimal(x):
    """
    Best-effort parse to Decimal.

    Floats go through str() so 0.1 becomes Decimal("0.1"), not the binary
    approximation. Booleans are rejected.

    Returns:
        (ok: bool, value: Decimal|None)
    """
    if isinstance(x, bool) or x is None:
        return False, None
    if isinstance(x, Decimal):
        return True, x
    try:
        return True, Decimal(x.strip() if isinstance(x, str) else str(x))
    except (InvalidOperation, ValueError, TypeError):
        return False, None


def parse_decimal(x, field: str = "value") -> Decimal:
    """
    Strict parse to a finite Decimal; raises ValidationError with a clear message.
    """
    ok, val = try_parse_decimal(x)
    if not ok:
        raise ValidationError(f"Could not parse {field} {x!r} as a number.")
    if not val.is_finite():
        raise ValidationError(f"{field} must be a finite number, got {x!r}.")
    return val  # type: ignore[return-value]


def non_negative(x, field: str = "value") -> Decimal:
    val = parse_decimal(x, field)
    if val < 0:
        raise ValidationError(f"{field} cannot be negative, got {val}.")
    return val


def strictly_positive(x, field: str = "value") -> Decimal:
    val = parse_decimal(x, field)
    if val <= 0:
        raise ValidationError(f"{field} must be greater than 0, got {val}.")
    return val


def is_strictly_positive_number(x) -> bool:
    """
    True iff x parses to a finite Decimal and value > 0.
    """
    ok, val = try_parse_decimal(x)
    return bool(ok and val is not None and val.is_finite() and val > 0)


# ---- Party details ----

def is_valid_gstin(gstin: str | None) -> bool:
    return bool(gstin) and bool(_GSTIN_RE.match(str(gstin)))


def is_valid_phone(phone: str | None) -> bool:
    """Indian 10-digit mobile number."""
    return bool(phone) and bool(_PHONE_RE.match(str(phone)))


def is_valid_pincode(pincode: str | None) -> bool:
    return bool(pincode) and bool(_PINCODE_RE.match(str(pincode)))
