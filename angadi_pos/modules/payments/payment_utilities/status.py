from __future__ import annotations
from typing import Optional

from ....errors import ValidationError

# ---------- Canonical sets per document kind ----------
VALID_STATES: dict[str, tuple[str, ...]] = {
    "invoice": ("paid", "credit", "partial"),
    "purchase": ("pending", "partial", "paid"),
    "order": ("pending", "confirmed", "converted"),
    "return": ("pending", "completed", "rejected"),
    "credit_note": ("active", "used", "expired", "cancelled"),
}

# ---------- API ----------

def normalize(state: Optional[str]) -> Optional[str]:
    """Lowercase & strip; return None if empty. Does NOT invent synonyms."""
    if state is None:
        return None
    s = str(state).strip().lower()
    return s or None


def ensure_valid(kind: str, state: str) -> str:
    """
    Return the normalized state if valid; raise ValidationError if not.
    """
    s = normalize(state)
    allowed = VALID_STATES.get(kind, ())
    if s not in allowed:
        raise ValidationError(f"{kind} status must be one of: {', '.join(allowed)}")
    return s  # type: ignore[return-value]
