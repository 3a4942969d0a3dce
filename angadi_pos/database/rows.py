from __future__ import annotations

from decimal import Decimal
from typing import Iterable, Optional
import sqlite3


def dec(value) -> Decimal:
    """Stored decimal text -> Decimal (NULL -> 0)."""
    if value is None:
        return Decimal("0")
    return value if isinstance(value, Decimal) else Decimal(str(value))


def row_to_dict(row: Optional[sqlite3.Row], decimals: Iterable[str] = ()) -> dict | None:
    """
    sqlite3.Row -> plain dict, converting the named money/quantity columns to
    Decimal. Columns absent from the row are ignored.
    """
    if row is None:
        return None
    d = {k: row[k] for k in row.keys()}
    for k in decimals:
        if k in d and d[k] is not None:
            d[k] = dec(d[k])
    return d


def rows_to_dicts(rows: Iterable[sqlite3.Row], decimals: Iterable[str] = ()) -> list[dict]:
    cols = tuple(decimals)
    return [row_to_dict(r, cols) for r in rows]  # type: ignore[misc]
