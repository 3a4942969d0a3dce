from __future__ import annotations
from dataclasses import dataclass, asdict
import sqlite3

from ...errors import ValidationError
from ...modules.billing.gst import state_code_for
from ...utils.validators import is_valid_gstin


@dataclass
class StoreSettings:
    store_name: str
    gstin: str | None = None
    address: str | None = None
    city: str | None = None
    state: str | None = None
    state_code: str | None = None
    pincode: str | None = None
    phone: str | None = None
    email: str | None = None


class StoreSettingsRepo:
    """Single-row receipt header (store_id = 1)."""

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn
        self.conn.row_factory = sqlite3.Row

    def get(self) -> StoreSettings | None:
        r = self.conn.execute("SELECT * FROM store_settings WHERE store_id = 1").fetchone()
        if r is None:
            return None
        d = {k: r[k] for k in r.keys() if k != "store_id"}
        return StoreSettings(**d)

    def save(self, settings: StoreSettings) -> None:
        if not settings.store_name or not settings.store_name.strip():
            raise ValidationError("Store name cannot be empty.")
        if settings.gstin and not is_valid_gstin(settings.gstin):
            raise ValidationError(f"Invalid GSTIN {settings.gstin!r}.")
        values = asdict(settings)
        if not values["state_code"] and values["state"]:
            values["state_code"] = state_code_for(values["state"])
        with self.conn:
            self.conn.execute(
                """
                INSERT INTO store_settings (
                    store_id, store_name, gstin, address, city, state,
                    state_code, pincode, phone, email
                ) VALUES (
                    1, :store_name, :gstin, :address, :city, :state,
                    :state_code, :pincode, :phone, :email
                )
                ON CONFLICT(store_id) DO UPDATE SET
                    store_name=excluded.store_name, gstin=excluded.gstin,
                    address=excluded.address, city=excluded.city,
                    state=excluded.state, state_code=excluded.state_code,
                    pincode=excluded.pincode, phone=excluded.phone,
                    email=excluded.email
                """,
                values,
            )
