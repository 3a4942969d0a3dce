"""
billing/gst.py

Tax jurisdiction and GST registration helpers.

Jurisdiction is decided by exact string equality between the counterparty's
state and the store's home state. No case folding or trimming is applied:
"tamil nadu" and "Tamil Nadu " are different states here.
"""
from __future__ import annotations

from enum import Enum
from typing import Optional

from ...config import HOME_STATE
from ...utils.validators import is_valid_gstin

__all__ = [
    "TaxJurisdiction",
    "jurisdiction_for",
    "INDIAN_STATES",
    "state_code_for",
    "state_name_for",
    "state_code_from_gstin",
    "is_valid_gstin",
]


class TaxJurisdiction(str, Enum):
    INTRASTATE = "intrastate"
    INTERSTATE = "interstate"


def jurisdiction_for(counterparty_state: Optional[str], home_state: Optional[str] = None) -> TaxJurisdiction:
    """INTRASTATE iff counterparty_state == home_state (exact match)."""
    home = HOME_STATE if home_state is None else home_state
    if counterparty_state == home:
        return TaxJurisdiction.INTRASTATE
    return TaxJurisdiction.INTERSTATE


# name -> GST state code
INDIAN_STATES: dict[str, str] = {
    "Andaman and Nicobar Islands": "35",
    "Andhra Pradesh": "37",
    "Arunachal Pradesh": "12",
    "Assam": "18",
    "Bihar": "10",
    "Chandigarh": "04",
    "Chhattisgarh": "22",
    "Dadra and Nagar Haveli and Daman and Diu": "26",
    "Delhi": "07",
    "Goa": "30",
    "Gujarat": "24",
    "Haryana": "06",
    "Himachal Pradesh": "02",
    "Jammu and Kashmir": "01",
    "Jharkhand": "20",
    "Karnataka": "29",
    "Kerala": "32",
    "Ladakh": "38",
    "Lakshadweep": "31",
    "Madhya Pradesh": "23",
    "Maharashtra": "27",
    "Manipur": "14",
    "Meghalaya": "17",
    "Mizoram": "15",
    "Nagaland": "13",
    "Odisha": "21",
    "Puducherry": "34",
    "Punjab": "03",
    "Rajasthan": "08",
    "Sikkim": "11",
    "Tamil Nadu": "33",
    "Telangana": "36",
    "Tripura": "16",
    "Uttar Pradesh": "09",
    "Uttarakhand": "05",
    "West Bengal": "19",
}

_CODE_TO_STATE = {code: name for name, code in INDIAN_STATES.items()}


def state_code_for(name: Optional[str]) -> Optional[str]:
    return INDIAN_STATES.get(name or "")


def state_name_for(code: Optional[str]) -> Optional[str]:
    return _CODE_TO_STATE.get(code or "")


def state_code_from_gstin(gstin: Optional[str]) -> Optional[str]:
    """First two characters of a GSTIN are the registering state's code."""
    if gstin and len(gstin) >= 2:
        return gstin[:2]
    return None
