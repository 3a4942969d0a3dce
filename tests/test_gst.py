from angadi_pos.modules.billing import TaxJurisdiction, jurisdiction_for
from angadi_pos.modules.billing.gst import (
    is_valid_gstin,
    state_code_for,
    state_code_from_gstin,
    state_name_for,
)


def test_same_state_is_intrastate():
    assert jurisdiction_for("Tamil Nadu", "Tamil Nadu") is TaxJurisdiction.INTRASTATE


def test_other_state_is_interstate():
    assert jurisdiction_for("Karnataka", "Tamil Nadu") is TaxJurisdiction.INTERSTATE


def test_comparison_is_exact():
    """No case folding or trimming."""
    assert jurisdiction_for("tamil nadu", "Tamil Nadu") is TaxJurisdiction.INTERSTATE
    assert jurisdiction_for("Tamil Nadu ", "Tamil Nadu") is TaxJurisdiction.INTERSTATE
    assert jurisdiction_for(None, "Tamil Nadu") is TaxJurisdiction.INTERSTATE


def test_state_code_lookup_both_ways():
    assert state_code_for("Tamil Nadu") == "33"
    assert state_code_for("Karnataka") == "29"
    assert state_name_for("27") == "Maharashtra"
    assert state_code_for("Atlantis") is None
    assert state_name_for(None) is None


def test_gstin_validation_and_state_code():
    assert is_valid_gstin("33ABCDE1234F1Z5")
    assert not is_valid_gstin("33ABCDE1234F1X5")     # 14th char must be Z
    assert not is_valid_gstin("33abcde1234f1z5")
    assert not is_valid_gstin("")
    assert not is_valid_gstin(None)
    assert state_code_from_gstin("33ABCDE1234F1Z5") == "33"
    assert state_name_for(state_code_from_gstin("29ABCDE1234F1Z5")) == "Karnataka"
