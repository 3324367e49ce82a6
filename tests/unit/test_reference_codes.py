"""Unit tests for entry reference codes"""

from debt_ledger.domain.reference_codes import generate, group_prefix, initials, unique_code


def test_initials_comma_form():
    assert initials("Dela Cruz, Juan, Santos") == "DJS"
    assert initials("Santos, Maria") == "SM"


def test_initials_space_form_uses_first_and_last():
    assert initials("Juan Dela Cruz") == "JC"


def test_initials_single_token():
    assert initials("Cher") == "C"


def test_group_prefix_strips_whitespace_without_padding():
    assert group_prefix("Bar Kada Friends") == "BarKa"
    assert group_prefix("Ab") == "Ab"


def test_generate_person_borrower():
    """Borrower initials followed by lender initials, uppercased"""
    assert generate("maria santos", "Dela Cruz, Juan") == "MSDJ"


def test_generate_group_borrower():
    assert generate("Household", "Dela Cruz, Juan", borrower_is_group=True) == "HOUSEDJ"


def test_unique_code_returns_base_when_free():
    assert unique_code("MSDJ", lambda code: False) == "MSDJ"


def test_unique_code_appends_counter():
    taken = {"MSDJ", "MSDJ1", "MSDJ2"}

    assert unique_code("MSDJ", taken.__contains__) == "MSDJ3"
