from decimal import Decimal

import pytest

from reconciliation.keys import is_well_formed_key, key_type, normalize


@pytest.mark.parametrize("number", [0, 7, 42, -3, 10**30, 7.5, 0.1, -0.0, 1e20, Decimal("12.50")])
def test_number_and_its_string_normalize_identically(number):
    assert normalize(number) == normalize(str(number))


@pytest.mark.parametrize(
    "raw,expected",
    [
        (7, "7"),
        ("7", "7"),
        (" 007 ", "7"),
        ("+7", "7"),
        (7.0, "7"),
        (Decimal("7"), "7"),
        (Decimal("7.50"), "7.5"),
        ("-0", "0"),
        ("0.10", "0.1"),
    ],
)
def test_numeric_forms(raw, expected):
    assert normalize(raw) == expected


def test_strings_are_trimmed_and_case_folded():
    uuid_upper = "  3F2504E0-4F89-11D3-9A0C-0305E82C3301 "
    assert normalize(uuid_upper) == "3f2504e0-4f89-11d3-9a0c-0305e82c3301"
    assert normalize("Clinic-A") == normalize("clinic-a")


@pytest.mark.parametrize("raw", [None, "", "   ", "\t\n"])
def test_unassigned_keys_normalize_to_none(raw):
    assert normalize(raw) is None


def test_identifier_with_leading_zeros_but_letters_is_not_numeric():
    assert normalize("007a") == "007a"


@pytest.mark.parametrize("raw", [True, [1, 2], {"id": 7}, object(), float("nan")])
def test_malformed_keys_never_raise(raw):
    result = normalize(raw)
    assert result is None or isinstance(result, str)


def test_malformed_key_falls_back_to_trimmed_string():
    assert normalize(True) == "True"
    assert normalize({"id": 7}) == "{'id': 7}"


def test_well_formed_keys():
    assert is_well_formed_key(None)
    assert is_well_formed_key("abc")
    assert is_well_formed_key(7)
    assert is_well_formed_key(Decimal("7"))
    assert is_well_formed_key(7.5)
    assert not is_well_formed_key(True)
    assert not is_well_formed_key(float("nan"))
    assert not is_well_formed_key(Decimal("NaN"))
    assert not is_well_formed_key(["7"])


def test_key_type_labels():
    assert key_type("7") == "string"
    assert key_type(7) == "number"
    assert key_type(Decimal("7")) == "number"
    assert key_type(None) == "null"
    assert key_type(False) == "boolean"
    assert key_type([7]) == "list"


@pytest.mark.parametrize("raw", ["1e5000", "10E4999", "1.0e5000", Decimal("1e5000")])
def test_huge_numbers_normalize_without_expanding(raw):
    assert normalize(raw) == "1e5000"


def test_huge_int_matches_its_exponent_string():
    assert normalize(10**5000) == normalize("1e5000")


@pytest.mark.parametrize("raw,expected", [("1e999999999", "1e999999999"), ("-2.50e-5000", "-25e-5001"), ("0e9000", "0")])
def test_extreme_exponents_never_raise(raw, expected):
    assert normalize(raw) == expected


def test_long_digit_strings_match_their_integer():
    digits = "9" * 5000
    assert normalize(digits) == normalize(10**5000 - 1) == normalize(f"+{digits}")
