# backend/tests/unit/test_validator.py
import pytest

from armelle.models.workflow import Choice, ValidationRule
from armelle.workflows.validator import parse_number, validate_choice, validate_input


def test_no_rule_accepts_and_trims():
    result = validate_input("  hello  ")
    assert result["is_valid"] is True
    assert result["value"] == "hello"


def test_required_empty_input_fails():
    result = validate_input("   ", ValidationRule())
    assert result["is_valid"] is False
    assert result["error_code"] == "required"


def test_optional_empty_input_is_valid():
    result = validate_input("", ValidationRule(required=False, min_length=5))
    assert result["is_valid"] is True
    assert result["value"] == ""


@pytest.mark.parametrize("raw, code", [
    ("a", "too_short"),
    ("abcdefghijk", "too_long"),
])
def test_length_bounds(raw, code):
    result = validate_input(raw, ValidationRule(min_length=2, max_length=10))
    assert result["error_code"] == code


def test_number_is_coerced():
    assert validate_input("42", ValidationRule(kind="number"))["value"] == 42
    assert validate_input("12,5", ValidationRule(kind="number"))["value"] == 12.5


def test_number_rejects_text_before_range():
    result = validate_input("abc", ValidationRule(kind="number", min=1, max=10))
    assert result["error_code"] == "invalid_format"


def test_number_out_of_range():
    result = validate_input("150", ValidationRule(kind="number", min=1, max=120))
    assert result["is_valid"] is False
    assert result["error_code"] == "out_of_range"


def test_email_is_lowercased():
    result = validate_input("Jean.Dupont@Example.CM", ValidationRule(kind="email"))
    assert result["value"] == "jean.dupont@example.cm"
    assert validate_input("not-an-email", ValidationRule(kind="email"))["error_code"] == "invalid_format"


@pytest.mark.parametrize("raw, expected", [
    ("690000000", "690000000"),
    ("+237 6 90 00 00 00", "+237690000000"),
    ("237-677-123-456", "237677123456"),
])
def test_valid_phone_numbers_are_normalized(raw, expected):
    result = validate_input(raw, ValidationRule(kind="phone"))
    assert result["is_valid"] is True
    assert result["value"] == expected


def test_invalid_phone_number():
    result = validate_input("590000000", ValidationRule(kind="phone"))
    assert result["error_code"] == "invalid_format"


def test_name_collapses_whitespace_and_allows_accents():
    result = validate_input("  Ngo   Bïtjöka-Étienne  ", ValidationRule(kind="name"))
    assert result["value"] == "Ngo Bïtjöka-Étienne"
    assert validate_input("R2D2", ValidationRule(kind="name"))["error_code"] == "invalid_format"


def test_pattern_runs_after_length():
    rule = ValidationRule(min_length=3, pattern=r"^[A-Z]+$")
    assert validate_input("ab", rule)["error_code"] == "too_short"
    assert validate_input("abc", rule)["error_code"] == "invalid_format"
    assert validate_input("ABC", rule)["is_valid"] is True


def test_invalid_regex_is_reported_as_invalid_format():
    result = validate_input("abc", ValidationRule(pattern="(unclosed"))
    assert result["is_valid"] is False
    assert result["error_code"] == "invalid_format"


def test_unknown_kind_accepts_any_input():
    assert validate_input("whatever!", ValidationRule(kind="telepathy"))["is_valid"] is True


def test_parse_number_rejects_garbage():
    assert parse_number("1e5") is None
    assert parse_number("nan") is None
    assert parse_number("-7") == -7


# --- Choices ---

CHOICES = [
    Choice(id="yes", label_key="common.yes"),
    Choice(id="no", label_key="common.no", value=False),
]


def test_choice_matches_id_case_insensitively():
    assert validate_choice("YES", CHOICES)["value"] == "yes"


def test_choice_matches_one_based_index():
    assert validate_choice("2", CHOICES)["value"] is False


def test_choice_out_of_range_index_is_invalid():
    result = validate_choice("3", CHOICES)
    assert result["is_valid"] is False
    assert result["error_code"] == "invalid_choice"


def test_empty_choice_is_invalid():
    assert validate_choice("", CHOICES)["error_code"] == "invalid_choice"
