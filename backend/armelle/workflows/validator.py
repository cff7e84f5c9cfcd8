# /armelle/workflows/validator.py

"""
Pure validation functions for user input.

This module checks raw user text against a step's ValidationRule (input
steps) or its list of choices (choice steps) and returns the sanitized value
to store in the workflow context.

All functions are:
- Pure (no side effects)
- Deterministic (same input = same output)
- Unit-testable (no external dependencies)
- No I/O
- No state mutation

Checks run in a fixed order and the first failure wins:
required -> type coercion -> length/range -> pattern.
"""

import re
from typing import Any, List, Optional, TypedDict, Union

from armelle.models.workflow import Choice, ValidationRule

# Error codes (also used as localization suffixes: validation.<code>)
REQUIRED = "required"
TOO_SHORT = "too_short"
TOO_LONG = "too_long"
INVALID_FORMAT = "invalid_format"
OUT_OF_RANGE = "out_of_range"
INVALID_CHOICE = "invalid_choice"

# Cameroon mobile numbers, optionally prefixed with the 237 country code
PHONE_PATTERN = re.compile(r"^(\+?237)?[6-7]\d{8}$")
EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
# Letters (accents included), separated by single spaces, apostrophes or hyphens
NAME_PATTERN = re.compile(r"^[^\W\d_]+(?:[ '\-][^\W\d_]+)*$")
INTEGER_PATTERN = re.compile(r"^[+-]?\d+$")
DECIMAL_PATTERN = re.compile(r"^[+-]?(\d+\.\d*|\.\d+)$")

_PHONE_SEPARATORS = re.compile(r"[\s\-.()]")
_WHITESPACE = re.compile(r"\s+")


class InputValidationResult(TypedDict):
    """Result of validating one user input."""
    is_valid: bool
    value: Any
    error_code: Optional[str]
    message: Optional[str]


def _valid(value: Any) -> InputValidationResult:
    return {
        "is_valid": True,
        "value": value,
        "error_code": None,
        "message": None
    }


def _invalid(error_code: str, message: str) -> InputValidationResult:
    return {
        "is_valid": False,
        "value": None,
        "error_code": error_code,
        "message": message
    }


def parse_number(text: str) -> Optional[Union[int, float]]:
    """Parse an int or decimal, accepting a French decimal comma ("12,5")."""
    candidate = text.strip().replace(" ", "")
    if candidate.count(",") == 1 and "." not in candidate:
        candidate = candidate.replace(",", ".")
    if INTEGER_PATTERN.match(candidate):
        return int(candidate)
    if DECIMAL_PATTERN.match(candidate):
        return float(candidate)
    return None


def normalize_phone(text: str) -> str:
    return _PHONE_SEPARATORS.sub("", text)


def normalize_name(text: str) -> str:
    return _WHITESPACE.sub(" ", text).strip()


def _check_number(text: str, rule: ValidationRule) -> InputValidationResult:
    number = parse_number(text)
    if number is None:
        return _invalid(INVALID_FORMAT, f"'{text}' is not a number")

    if rule.min is not None and number < rule.min:
        return _invalid(OUT_OF_RANGE, f"Value must be at least {rule.min}")
    if rule.max is not None and number > rule.max:
        return _invalid(OUT_OF_RANGE, f"Value must be at most {rule.max}")
    return _valid(number)


def _coerce_text(text: str, kind: str) -> InputValidationResult:
    """Apply the per-kind format check and sanitization for textual kinds."""
    if kind == "email":
        value = text.lower()
        if not EMAIL_PATTERN.match(value):
            return _invalid(INVALID_FORMAT, "Invalid email address")
        return _valid(value)

    if kind == "phone":
        value = normalize_phone(text)
        if not PHONE_PATTERN.match(value):
            return _invalid(INVALID_FORMAT, "Invalid phone number")
        return _valid(value)

    if kind == "name":
        value = normalize_name(text)
        if not NAME_PATTERN.match(value):
            return _invalid(INVALID_FORMAT, "Names may only contain letters, spaces, apostrophes and hyphens")
        return _valid(value)

    # text, pattern and unknown kinds accept any input
    return _valid(text)


def validate_input(raw_input: Optional[str], rule: Optional[ValidationRule] = None) -> InputValidationResult:
    """
    Validate and sanitize free-text input against a rule.

    Args:
        raw_input: The text the user sent
        rule: The step's validation rule (None accepts anything)

    Returns:
        InputValidationResult with the sanitized value when valid
    """
    text = (raw_input or "").strip()

    if rule is None:
        return _valid(text)

    if not text:
        if rule.required:
            return _invalid(REQUIRED, "Input is required")
        return _valid("")

    if rule.kind == "number":
        result = _check_number(text, rule)
        if not result["is_valid"]:
            return result
    else:
        result = _coerce_text(text, rule.kind)
        if not result["is_valid"]:
            return result

        value = result["value"]
        if rule.min_length is not None and len(value) < rule.min_length:
            return _invalid(TOO_SHORT, f"Minimum length is {rule.min_length}")
        if rule.max_length is not None and len(value) > rule.max_length:
            return _invalid(TOO_LONG, f"Maximum length is {rule.max_length}")

    if rule.pattern:
        try:
            matched = re.search(rule.pattern, str(result["value"]))
        except re.error:
            return _invalid(INVALID_FORMAT, f"Invalid validation pattern '{rule.pattern}'")
        if not matched:
            return _invalid(INVALID_FORMAT, "Input does not match the expected format")

    return result


def validate_choice(raw_input: Optional[str], choices: List[Choice]) -> InputValidationResult:
    """
    Match user input to one of the step's choices.

    The input matches a choice id (case-insensitive), then a string choice
    value, then a 1-based position in the list.

    Returns:
        InputValidationResult whose value is the selected choice's value
    """
    text = (raw_input or "").strip()
    if not text:
        return _invalid(INVALID_CHOICE, "A choice is required")

    lowered = text.lower()
    for choice in choices:
        if choice.id.lower() == lowered:
            return _valid(choice.selected_value)

    for choice in choices:
        if isinstance(choice.value, str) and choice.value.lower() == lowered:
            return _valid(choice.selected_value)

    if text.isdigit():
        position = int(text)
        if 1 <= position <= len(choices):
            return _valid(choices[position - 1].selected_value)

    return _invalid(INVALID_CHOICE, f"'{text}' is not one of the {len(choices)} options")
