import pytest

from upi_verify.utils.validators import (
    format_reference_for_display,
    is_valid_reference,
    normalize_text,
    sanitize_reference,
    validate_upi_reference,
    validate_upi_vpa,
)


def test_normalize_text_uppercases_and_collapses_whitespace():
    assert normalize_text("utr:  320524n00124567\n\nthank you!") == "UTR: 320524N00124567 THANK YOU"


def test_normalize_text_keeps_reference_punctuation():
    assert normalize_text("Ref #T-123456789012.") == "REF #T-123456789012."


def test_normalize_text_blanks_symbols_instead_of_joining_tokens():
    assert normalize_text("₹499|A1B2C3D4E5F6G7H8") == "499 A1B2C3D4E5F6G7H8"
    assert normalize_text(None) == ""


@pytest.mark.parametrize("candidate, expected", [
    ("320524N00124567", True),
    ("T-123456789012", True),
    ("123456789", False),                     # too short
    ("A" * 26, False),                        # too long
    ("0000000000", False),                    # single repeated character
    ("AAAAAAAAAAAA", False),
    (None, False),
    ("", False),
])
def test_is_valid_reference(candidate, expected):
    assert is_valid_reference(candidate) is expected


def test_sanitize_reference():
    assert sanitize_reference(" a1b2 c3d4/e5f6g7h8 ") == "A1B2C3D4E5F6G7H8"
    assert sanitize_reference("T-123456789012") == "T-123456789012"
    assert len(sanitize_reference("9" * 40)) == 25
    assert sanitize_reference(None) == ""


def test_format_reference_for_display():
    assert format_reference_for_display("a1b2c3d4e5f6g7h8") == "A1B2-C3D4-E5F6-G7H8"
    assert format_reference_for_display("412345678901") == "412345678901"


@pytest.mark.parametrize("reference, valid", [
    ("412345678901", True),                   # 12-digit RRN
    ("A1B2C3D4E5F6G7H8", True),
    ("A1B2C3D4E5F6G7H8I9J0", True),
    ("4123456789012", False),                 # 13 characters
    ("A1B2-C3D4-E5F6-G7H8", False),
    ("111111111111", False),
    (None, False),
])
def test_validate_upi_reference(reference, valid):
    ok, reason = validate_upi_reference(reference)
    assert ok is valid
    assert reason


def test_validate_upi_vpa():
    assert validate_upi_vpa("merchant@okaxis")
    assert validate_upi_vpa("demo.store-1@ybl")
    assert not validate_upi_vpa("merchant")
    assert not validate_upi_vpa("merchant@")
    assert not validate_upi_vpa("")
