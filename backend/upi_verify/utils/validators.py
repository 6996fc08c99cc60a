"""
Validators — Rule-based validation and normalization for UPI transaction
references (UTRs) and UPI addresses.
"""
import re

MIN_REFERENCE_LENGTH = 10
MAX_REFERENCE_LENGTH = 25

_DISALLOWED_TEXT_CHARS = re.compile(r"[^\w\s\-:.#]")
_WHITESPACE = re.compile(r"\s+")
_REPEATED_CHAR = re.compile(r"(.)\1*")


def normalize_text(text: str | None) -> str:
    """Uppercase OCR text, blank out stray symbols and collapse whitespace."""
    if not text:
        return ""
    cleaned = _DISALLOWED_TEXT_CHARS.sub(" ", text.upper())
    return _WHITESPACE.sub(" ", cleaned).strip()


def is_valid_reference(candidate: str | None) -> bool:
    """Validate a candidate reference: 10-25 chars, alphanumeric content,
    and not a single repeated character (0000000000, AAAAAAAAAAAA)."""
    if not candidate or not isinstance(candidate, str):
        return False

    clean = candidate.strip().upper()
    if not MIN_REFERENCE_LENGTH <= len(clean) <= MAX_REFERENCE_LENGTH:
        return False
    if not re.search(r"[A-Z0-9]", clean):
        return False
    if _REPEATED_CHAR.fullmatch(clean):
        return False
    return True


def sanitize_reference(reference: str | None) -> str:
    """Sanitize a reference for storage: uppercase, [A-Z0-9_-] only, max 25 chars."""
    if not reference or not isinstance(reference, str):
        return ""
    return re.sub(r"[^A-Z0-9\-_]", "", reference.strip().upper())[:MAX_REFERENCE_LENGTH]


def format_reference_for_display(reference: str | None) -> str:
    """Group 16-character references as XXXX-XXXX-XXXX-XXXX."""
    clean = sanitize_reference(reference)
    if len(clean) == 16:
        return "-".join(clean[i:i + 4] for i in range(0, 16, 4))
    return clean


def validate_upi_reference(reference: str | None) -> tuple[bool, str]:
    """Strict check for a typed-in reference.
    Accepts 12-digit UPI RRNs and 16/20-character alphanumeric UTRs.
    """
    if not reference or not isinstance(reference, str):
        return False, "Invalid input"

    clean = reference.strip().upper()
    if not re.fullmatch(r"[A-Z0-9]+", clean):
        return False, "Contains invalid characters. Only alphanumeric allowed"
    if len(clean) not in (12, 16, 20):
        return False, f"Invalid length: {len(clean)}. Expected 12, 16 or 20 characters"
    if _REPEATED_CHAR.fullmatch(clean):
        return False, "Invalid pattern: repeated characters"
    return True, "Valid UPI reference format"


def validate_upi_vpa(vpa: str | None) -> bool:
    """Validate UPI VPA format: user@provider."""
    if not vpa:
        return False
    return bool(re.match(r"^[\w.-]+@[\w]+$", vpa.strip()))
