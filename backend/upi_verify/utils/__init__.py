from upi_verify.utils.hashing import generate_hash, generate_chain_hash, fingerprint_bytes
from upi_verify.utils.validators import (
    normalize_text, is_valid_reference, sanitize_reference, format_reference_for_display,
    validate_upi_reference, validate_upi_vpa,
)

__all__ = [
    "generate_hash", "generate_chain_hash", "fingerprint_bytes",
    "normalize_text", "is_valid_reference", "sanitize_reference", "format_reference_for_display",
    "validate_upi_reference", "validate_upi_vpa",
]
