"""
Cryptographic Hashing Utilities — SHA-256 hashing for the payment audit trail.
"""
import hashlib
import json


def generate_hash(data: dict) -> str:
    """Generate a SHA-256 hash of a dictionary (deterministic, sorted keys)."""
    canonical = json.dumps(data, sort_keys=True, default=str).encode("utf-8")
    return hashlib.sha256(canonical).hexdigest()


def generate_chain_hash(current_data: dict, previous_hash: str = "") -> str:
    """Chain hash: SHA-256(previous_hash + hash(current_payload)).
    Links each audit entry of an order to the one before it.
    """
    current_hash = generate_hash(current_data)
    chain_input = f"{previous_hash}{current_hash}".encode("utf-8")
    return hashlib.sha256(chain_input).hexdigest()


def fingerprint_bytes(content: bytes) -> str:
    """SHA-256 of an uploaded screenshot, recorded in the audit payload."""
    return hashlib.sha256(content).hexdigest()
