from upi_verify.services.audit_service import AuditService
from upi_verify.utils.hashing import generate_chain_hash, generate_hash


def test_entries_are_chained_per_order(db):
    first = AuditService.log(db, "order-1", "PAYMENT_SUBMITTED", actor="user-1", payload={"attempt": 1})
    AuditService.log(db, "order-2", "PAYMENT_SUBMITTED", actor="user-2", payload={"attempt": 1})
    second = AuditService.log(db, "order-1", "PAYMENT_VERIFIED", actor="admin-1", payload={"action": "approve"})
    db.commit()

    assert first.previous_hash == ""
    assert second.previous_hash == first.payload_hash
    assert second.payload_hash == generate_chain_hash({"action": "approve"}, first.payload_hash)
    assert [e.action for e in AuditService.get_trail(db, "order-1")] == ["PAYMENT_SUBMITTED", "PAYMENT_VERIFIED"]


def test_actor_defaults_to_system(db):
    entry = AuditService.log(db, "order-1", "PAYMENT_EXPIRED")

    assert entry.actor == "system"


def test_verify_chain_detects_tampering(db):
    AuditService.log(db, "order-1", "PAYMENT_SUBMITTED", payload={"attempt": 1})
    second = AuditService.log(db, "order-1", "PAYMENT_RESUBMITTED", payload={"attempt": 2})
    AuditService.log(db, "order-1", "PAYMENT_VERIFIED", payload={"action": "approve"})
    db.commit()
    assert AuditService.verify_chain(db, "order-1")["valid"]

    second.payload_hash = "0" * 64
    db.commit()

    result = AuditService.verify_chain(db, "order-1")
    assert not result["valid"]
    assert result["total_entries"] == 3


def test_empty_chain_is_valid(db):
    assert AuditService.verify_chain(db, "order-none") == {"valid": True, "total_entries": 0, "broken_at": None}


def test_hash_is_independent_of_key_order():
    assert generate_hash({"a": 1, "b": 2}) == generate_hash({"b": 2, "a": 1})
