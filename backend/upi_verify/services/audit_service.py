"""
Audit Service — Manages the hash-chained payment audit trail.
"""
from datetime import datetime
from typing import Optional, Dict

from sqlalchemy.orm import Session

from upi_verify.models.audit import AuditLog
from upi_verify.utils.hashing import generate_chain_hash


class AuditService:
    """Creates tamper-evident audit log entries with hash chaining."""

    @staticmethod
    def log(
        db: Session,
        order_id: str,
        action: str,
        actor: Optional[str] = None,
        payment_id: Optional[int] = None,
        payload: Optional[Dict] = None,
        metadata: Optional[Dict] = None,
    ) -> AuditLog:
        """Append an audit entry to an order's chain.

        The entry is added to the caller's session and flushed, not committed,
        so it lands in the same transaction as the state change it records.

        Args:
            db: Database session.
            order_id: Order whose chain this entry extends.
            action: Action identifier (e.g. PAYMENT_SUBMITTED, PAYMENT_VERIFIED).
            actor: User or admin who triggered the action.
            payment_id: Payment record the action touched.
            payload: Data payload to hash.
            metadata: Additional metadata to store.
        """
        last_entry = (
            db.query(AuditLog)
            .filter(AuditLog.order_id == order_id)
            .order_by(AuditLog.id.desc())
            .first()
        )
        previous_hash = last_entry.payload_hash if last_entry else ""

        entry = AuditLog(
            order_id=order_id,
            payment_id=payment_id,
            actor=actor or "system",
            action=action,
            payload_hash=generate_chain_hash(payload or {}, previous_hash),
            previous_hash=previous_hash,
            log_metadata=metadata or {},
            timestamp=datetime.utcnow(),
        )

        db.add(entry)
        db.flush()
        return entry

    @staticmethod
    def get_trail(db: Session, order_id: str) -> list[AuditLog]:
        """Get the full audit trail for an order, ordered chronologically."""
        return (
            db.query(AuditLog)
            .filter(AuditLog.order_id == order_id)
            .order_by(AuditLog.id.asc())
            .all()
        )

    @staticmethod
    def verify_chain(db: Session, order_id: str) -> dict:
        """Verify the integrity of the audit chain for an order.

        Returns:
            dict with 'valid' (bool), 'total_entries', and 'broken_at' (if invalid).
        """
        entries = AuditService.get_trail(db, order_id)

        if not entries:
            return {"valid": True, "total_entries": 0, "broken_at": None}

        for i, entry in enumerate(entries):
            expected_prev = entries[i - 1].payload_hash if i > 0 else ""
            if entry.previous_hash != expected_prev:
                return {
                    "valid": False,
                    "total_entries": len(entries),
                    "broken_at": entry.id,
                    "message": f"Chain broken at entry {entry.id} ({entry.action})",
                }

        return {"valid": True, "total_entries": len(entries), "broken_at": None}
