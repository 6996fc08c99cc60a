"""
Audit Log Model — Immutable, tamper-evident payment audit trail.
Every lifecycle transition is SHA-256 hashed and chained per order.
"""
from datetime import datetime
from sqlalchemy import Column, String, Integer, DateTime, JSON

from upi_verify.database import Base


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    order_id = Column(String(36), nullable=False, index=True)
    payment_id = Column(Integer, nullable=True, index=True)

    actor = Column(String(36))              # user id, admin id or "system"
    action = Column(String(50), nullable=False)
    # Actions: PAYMENT_SUBMITTED, PAYMENT_RESUBMITTED, MANUAL_REFERENCE_SUBMITTED,
    #          PAYMENT_VERIFIED, PAYMENT_REJECTED, PAYMENT_EXPIRED, UPI_CONFIG_UPDATED

    payload_hash = Column(String(64))       # SHA-256 chain hash of the action payload
    previous_hash = Column(String(64))      # Hash chain for tamper detection

    log_metadata = Column(JSON, default=dict)
    timestamp = Column(DateTime, default=datetime.utcnow)
