"""
Order Model — Minimal view of the storefront's order record.

Orders are created by the storefront; the verification pipeline only reads
them and updates their payment fields.
"""
from datetime import datetime
from sqlalchemy import Column, String, DateTime, Numeric, Text

from upi_verify.database import Base


class Order(Base):
    __tablename__ = "orders"

    id = Column(String(36), primary_key=True, index=True)
    user_id = Column(String(36), nullable=False, index=True)

    customer_name = Column(String(128))
    customer_email = Column(String(256))

    total_amount = Column(Numeric(12, 2, asdecimal=False), nullable=False)
    payment_method = Column(String(8), default="UPI")   # COD | UPI

    order_status = Column(String(16), default="PLACED")
    # Statuses: PLACED → CONFIRMED → PROCESSING → SHIPPED → DELIVERED | CANCELLED

    payment_status = Column(String(24), default="PENDING")
    # Statuses: COD_PENDING | PENDING | PAYMENT_SUBMITTED | VERIFIED | REJECTED | COMPLETED

    payment_reference = Column(String(32))
    payment_proof = Column(String(256))
    payment_submitted_at = Column(DateTime, nullable=True)
    payment_verified_at = Column(DateTime, nullable=True)
    admin_notes = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
