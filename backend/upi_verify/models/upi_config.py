"""
UPI Config Model — The merchant's receiving UPI destination (singleton row).
"""
from datetime import datetime
from sqlalchemy import Column, String, Integer, DateTime, Boolean, Text

from upi_verify.database import Base


class UpiConfig(Base):
    __tablename__ = "upi_config"

    id = Column(Integer, primary_key=True, autoincrement=True)
    is_active = Column(Boolean, default=True, index=True)

    upi_id = Column(String(64), nullable=False)            # e.g. merchant@upi
    merchant_name = Column(String(128), default="UPI Merchant")
    qr_code_image = Column(Text, nullable=True)            # base64 payload or URL
    instructions = Column(
        Text,
        default=(
            "Please scan the QR code or use the UPI ID to make payment. "
            "You will receive a transaction ID after payment."
        ),
    )

    updated_by = Column(String(36), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
