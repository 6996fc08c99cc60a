"""
UPI Payment Model — One payment record per order, tracked through the
screenshot verification lifecycle.
"""
import enum
from datetime import datetime
from sqlalchemy import Column, String, Integer, DateTime, Float, Numeric, Text, Boolean, CheckConstraint

from upi_verify.database import Base


class PaymentStatus(str, enum.Enum):
    SUBMITTED = "submitted"                        # Screenshot uploaded, awaiting OCR
    UTR_DETECTED = "utr_detected"                  # Reference found in the screenshot
    UTR_DETECTION_FAILED = "utr_detection_failed"  # No reference found, resubmission needed
    PENDING_VERIFICATION = "pending_verification"  # Awaiting admin decision
    VERIFIED = "verified"                          # Admin approved
    REJECTED = "rejected"                          # Admin rejected
    EXPIRED = "expired"                            # Verification window elapsed


class AdminAction(str, enum.Enum):
    APPROVED = "approved"
    REJECTED = "rejected"


class UpiPayment(Base):
    __tablename__ = "upi_payments"
    __table_args__ = (
        CheckConstraint("amount >= 0", name="ck_upi_payments_amount_non_negative"),
        CheckConstraint("attempt_count >= 1", name="ck_upi_payments_attempt_count_positive"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    order_id = Column(String(36), nullable=False, unique=True, index=True)
    user_id = Column(String(36), nullable=False, index=True)

    upi_id = Column(String(64), nullable=False)
    amount = Column(Numeric(12, 2, asdecimal=False), nullable=False)

    # Evidence
    screenshot_url = Column(String(256))
    screenshot_filename = Column(String(128))
    extracted_reference = Column(String(32), index=True)
    manual_reference = Column(String(32), index=True)
    ocr_confidence = Column(Float)           # Recognition engine confidence (0-100)
    reference_confidence = Column(Float)     # Extractor confidence (0-100)
    reference_format = Column(String(24))

    # Lifecycle
    status = Column(String(24), nullable=False, default=PaymentStatus.SUBMITTED.value, index=True)
    attempt_count = Column(Integer, nullable=False, default=1)
    last_attempt_at = Column(DateTime, default=datetime.utcnow)
    submitted_at = Column(DateTime, default=datetime.utcnow, index=True)
    expires_at = Column(DateTime, nullable=False, index=True)

    # Admin verification
    verified_by = Column(String(36), nullable=True)
    verification_notes = Column(Text, nullable=True)
    verified_at = Column(DateTime, nullable=True)
    admin_action = Column(String(16), nullable=True)   # approved | rejected

    notification_sent_to_admin = Column(Boolean, default=False)
    notification_sent_to_customer = Column(Boolean, default=False)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def state(self) -> PaymentStatus:
        return PaymentStatus(self.status)

    @property
    def reference(self):
        """The reference an admin verifies against: OCR result first, then the typed fallback."""
        return self.extracted_reference or self.manual_reference

    def is_past_expiry(self, now: datetime | None = None) -> bool:
        return (now or datetime.utcnow()) > self.expires_at
