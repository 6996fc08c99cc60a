"""
Payment Lifecycle Manager — Owns the UPI payment record's state machine.

    submitted ─┬─> utr_detected ──> pending_verification ─┬─> verified
               └─> utr_detection_failed                   └─> rejected

``utr_detection_failed`` and ``rejected`` records may be resubmitted (back to
``submitted``) while attempts remain; ``utr_detection_failed`` may also move
to ``pending_verification`` with a manually typed reference. Any record that
is not ``verified`` or ``expired`` becomes ``expired`` once its expiry passes;
expiry is applied lazily whenever the record is read.

Every mutating operation runs inside a per-order lock so the duplicate check,
the transition and the commit are atomic for that order.
"""
import enum
import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional

from sqlalchemy import and_, func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from upi_verify.config import get_settings
from upi_verify.errors import (
    DuplicateReference,
    InvalidStateTransition,
    NoReferenceFound,
    PaymentAlreadyExists,
    PaymentNotFound,
    RetryLimitExceeded,
)
from upi_verify.models.order import Order
from upi_verify.models.payment import AdminAction, PaymentStatus, UpiPayment
from upi_verify.services.audit_service import AuditService
from upi_verify.services.order_store import OrderStore
from upi_verify.services.screenshot_pipeline import ScreenshotAnalysis, ScreenshotPipeline, ScreenshotUpload
from upi_verify.services.screenshot_storage import ScreenshotStorage
from upi_verify.utils.validators import sanitize_reference, validate_upi_reference

logger = logging.getLogger(__name__)


ALLOWED_TRANSITIONS: Dict[PaymentStatus, frozenset] = {
    PaymentStatus.SUBMITTED: frozenset({
        PaymentStatus.UTR_DETECTED, PaymentStatus.UTR_DETECTION_FAILED, PaymentStatus.EXPIRED,
    }),
    PaymentStatus.UTR_DETECTED: frozenset({PaymentStatus.PENDING_VERIFICATION, PaymentStatus.EXPIRED}),
    PaymentStatus.UTR_DETECTION_FAILED: frozenset({
        PaymentStatus.SUBMITTED, PaymentStatus.PENDING_VERIFICATION, PaymentStatus.EXPIRED,
    }),
    PaymentStatus.PENDING_VERIFICATION: frozenset({
        PaymentStatus.VERIFIED, PaymentStatus.REJECTED, PaymentStatus.EXPIRED,
    }),
    PaymentStatus.REJECTED: frozenset({PaymentStatus.SUBMITTED, PaymentStatus.EXPIRED}),
    PaymentStatus.VERIFIED: frozenset(),
    PaymentStatus.EXPIRED: frozenset(),
}

TERMINAL_STATES = frozenset({PaymentStatus.VERIFIED, PaymentStatus.EXPIRED})
RESUBMITTABLE_STATES = frozenset({PaymentStatus.UTR_DETECTION_FAILED, PaymentStatus.REJECTED})


class VerificationAction(str, enum.Enum):
    APPROVE = "approve"
    REJECT = "reject"


def transition(payment: UpiPayment, target: PaymentStatus, message: Optional[str] = None) -> None:
    """Move a payment to ``target`` or raise if the edge is not in the table."""
    current = payment.state
    if target not in ALLOWED_TRANSITIONS[current]:
        raise InvalidStateTransition(current.value, target.value, message)
    payment.status = target.value


class OrderLockRegistry:
    """One lock per order id, dropped again once nobody holds or waits on it."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[str, List] = {}   # order_id -> [lock, users]

    @contextmanager
    def hold(self, order_id: str):
        with self._guard:
            entry = self._locks.setdefault(order_id, [threading.Lock(), 0])
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[order_id]

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


@dataclass
class SubmissionOutcome:
    payment: UpiPayment
    analysis: Optional[ScreenshotAnalysis] = None
    replaced_screenshot: Optional[str] = None

    @property
    def reference_detected(self) -> bool:
        return bool(self.payment.extracted_reference)


@dataclass
class VerificationOutcome:
    payment: UpiPayment
    order: Optional[Order]
    action: VerificationAction
    max_attempts: int

    @property
    def retry_available(self) -> bool:
        return self.payment.attempt_count < self.max_attempts


class PaymentLifecycleManager:
    """Creates, resubmits, verifies and expires UPI payment records."""

    def __init__(
        self,
        pipeline: ScreenshotPipeline,
        storage: Optional[ScreenshotStorage] = None,
        locks: Optional[OrderLockRegistry] = None,
        max_attempts: Optional[int] = None,
        expiry_hours: Optional[int] = None,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        settings = get_settings()
        self.pipeline = pipeline
        self.storage = storage or ScreenshotStorage()
        self.locks = locks or OrderLockRegistry()
        self.max_attempts = max_attempts or settings.MAX_PAYMENT_ATTEMPTS
        self.expiry_window = timedelta(hours=expiry_hours or settings.PAYMENT_EXPIRY_HOURS)
        self.clock = clock

    # ─── Lookups ─────────────────────────────────────────────────────

    @staticmethod
    def find_by_order(db: Session, order_id: str) -> Optional[UpiPayment]:
        return db.query(UpiPayment).filter(UpiPayment.order_id == order_id).first()

    def _require_by_order(self, db: Session, order_id: str) -> UpiPayment:
        payment = self.find_by_order(db, order_id)
        if not payment:
            raise PaymentNotFound("No previous payment found for this order")
        return payment

    def ensure_reference_available(self, db: Session, reference: str, exclude_order_id: str) -> None:
        """Reject a reference already backing another order's verified or live pending payment.

        Raises:
            DuplicateReference
        """
        existing = (
            db.query(UpiPayment)
            .filter(
                or_(UpiPayment.extracted_reference == reference, UpiPayment.manual_reference == reference),
                UpiPayment.order_id != exclude_order_id,
                or_(
                    UpiPayment.status == PaymentStatus.VERIFIED.value,
                    and_(
                        UpiPayment.status == PaymentStatus.PENDING_VERIFICATION.value,
                        UpiPayment.expires_at >= self.clock(),
                    ),
                ),
            )
            .first()
        )
        if existing:
            logger.warning("Duplicate reference %s (already used by order %s)", reference, existing.order_id)
            raise DuplicateReference(reference, existing.order_id)

    # ─── Expiry ──────────────────────────────────────────────────────

    def refresh_expiry(self, db: Session, payment: UpiPayment) -> bool:
        """Rewrite an overdue, non-terminal record to ``expired``. Idempotent."""
        if payment.state in TERMINAL_STATES or not payment.is_past_expiry(self.clock()):
            return False

        previous = payment.status
        transition(payment, PaymentStatus.EXPIRED)
        AuditService.log(
            db, payment.order_id, "PAYMENT_EXPIRED",
            payment_id=payment.id,
            payload={"previous_status": previous, "expires_at": payment.expires_at},
        )
        db.commit()
        logger.info("Payment %s for order %s expired (was %s)", payment.id, payment.order_id, previous)
        return True

    def expire_overdue(self, db: Session) -> int:
        overdue = (
            db.query(UpiPayment)
            .filter(
                UpiPayment.status.notin_([s.value for s in TERMINAL_STATES]),
                UpiPayment.expires_at < self.clock(),
            )
            .all()
        )
        expired = 0
        for payment in overdue:
            with self.locks.hold(payment.order_id):
                db.refresh(payment)
                if self.refresh_expiry(db, payment):
                    expired += 1
        return expired

    # ─── Customer operations ─────────────────────────────────────────

    def create_payment(
        self, db: Session, order: Order, user_id: str, upload: ScreenshotUpload, upi_id: str
    ) -> SubmissionOutcome:
        """First screenshot submission for an order.

        Raises:
            PaymentAlreadyExists, UploadRejected, PreprocessingFailed,
            RecognitionFailed, DuplicateReference
        """
        with self.locks.hold(order.id):
            if self.find_by_order(db, order.id):
                raise PaymentAlreadyExists(
                    "A payment has already been submitted for this order. Please use resubmission instead."
                )

            analysis = self.pipeline.process(upload)
            reference = sanitize_reference(analysis.reference) or None
            if reference:
                self.ensure_reference_available(db, reference, exclude_order_id=order.id)

            stored = self.storage.save(upload.content, upload.content_type)
            now = self.clock()
            payment = UpiPayment(
                order_id=order.id,
                user_id=user_id,
                upi_id=upi_id,
                amount=order.total_amount,
                screenshot_url=stored.url,
                screenshot_filename=stored.filename,
                status=PaymentStatus.SUBMITTED.value,
                attempt_count=1,
                last_attempt_at=now,
                submitted_at=now,
                expires_at=now + self.expiry_window,
            )
            self._apply_analysis(payment, analysis, reference)
            db.add(payment)

            try:
                db.flush()
                OrderStore.mark_payment_submitted(order, reference, stored.url)
                AuditService.log(
                    db, order.id, "PAYMENT_SUBMITTED",
                    actor=user_id,
                    payment_id=payment.id,
                    payload=self._audit_payload(payment, analysis),
                )
                db.commit()
            except IntegrityError as e:
                db.rollback()
                self.storage.delete(stored.filename)
                raise PaymentAlreadyExists("A payment has already been submitted for this order.") from e

            db.refresh(payment)
            logger.info("Payment record %s created for order %s (%s)", payment.id, order.id, payment.status)
            return SubmissionOutcome(payment=payment, analysis=analysis)

    def resubmit_payment(self, db: Session, order: Order, upload: ScreenshotUpload) -> SubmissionOutcome:
        """Retry after a failed detection or a rejection, bounded by ``max_attempts``.

        Raises:
            PaymentNotFound, RetryLimitExceeded, InvalidStateTransition,
            UploadRejected, PreprocessingFailed, RecognitionFailed, DuplicateReference
        """
        with self.locks.hold(order.id):
            payment = self._require_by_order(db, order.id)

            if payment.attempt_count >= self.max_attempts:
                raise RetryLimitExceeded(self.max_attempts)

            self.refresh_expiry(db, payment)
            if payment.state not in RESUBMITTABLE_STATES:
                raise InvalidStateTransition(
                    payment.status, PaymentStatus.SUBMITTED.value,
                    f"Cannot resubmit a payment with status: {payment.status}",
                )

            analysis = self.pipeline.process(upload)
            reference = sanitize_reference(analysis.reference) or None
            if reference:
                self.ensure_reference_available(db, reference, exclude_order_id=order.id)

            stored = self.storage.save(upload.content, upload.content_type)
            replaced = payment.screenshot_filename
            now = self.clock()

            transition(payment, PaymentStatus.SUBMITTED)
            payment.screenshot_url = stored.url
            payment.screenshot_filename = stored.filename
            payment.manual_reference = None
            payment.admin_action = None
            payment.verified_by = None
            payment.verified_at = None
            payment.verification_notes = None
            payment.attempt_count += 1
            payment.last_attempt_at = now
            payment.submitted_at = now
            payment.expires_at = now + self.expiry_window
            payment.notification_sent_to_admin = False
            payment.notification_sent_to_customer = False
            self._apply_analysis(payment, analysis, reference)

            OrderStore.mark_payment_submitted(order, reference, stored.url)
            AuditService.log(
                db, order.id, "PAYMENT_RESUBMITTED",
                actor=payment.user_id,
                payment_id=payment.id,
                payload=self._audit_payload(payment, analysis),
            )
            db.commit()
            db.refresh(payment)

            logger.info(
                "Payment for order %s resubmitted (attempt %d/%d, %s)",
                order.id, payment.attempt_count, self.max_attempts, payment.status,
            )
            return SubmissionOutcome(payment=payment, analysis=analysis, replaced_screenshot=replaced)

    def submit_manual_reference(self, db: Session, order: Order, reference: str) -> SubmissionOutcome:
        """Attach a customer-typed reference when OCR could not find one.

        Raises:
            PaymentNotFound, InvalidStateTransition, NoReferenceFound, DuplicateReference
        """
        with self.locks.hold(order.id):
            payment = self._require_by_order(db, order.id)
            self.refresh_expiry(db, payment)

            if payment.state != PaymentStatus.UTR_DETECTION_FAILED:
                raise InvalidStateTransition(
                    payment.status, PaymentStatus.PENDING_VERIFICATION.value,
                    "Manual reference entry is only available when the reference could not be detected",
                )

            clean = sanitize_reference(reference)
            valid, reason = validate_upi_reference(clean)
            if not valid:
                raise NoReferenceFound(f"Invalid transaction reference: {reason}", stage="validation")

            self.ensure_reference_available(db, clean, exclude_order_id=order.id)

            payment.manual_reference = clean
            transition(payment, PaymentStatus.PENDING_VERIFICATION)
            OrderStore.mark_payment_submitted(order, clean, payment.screenshot_url)
            AuditService.log(
                db, order.id, "MANUAL_REFERENCE_SUBMITTED",
                actor=payment.user_id,
                payment_id=payment.id,
                payload={"manual_reference": clean},
            )
            db.commit()
            db.refresh(payment)

            logger.info("Manual reference recorded for order %s", order.id)
            return SubmissionOutcome(payment=payment)

    # ─── Admin operations ────────────────────────────────────────────

    def verify_payment(
        self,
        db: Session,
        payment_id: int,
        action: VerificationAction,
        admin_id: str,
        notes: Optional[str] = None,
    ) -> VerificationOutcome:
        """Approve or reject a payment awaiting verification.

        Raises:
            PaymentNotFound, InvalidStateTransition
        """
        action = VerificationAction(action)
        payment = db.get(UpiPayment, payment_id)
        if not payment:
            raise PaymentNotFound("Payment record not found")

        with self.locks.hold(payment.order_id):
            db.refresh(payment)
            self.refresh_expiry(db, payment)

            target = PaymentStatus.VERIFIED if action == VerificationAction.APPROVE else PaymentStatus.REJECTED
            transition(
                payment, target,
                f"Cannot verify payment with status: {payment.status}. Expected: pending_verification",
            )
            payment.admin_action = (
                AdminAction.APPROVED.value if action == VerificationAction.APPROVE else AdminAction.REJECTED.value
            )
            payment.verified_by = admin_id
            payment.verification_notes = notes or None
            payment.verified_at = self.clock()

            order = OrderStore.find(db, payment.order_id)
            if order is None:
                logger.warning("Order %s for payment %s is missing from the order store", payment.order_id, payment.id)
            elif action == VerificationAction.APPROVE:
                OrderStore.mark_payment_verified(order, payment.reference)
            else:
                OrderStore.mark_payment_rejected(order, notes)

            AuditService.log(
                db, payment.order_id,
                "PAYMENT_VERIFIED" if action == VerificationAction.APPROVE else "PAYMENT_REJECTED",
                actor=admin_id,
                payment_id=payment.id,
                payload={"action": action.value, "reference": payment.reference, "notes": notes or ""},
                metadata={"notes": notes or ""},
            )
            db.commit()
            db.refresh(payment)

            logger.info("Payment %s %s by admin %s", payment.id, payment.status, admin_id)
            return VerificationOutcome(payment=payment, order=order, action=action, max_attempts=self.max_attempts)

    # ─── Read surface ────────────────────────────────────────────────

    def get_payment_status(self, db: Session, order_id: str) -> dict:
        payment = self.find_by_order(db, order_id)
        if not payment:
            return {"has_payment": False, "order_id": order_id, "message": "No payment found for this order"}

        with self.locks.hold(order_id):
            db.refresh(payment)
            self.refresh_expiry(db, payment)

        return {
            "has_payment": True,
            "payment_id": payment.id,
            "order_id": payment.order_id,
            "status": payment.status,
            "reference": payment.reference,
            "amount": payment.amount,
            "submitted_at": payment.submitted_at,
            "verified_at": payment.verified_at,
            "admin_notes": payment.verification_notes,
            "attempts": payment.attempt_count,
            "max_attempts": self.max_attempts,
            "expires_at": payment.expires_at,
            "is_expired": payment.state == PaymentStatus.EXPIRED,
        }

    def list_payments(
        self, db: Session, status: str = PaymentStatus.PENDING_VERIFICATION.value, limit: int = 20, offset: int = 0
    ) -> dict:
        """Admin queue, newest submissions first."""
        self.expire_overdue(db)

        query = (
            db.query(UpiPayment, Order)
            .outerjoin(Order, Order.id == UpiPayment.order_id)
            .filter(UpiPayment.status == status)
        )
        total = query.count()
        rows = query.order_by(UpiPayment.submitted_at.desc()).offset(offset).limit(limit).all()

        return {
            "payments": [
                {
                    "payment_id": payment.id,
                    "order_id": payment.order_id,
                    "customer_name": order.customer_name if order else None,
                    "customer_email": order.customer_email if order else None,
                    "amount": payment.amount,
                    "reference": payment.reference,
                    "reference_confidence": payment.reference_confidence,
                    "status": payment.status,
                    "submitted_at": payment.submitted_at,
                    "expires_at": payment.expires_at,
                    "screenshot_url": payment.screenshot_url,
                    "attempt_count": payment.attempt_count,
                }
                for payment, order in rows
            ],
            "pagination": {
                "total": total,
                "limit": limit,
                "offset": offset,
                "has_more": offset + limit < total,
            },
        }

    def get_statistics(self, db: Session) -> dict:
        counts = dict(
            db.query(UpiPayment.status, func.count(UpiPayment.id)).group_by(UpiPayment.status).all()
        )
        total = sum(counts.values())
        verified = counts.get(PaymentStatus.VERIFIED.value, 0)
        verified_amount = (
            db.query(func.sum(UpiPayment.amount))
            .filter(UpiPayment.status == PaymentStatus.VERIFIED.value)
            .scalar()
        )

        return {
            "total_payments": total,
            "verified_payments": verified,
            "pending_payments": counts.get(PaymentStatus.PENDING_VERIFICATION.value, 0),
            "rejected_payments": counts.get(PaymentStatus.REJECTED.value, 0),
            "failed_detections": counts.get(PaymentStatus.UTR_DETECTION_FAILED.value, 0),
            "expired_payments": counts.get(PaymentStatus.EXPIRED.value, 0),
            "verification_rate": round(verified / total * 100, 2) if total else 0.0,
            "total_verified_amount": float(verified_amount or 0),
        }

    # ─── Internals ───────────────────────────────────────────────────

    @staticmethod
    def _apply_analysis(payment: UpiPayment, analysis: ScreenshotAnalysis, reference: Optional[str]) -> None:
        payment.extracted_reference = reference
        payment.ocr_confidence = analysis.recognition.confidence
        payment.reference_confidence = analysis.extraction.confidence if reference else 0
        payment.reference_format = analysis.extraction.format if reference else None

        if reference:
            transition(payment, PaymentStatus.UTR_DETECTED)
            transition(payment, PaymentStatus.PENDING_VERIFICATION)
        else:
            transition(payment, PaymentStatus.UTR_DETECTION_FAILED)

    @staticmethod
    def _audit_payload(payment: UpiPayment, analysis: ScreenshotAnalysis) -> dict:
        return {
            "status": payment.status,
            "attempt": payment.attempt_count,
            "reference": payment.extracted_reference,
            "reference_format": payment.reference_format,
            "reference_confidence": payment.reference_confidence,
            "ocr_confidence": payment.ocr_confidence,
            "alternatives": analysis.extraction.alternatives,
            "screenshot_sha256": analysis.fingerprint,
        }
