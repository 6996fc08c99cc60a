"""
Notification Service — Tells admins about new payment submissions and
customers about verification outcomes.

Every ``notify_*`` call is fire-and-forget: it runs after the payment
transition has been committed, and any failure is logged and swallowed.
Email/SMS transports are simulated and only log the outbound message.
"""
import logging
import time
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from upi_verify.config import get_settings
from upi_verify.models.notification import Notification
from upi_verify.models.order import Order
from upi_verify.models.payment import UpiPayment

logger = logging.getLogger(__name__)

ADMIN_RECIPIENT = "admin"


class NotificationService:

    @staticmethod
    def send_email(to: str, subject: str, body: str) -> Dict[str, Any]:
        """
        Simulates sending an email through a transactional mail provider.
        """
        logger.info("[EMAIL] To: %s | Subject: %s | Body: %s", to, subject, body[:120])
        return {
            "success": True,
            "provider": "MockMailer",
            "sid": f"EM{int(time.time())}X",
            "status": "queued",
        }

    @staticmethod
    def _record(
        db: Session,
        type_: str,
        recipient: str,
        title: str,
        message: str,
        related_data: Optional[dict] = None,
        priority: str = "normal",
        email_to: Optional[str] = None,
    ) -> Notification:
        notification = Notification(
            type=type_,
            recipient=recipient,
            title=title,
            message=message,
            related_data=related_data or {},
            priority=priority,
        )
        db.add(notification)

        if email_to and get_settings().NOTIFICATIONS_ENABLED:
            NotificationService.send_email(email_to, title, message)
        return notification

    @staticmethod
    def _dispatch(db: Session, label: str, fn) -> bool:
        try:
            fn()
            db.commit()
            return True
        except Exception:
            db.rollback()
            logger.exception("Notification '%s' failed; payment transition is unaffected", label)
            return False

    @staticmethod
    def notify_admin_payment_submitted(db: Session, payment: UpiPayment, order: Order) -> bool:
        def send():
            reference = payment.reference
            title = "New UPI Payment Submitted"
            utr_line = (
                f"UTR: {reference} (Confidence: {payment.reference_confidence or 0:.0f}%)"
                if reference else "UTR: Not detected - manual verification needed"
            )
            message = (
                f"Payment from {order.customer_name} ({order.customer_email})\n"
                f"Order: {order.id}\n"
                f"Amount: ₹{payment.amount}\n"
                f"{utr_line}\n"
                f"Attempt: {payment.attempt_count}"
            )
            NotificationService._record(
                db, "payment_submitted", ADMIN_RECIPIENT, title, message,
                related_data={
                    "payment_id": payment.id,
                    "order_id": order.id,
                    "customer_name": order.customer_name,
                    "amount": payment.amount,
                    "reference": reference,
                    "screenshot_url": payment.screenshot_url,
                },
                priority="high",
                email_to=get_settings().ADMIN_EMAIL,
            )
            payment.notification_sent_to_admin = True

        return NotificationService._dispatch(db, "admin_payment_submitted", send)

    @staticmethod
    def notify_customer_payment_submitted(db: Session, payment: UpiPayment, order: Order) -> bool:
        def send():
            reference = payment.reference
            if reference:
                message = (
                    f"Your payment of ₹{payment.amount} has been submitted with UTR: {reference}. "
                    "We will verify it within 24 hours."
                )
            else:
                message = (
                    f"Your payment of ₹{payment.amount} has been received. We couldn't automatically "
                    "detect the UTR from your screenshot. Please resubmit a clearer screenshot or "
                    "enter the reference manually."
                )
            NotificationService._record(
                db, "payment_received", order.user_id, "Payment Submitted", message,
                related_data={"payment_id": payment.id, "order_id": order.id, "utr_detected": bool(reference)},
                email_to=order.customer_email,
            )
            payment.notification_sent_to_customer = True

        return NotificationService._dispatch(db, "customer_payment_submitted", send)

    @staticmethod
    def notify_customer_payment_approved(db: Session, payment: UpiPayment, order: Order) -> bool:
        def send():
            message = (
                f"Your payment of ₹{payment.amount} has been verified successfully.\n"
                f"Your order #{order.id} is now confirmed and will be processed for shipment.\n"
                f"Transaction ID: {payment.reference}"
            )
            NotificationService._record(
                db, "order_confirmed", order.user_id, "Payment Verified & Order Confirmed!", message,
                related_data={"payment_id": payment.id, "order_id": order.id, "reference": payment.reference},
                priority="high",
                email_to=order.customer_email,
            )
            payment.notification_sent_to_customer = True

        return NotificationService._dispatch(db, "customer_payment_approved", send)

    @staticmethod
    def notify_customer_payment_rejected(
        db: Session, payment: UpiPayment, order: Order, retry_available: bool
    ) -> bool:
        def send():
            reason = payment.verification_notes or "Payment verification failed"
            follow_up = (
                "You can resubmit your payment. Please make sure the UTR is clearly visible in the screenshot."
                if retry_available else "Please contact our support team for assistance."
            )
            message = f"Your payment for order #{order.id} could not be verified.\nReason: {reason}\n{follow_up}"
            NotificationService._record(
                db, "payment_rejected", order.user_id, "Payment Verification Failed", message,
                related_data={"payment_id": payment.id, "order_id": order.id, "retry_available": retry_available},
                priority="high",
                email_to=order.customer_email,
            )
            payment.notification_sent_to_customer = True

        return NotificationService._dispatch(db, "customer_payment_rejected", send)
