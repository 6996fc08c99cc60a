from conftest import BLURRY_TEXT, make_upload
from upi_verify.models.notification import Notification
from upi_verify.services.notification_service import ADMIN_RECIPIENT, NotificationService
from upi_verify.services.payment_lifecycle import VerificationAction


def _submit(manager, db, order, text=None):
    if text is not None:
        manager.pipeline.engine.text = text
    return manager.create_payment(db, order, order.user_id, make_upload(), upi_id="merchant@okaxis").payment


def test_admin_is_told_about_new_submission(manager, db, make_order):
    order = make_order()
    payment = _submit(manager, db, order)

    assert NotificationService.notify_admin_payment_submitted(db, payment, order)

    notification = db.query(Notification).filter(Notification.recipient == ADMIN_RECIPIENT).one()
    assert notification.type == "payment_submitted"
    assert notification.priority == "high"
    assert "320524N00124567" in notification.message
    assert notification.related_data["order_id"] == order.id
    assert payment.notification_sent_to_admin


def test_customer_is_asked_to_resubmit_when_no_reference(manager, db, make_order):
    order = make_order()
    payment = _submit(manager, db, order, text=BLURRY_TEXT)

    NotificationService.notify_customer_payment_submitted(db, payment, order)

    notification = db.query(Notification).filter(Notification.recipient == order.user_id).one()
    assert "resubmit" in notification.message
    assert notification.related_data["utr_detected"] is False
    assert payment.notification_sent_to_customer


def test_rejection_message_depends_on_retry_availability(manager, db, make_order):
    order = make_order()
    payment = _submit(manager, db, order)
    manager.verify_payment(db, payment.id, VerificationAction.REJECT, "admin-1", "Amount mismatch")

    NotificationService.notify_customer_payment_rejected(db, payment, order, retry_available=False)

    notification = db.query(Notification).filter(Notification.type == "payment_rejected").one()
    assert "Amount mismatch" in notification.message
    assert "contact our support team" in notification.message


def test_approval_notification(manager, db, make_order):
    order = make_order()
    payment = _submit(manager, db, order)
    manager.verify_payment(db, payment.id, VerificationAction.APPROVE, "admin-1")

    NotificationService.notify_customer_payment_approved(db, payment, order)

    notification = db.query(Notification).filter(Notification.type == "order_confirmed").one()
    assert order.id in notification.message


def test_failed_notification_is_swallowed(manager, db, make_order, monkeypatch):
    order = make_order()
    payment = _submit(manager, db, order)

    def broken(*args, **kwargs):
        raise RuntimeError("mail relay down")

    monkeypatch.setattr(NotificationService, "_record", staticmethod(broken))

    assert NotificationService.notify_admin_payment_submitted(db, payment, order) is False
    assert db.query(Notification).count() == 0
    db.refresh(payment)
    assert payment.status == "pending_verification"
    assert not payment.notification_sent_to_admin


def test_send_email_is_simulated():
    result = NotificationService.send_email("asha@example.com", "Payment Submitted", "Body")

    assert result["success"]
    assert result["status"] == "queued"
