"""
UPI Payment Routes — Screenshot submission, status tracking and admin verification.
"""
from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, Header, HTTPException, UploadFile
from sqlalchemy.orm import Session

from upi_verify.config import get_settings
from upi_verify.database import get_db
from upi_verify.dependencies import get_lifecycle_manager
from upi_verify.errors import UploadRejected
from upi_verify.models.payment import PaymentStatus
from upi_verify.schemas.schemas import (
    ManualReferenceRequest, OcrSummary, PaymentStatisticsResponse, PaymentStatusResponse,
    PaymentSubmissionData, PaymentSubmissionResponse, PendingPaymentsResponse, UpiConfigData,
    UpiConfigResponse, VerifyPaymentData, VerifyPaymentRequest, VerifyPaymentResponse,
)
from upi_verify.services.notification_service import NotificationService
from upi_verify.services.order_store import OrderStore
from upi_verify.services.payment_lifecycle import PaymentLifecycleManager, SubmissionOutcome, VerificationAction
from upi_verify.services.screenshot_pipeline import ScreenshotUpload
from upi_verify.services.upi_config_service import UpiConfigService
from upi_verify.utils.rate_limiter import rate_limit
from upi_verify.utils.validators import format_reference_for_display

settings = get_settings()

router = APIRouter(prefix="/api/upi-payments", tags=["UPI Payments"])

upload_throttle = rate_limit(requests=settings.UPLOAD_RATE_LIMIT, window=settings.UPLOAD_RATE_WINDOW)

RECEIPT_REFERENCE = {
    "title": "Sample UPI Payment Receipt",
    "utr_location": "Usually appears at the bottom or in a dedicated 'Reference' section",
    "common_labels": ["UTR:", "Reference No:", "Transaction ID:", "Ref:", "TXN ID:"],
    "example": {
        "utr": "320524N00124567",
        "format": "12-20 character alphanumeric code",
        "appearance": "Typically in smaller font at bottom of receipt",
    },
}


def _read_single_upload(files: List[UploadFile]) -> ScreenshotUpload:
    """Exactly one file per submission; reads at most one byte past the size cap."""
    if len(files) != 1:
        raise UploadRejected("Exactly one screenshot must be uploaded per submission")

    upload = files[0]
    content = upload.file.read(settings.MAX_UPLOAD_BYTES + 1)
    return ScreenshotUpload(
        filename=upload.filename or "",
        content_type=upload.content_type or "",
        content=content,
    )


def _submission_data(
    outcome: SubmissionOutcome, manager: PaymentLifecycleManager, instructions: Optional[UpiConfigData] = None
) -> PaymentSubmissionData:
    payment = outcome.payment
    reference = payment.reference
    ocr = None
    alternatives = []
    if outcome.analysis:
        recognition = outcome.analysis.recognition
        ocr = OcrSummary(
            text=recognition.text,
            confidence=round(recognition.confidence),
            line_count=len(recognition.lines),
        )
        alternatives = outcome.analysis.extraction.alternatives

    return PaymentSubmissionData(
        payment_id=payment.id,
        order_id=payment.order_id,
        status=payment.status,
        utr_detected=outcome.reference_detected,
        utr=reference,
        utr_display=format_reference_for_display(reference) if reference else None,
        reference_format=payment.reference_format,
        reference_confidence=round(payment.reference_confidence or 0),
        alternatives=alternatives,
        attempts=payment.attempt_count,
        attempts_remaining=max(0, manager.max_attempts - payment.attempt_count),
        expires_at=payment.expires_at,
        ocr_data=ocr,
        payment_instructions=instructions,
    )


@router.get("/config", response_model=UpiConfigResponse)
def get_upi_config(db: Session = Depends(get_db)):
    """UPI destination customers pay to."""
    config = UpiConfigService.require_active(db)
    return UpiConfigResponse(data=UpiConfigData(**UpiConfigService.to_dict(config)))


@router.get("/receipt-reference")
def get_receipt_reference():
    """Where the transaction reference usually appears on a payment receipt."""
    return {"success": True, "data": RECEIPT_REFERENCE}


@router.post("/upload", response_model=PaymentSubmissionResponse, status_code=201)
def upload_payment_screenshot(
    order_id: str = Form(...),
    screenshot: List[UploadFile] = File(...),
    user_id: str = Header(..., alias="user-id"),
    db: Session = Depends(get_db),
    manager: PaymentLifecycleManager = Depends(get_lifecycle_manager),
    _throttle: bool = Depends(upload_throttle),
):
    """Upload a payment screenshot and extract its transaction reference."""
    order = OrderStore.get_for_user(db, order_id, user_id)
    config = UpiConfigService.require_active(db)
    instructions = UpiConfigData(**UpiConfigService.to_dict(config))

    upload = _read_single_upload(screenshot)
    outcome = manager.create_payment(db, order, user_id, upload, upi_id=config.upi_id)

    NotificationService.notify_admin_payment_submitted(db, outcome.payment, order)
    NotificationService.notify_customer_payment_submitted(db, outcome.payment, order)

    return PaymentSubmissionResponse(
        message=(
            "Payment screenshot processed successfully"
            if outcome.reference_detected
            else "Screenshot received, but no transaction reference could be detected"
        ),
        data=_submission_data(outcome, manager, instructions),
    )


@router.post("/resubmit", response_model=PaymentSubmissionResponse)
def resubmit_payment(
    background_tasks: BackgroundTasks,
    order_id: str = Form(...),
    screenshot: List[UploadFile] = File(...),
    user_id: str = Header(..., alias="user-id"),
    db: Session = Depends(get_db),
    manager: PaymentLifecycleManager = Depends(get_lifecycle_manager),
    _throttle: bool = Depends(upload_throttle),
):
    """Resubmit a screenshot after a failed detection or a rejection."""
    order = OrderStore.get_for_user(db, order_id, user_id)
    upload = _read_single_upload(screenshot)
    outcome = manager.resubmit_payment(db, order, upload)

    if outcome.replaced_screenshot:
        background_tasks.add_task(manager.storage.delete, outcome.replaced_screenshot)

    NotificationService.notify_admin_payment_submitted(db, outcome.payment, order)
    NotificationService.notify_customer_payment_submitted(db, outcome.payment, order)

    return PaymentSubmissionResponse(
        message="Payment resubmitted successfully",
        data=_submission_data(outcome, manager),
    )


@router.post("/manual-reference", response_model=PaymentSubmissionResponse)
def submit_manual_reference(
    payload: ManualReferenceRequest,
    user_id: str = Header(..., alias="user-id"),
    db: Session = Depends(get_db),
    manager: PaymentLifecycleManager = Depends(get_lifecycle_manager),
):
    """Type in the transaction reference when it could not be read from the screenshot."""
    order = OrderStore.get_for_user(db, payload.order_id, user_id)
    outcome = manager.submit_manual_reference(db, order, payload.reference)

    NotificationService.notify_admin_payment_submitted(db, outcome.payment, order)

    return PaymentSubmissionResponse(
        message="Transaction reference submitted for verification",
        data=_submission_data(outcome, manager),
    )


@router.get("/status/{order_id}", response_model=PaymentStatusResponse)
def get_payment_status(
    order_id: str,
    user_id: str = Header(..., alias="user-id"),
    db: Session = Depends(get_db),
    manager: PaymentLifecycleManager = Depends(get_lifecycle_manager),
):
    """Current verification status of an order's payment."""
    OrderStore.get_for_user(db, order_id, user_id)
    return PaymentStatusResponse(data=manager.get_payment_status(db, order_id))


# ─── Admin ───────────────────────────────────────────────────────────

@router.post("/verify", response_model=VerifyPaymentResponse)
def verify_payment(
    payload: VerifyPaymentRequest,
    admin_id: str = Header(..., alias="admin-id"),
    db: Session = Depends(get_db),
    manager: PaymentLifecycleManager = Depends(get_lifecycle_manager),
):
    """Approve or reject a payment awaiting verification."""
    outcome = manager.verify_payment(
        db, payload.payment_id, VerificationAction(payload.action), admin_id, payload.notes
    )
    payment, order = outcome.payment, outcome.order

    if order is not None:
        if outcome.action == VerificationAction.APPROVE:
            NotificationService.notify_customer_payment_approved(db, payment, order)
        else:
            NotificationService.notify_customer_payment_rejected(
                db, payment, order, retry_available=outcome.retry_available
            )

    return VerifyPaymentResponse(
        message=f"Payment {'approved' if outcome.action == VerificationAction.APPROVE else 'rejected'} successfully",
        data=VerifyPaymentData(
            payment_id=payment.id,
            order_id=payment.order_id,
            status=payment.status,
            action=payment.admin_action,
            verified_by=payment.verified_by,
            verified_at=payment.verified_at,
            order_status=order.order_status if order else None,
            payment_status=order.payment_status if order else None,
        ),
    )


@router.get("/admin/pending", response_model=PendingPaymentsResponse)
def list_pending_payments(
    status: str = PaymentStatus.PENDING_VERIFICATION.value,
    limit: int = 20,
    offset: int = 0,
    admin_id: str = Header(..., alias="admin-id"),
    db: Session = Depends(get_db),
    manager: PaymentLifecycleManager = Depends(get_lifecycle_manager),
):
    """Payments awaiting an admin decision (or any other status via ``status``)."""
    if status not in {s.value for s in PaymentStatus}:
        raise HTTPException(status_code=400, detail=f"Unknown payment status: {status}")
    if limit < 1 or limit > 100 or offset < 0:
        raise HTTPException(status_code=400, detail="limit must be 1-100 and offset non-negative")

    return manager.list_payments(db, status=status, limit=limit, offset=offset)


@router.get("/admin/statistics", response_model=PaymentStatisticsResponse)
def get_payment_statistics(
    admin_id: str = Header(..., alias="admin-id"),
    db: Session = Depends(get_db),
    manager: PaymentLifecycleManager = Depends(get_lifecycle_manager),
):
    """Aggregate payment verification metrics."""
    return manager.get_statistics(db)
