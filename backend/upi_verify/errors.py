"""
Pipeline Errors — Typed failures raised by the payment verification pipeline.

Every error carries the pipeline ``stage`` it came from so callers can tell
"try again with a clearer photo" apart from "contact support". The FastAPI app
renders them through a single exception handler (see ``main.py``).
"""
from typing import Optional


class PaymentPipelineError(Exception):
    """Base class for all pipeline failures."""

    error_code: str = "PAYMENT_PIPELINE_ERROR"
    status_code: int = 400
    stage: str = "pipeline"

    def __init__(self, message: str, stage: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if stage:
            self.stage = stage

    def to_dict(self) -> dict:
        return {"detail": self.message, "error_code": self.error_code, "stage": self.stage}


class UploadRejected(PaymentPipelineError):
    error_code = "UPLOAD_REJECTED"
    stage = "validation"

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code


class PreprocessingFailed(PaymentPipelineError):
    error_code = "PREPROCESSING_FAILED"
    status_code = 422
    stage = "preprocessing"


class RecognitionFailed(PaymentPipelineError):
    error_code = "RECOGNITION_FAILED"
    status_code = 422
    stage = "ocr"


class NoReferenceFound(PaymentPipelineError):
    error_code = "NO_REFERENCE_FOUND"
    status_code = 422
    stage = "extraction"


class DuplicateReference(PaymentPipelineError):
    error_code = "DUPLICATE_REFERENCE"
    status_code = 409
    stage = "duplicate_check"

    def __init__(self, reference: str, existing_order_id: Optional[str] = None):
        super().__init__(
            "This transaction reference has already been used for another payment. "
            "Please check your screenshot and try again."
        )
        self.reference = reference
        self.existing_order_id = existing_order_id


class RetryLimitExceeded(PaymentPipelineError):
    error_code = "RETRY_LIMIT_EXCEEDED"
    status_code = 403
    stage = "lifecycle"

    def __init__(self, max_attempts: int):
        super().__init__(
            f"Maximum retry attempts ({max_attempts}) exceeded. Please contact support."
        )
        self.max_attempts = max_attempts


class InvalidStateTransition(PaymentPipelineError):
    error_code = "INVALID_STATE_TRANSITION"
    status_code = 409
    stage = "lifecycle"

    def __init__(self, current: str, target: str, message: Optional[str] = None):
        super().__init__(message or f"Cannot move payment from '{current}' to '{target}'")
        self.current = current
        self.target = target


class PaymentAlreadyExists(PaymentPipelineError):
    error_code = "PAYMENT_ALREADY_EXISTS"
    status_code = 409
    stage = "lifecycle"


class PaymentNotFound(PaymentPipelineError):
    error_code = "PAYMENT_NOT_FOUND"
    status_code = 404
    stage = "lookup"


class OrderNotFound(PaymentPipelineError):
    error_code = "ORDER_NOT_FOUND"
    status_code = 404
    stage = "lookup"


class DestinationNotConfigured(PaymentPipelineError):
    error_code = "UPI_NOT_CONFIGURED"
    status_code = 503
    stage = "configuration"
