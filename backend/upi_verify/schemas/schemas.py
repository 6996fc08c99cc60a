"""
Pydantic Schemas — Request & Response models for API validation.
"""
from datetime import datetime
from typing import Optional, Dict, List, Literal
from pydantic import BaseModel, Field


# ──────────────── UPI Destination ────────────────

class UpiConfigData(BaseModel):
    upi_id: str
    merchant_name: Optional[str] = None
    qr_code_image: Optional[str] = None
    instructions: Optional[str] = None


class UpiConfigResponse(BaseModel):
    success: bool = True
    data: UpiConfigData


class UpiConfigUpdateRequest(BaseModel):
    upi_id: Optional[str] = Field(None, description="Merchant VPA, e.g. merchant@upi")
    merchant_name: Optional[str] = None
    qr_code_image: Optional[str] = Field(None, description="QR image as base64 payload or URL")
    instructions: Optional[str] = None


# ──────────────── Submission ────────────────

class OcrSummary(BaseModel):
    text: str
    confidence: int
    line_count: int


class PaymentSubmissionData(BaseModel):
    payment_id: int
    order_id: str
    status: str
    utr_detected: bool
    utr: Optional[str] = None
    utr_display: Optional[str] = None
    reference_format: Optional[str] = None
    reference_confidence: int = 0
    alternatives: List[str] = []
    attempts: int
    attempts_remaining: int
    expires_at: datetime
    ocr_data: Optional[OcrSummary] = None
    payment_instructions: Optional[UpiConfigData] = None


class PaymentSubmissionResponse(BaseModel):
    success: bool = True
    message: str
    data: PaymentSubmissionData


class ManualReferenceRequest(BaseModel):
    order_id: str
    reference: str = Field(..., min_length=10, max_length=32, description="UTR as shown in the UPI app")


# ──────────────── Status ────────────────

class PaymentStatusData(BaseModel):
    has_payment: bool
    order_id: str
    payment_id: Optional[int] = None
    status: Optional[str] = None
    reference: Optional[str] = None
    amount: Optional[float] = None
    submitted_at: Optional[datetime] = None
    verified_at: Optional[datetime] = None
    admin_notes: Optional[str] = None
    attempts: Optional[int] = None
    max_attempts: Optional[int] = None
    expires_at: Optional[datetime] = None
    is_expired: bool = False
    message: Optional[str] = None


class PaymentStatusResponse(BaseModel):
    success: bool = True
    data: PaymentStatusData


# ──────────────── Admin Verification ────────────────

class VerifyPaymentRequest(BaseModel):
    payment_id: int
    action: Literal["approve", "reject"]
    notes: Optional[str] = Field(None, max_length=1000)


class VerifyPaymentData(BaseModel):
    payment_id: int
    order_id: str
    status: str
    action: str
    verified_by: str
    verified_at: datetime
    order_status: Optional[str] = None
    payment_status: Optional[str] = None


class VerifyPaymentResponse(BaseModel):
    success: bool = True
    message: str
    data: VerifyPaymentData


class PendingPayment(BaseModel):
    payment_id: int
    order_id: str
    customer_name: Optional[str] = None
    customer_email: Optional[str] = None
    amount: float
    reference: Optional[str] = None
    reference_confidence: Optional[float] = None
    status: str
    submitted_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    screenshot_url: Optional[str] = None
    attempt_count: int


class Pagination(BaseModel):
    total: int
    limit: int
    offset: int
    has_more: bool


class PendingPaymentsResponse(BaseModel):
    payments: List[PendingPayment]
    pagination: Pagination


class PaymentStatisticsResponse(BaseModel):
    total_payments: int
    verified_payments: int
    pending_payments: int
    rejected_payments: int
    failed_detections: int
    expired_payments: int
    verification_rate: float
    total_verified_amount: float


# ──────────────── Audit ────────────────

class AuditLogEntry(BaseModel):
    id: int
    order_id: str
    payment_id: Optional[int] = None
    actor: Optional[str] = None
    action: str
    payload_hash: Optional[str] = None
    timestamp: datetime
    log_metadata: Optional[Dict] = None

    class Config:
        from_attributes = True


# ──────────────── Generic ────────────────

class ErrorResponse(BaseModel):
    detail: str
    error_code: Optional[str] = None
    stage: Optional[str] = None
