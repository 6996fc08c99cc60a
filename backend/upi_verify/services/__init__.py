from upi_verify.services.audit_service import AuditService
from upi_verify.services.image_preprocessor import ImagePreprocessor
from upi_verify.services.ocr_engine import TextRecognitionEngine
from upi_verify.services.reference_extractor import ReferenceExtractor, extract_reference
from upi_verify.services.screenshot_pipeline import ScreenshotPipeline
from upi_verify.services.screenshot_storage import ScreenshotStorage
from upi_verify.services.payment_lifecycle import PaymentLifecycleManager

__all__ = [
    "AuditService",
    "ImagePreprocessor",
    "TextRecognitionEngine",
    "ReferenceExtractor",
    "extract_reference",
    "ScreenshotPipeline",
    "ScreenshotStorage",
    "PaymentLifecycleManager",
]
