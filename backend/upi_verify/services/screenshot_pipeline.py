"""
Screenshot Pipeline — upload validation → preprocessing → OCR → reference extraction.
"""
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from upi_verify.config import get_settings
from upi_verify.errors import UploadRejected
from upi_verify.services.image_preprocessor import ImagePreprocessor
from upi_verify.services.ocr_engine import RecognitionResult, TextRecognitionEngine, find_keyword_contexts
from upi_verify.services.reference_extractor import ExtractionResult, ReferenceExtractor
from upi_verify.utils.hashing import fingerprint_bytes

logger = logging.getLogger(__name__)


@dataclass
class ScreenshotUpload:
    filename: str
    content_type: str
    content: bytes

    @property
    def size(self) -> int:
        return len(self.content)


@dataclass
class ScreenshotAnalysis:
    recognition: RecognitionResult
    extraction: ExtractionResult
    fingerprint: str
    keyword_contexts: List[dict] = field(default_factory=list)

    @property
    def reference(self) -> Optional[str]:
        return self.extraction.reference if self.extraction.found else None


def validate_upload(upload: Optional[ScreenshotUpload]) -> None:
    """Check the upload against the boundary rules: whitelist type, size cap."""
    settings = get_settings()

    if upload is None or not upload.content:
        raise UploadRejected("No screenshot provided")

    if upload.size > settings.MAX_UPLOAD_BYTES:
        raise UploadRejected(
            f"File size exceeds {settings.MAX_UPLOAD_BYTES // (1024 * 1024)}MB limit "
            f"(Current: {upload.size / 1024 / 1024:.2f}MB)",
            status_code=413,
        )

    if upload.content_type not in settings.ALLOWED_IMAGE_TYPES:
        raise UploadRejected("Invalid file type. Allowed: JPEG, PNG, WebP")


class ScreenshotPipeline:
    """Runs one screenshot through preprocessing, recognition and extraction.

    Preprocessing and extraction are stateless; the recognition engine
    serializes its own calls.
    """

    def __init__(
        self,
        engine: TextRecognitionEngine,
        preprocessor: Optional[ImagePreprocessor] = None,
        extractor: Optional[ReferenceExtractor] = None,
    ):
        self.engine = engine
        self.preprocessor = preprocessor or ImagePreprocessor()
        self.extractor = extractor or ReferenceExtractor()

    def process(self, upload: ScreenshotUpload) -> ScreenshotAnalysis:
        """
        Raises:
            UploadRejected, PreprocessingFailed, RecognitionFailed
        """
        validate_upload(upload)

        normalized = self.preprocessor.preprocess(upload.content)
        recognition = self.engine.recognize(normalized)
        extraction = self.extractor.extract(recognition.text)
        contexts = find_keyword_contexts(recognition.text)

        if extraction.found:
            logger.info(
                "Reference %s detected (format=%s, confidence=%s, alternatives=%s)",
                extraction.reference, extraction.format, extraction.confidence, extraction.alternatives,
            )
        else:
            logger.info(
                "No reference detected: %s (%d keyword lines seen)", extraction.reason, len(contexts)
            )

        return ScreenshotAnalysis(
            recognition=recognition,
            extraction=extraction,
            fingerprint=fingerprint_bytes(upload.content),
            keyword_contexts=contexts,
        )
