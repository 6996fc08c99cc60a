"""
OCR Engine — Tesseract text recognition for payment screenshots.

A single ``TextRecognitionEngine`` is owned by the application (created in the
FastAPI lifespan and stored on ``app.state``). It initializes the Tesseract
runtime on first use, serializes every recognition call through a lock, and
is shut down explicitly when the app stops.
"""
import io
import logging
import threading
from dataclasses import dataclass, field
from typing import List, Optional

import pytesseract
from PIL import Image

from upi_verify.config import get_settings
from upi_verify.errors import RecognitionFailed

logger = logging.getLogger(__name__)

DEFAULT_KEYWORDS = ["utr", "reference", "txn", "transaction", "id", "ref no", "payment"]


@dataclass
class RecognitionResult:
    text: str
    confidence: float
    lines: List[str] = field(default_factory=list)


def split_lines(text: str) -> List[str]:
    """Split recognized text into trimmed, non-empty lines."""
    return [line.strip() for line in text.splitlines() if line.strip()]


def find_keyword_contexts(text: str, keywords: Optional[List[str]] = None) -> List[dict]:
    """Locate lines mentioning reference-related keywords, with neighbouring lines.
    Diagnostic only: used to explain where a reference was (or was not) seen.
    """
    search_keywords = keywords or DEFAULT_KEYWORDS
    lines = split_lines(text)
    matches = []

    for index, line in enumerate(lines):
        lowered = line.lower()
        for keyword in search_keywords:
            if keyword.lower() in lowered:
                matches.append({
                    "keyword": keyword,
                    "line": line,
                    "context": {
                        "before": lines[index - 1] if index > 0 else "",
                        "after": lines[index + 1] if index + 1 < len(lines) else "",
                    },
                    "line_index": index,
                })
    return matches


class TextRecognitionEngine:
    """Lazily-started, lock-guarded Tesseract worker."""

    def __init__(self, language: Optional[str] = None, tesseract_cmd: Optional[str] = None):
        settings = get_settings()
        self.language = language or settings.OCR_LANGUAGE
        self.tesseract_cmd = tesseract_cmd if tesseract_cmd is not None else settings.TESSERACT_CMD
        self._lock = threading.Lock()
        self._started = False
        self.version: Optional[str] = None

    @property
    def is_started(self) -> bool:
        return self._started

    def start(self) -> None:
        """Initialize the Tesseract runtime. Calling it again is a no-op."""
        with self._lock:
            self._start_locked()

    def _start_locked(self) -> None:
        if self._started:
            return

        logger.info("Initializing Tesseract engine (lang=%s)", self.language)
        if self.tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = self.tesseract_cmd
        try:
            self.version = str(pytesseract.get_tesseract_version())
            available = pytesseract.get_languages(config="")
        except (pytesseract.TesseractNotFoundError, pytesseract.TesseractError, OSError) as e:
            logger.error("Tesseract initialization failed: %s", e)
            raise RecognitionFailed("OCR service initialization failed") from e

        missing = [lang for lang in self.language.split("+") if lang not in available]
        if missing:
            raise RecognitionFailed(f"OCR language data not installed: {', '.join(missing)}")

        self._started = True
        logger.info("Tesseract engine ready (version %s)", self.version)

    def shutdown(self) -> None:
        """Release the engine. Repeated calls are no-ops."""
        with self._lock:
            if not self._started:
                return
            self._started = False
            logger.info("Tesseract engine shut down")

    def recognize(self, image_bytes: bytes) -> RecognitionResult:
        """Run OCR over a preprocessed screenshot.

        Returns:
            RecognitionResult with the text, the engine's mean word confidence
            (0-100) and the non-empty lines.

        Raises:
            RecognitionFailed: If the engine cannot start or the image cannot be analyzed.
        """
        with self._lock:
            self._start_locked()
            try:
                with Image.open(io.BytesIO(image_bytes)) as image:
                    data = pytesseract.image_to_data(
                        image, lang=self.language, output_type=pytesseract.Output.DICT
                    )
            except (pytesseract.TesseractError, OSError, ValueError) as e:
                logger.error("Text recognition failed: %s", e)
                raise RecognitionFailed("Failed to extract text from image") from e

        text, confidence = self._assemble(data)
        logger.info("Text extraction complete (confidence: %.2f%%)", confidence)
        return RecognitionResult(text=text, confidence=confidence, lines=split_lines(text))

    @staticmethod
    def _assemble(data: dict) -> tuple[str, float]:
        """Rebuild line-broken text and mean word confidence from ``image_to_data`` output."""
        lines: dict[tuple, List[str]] = {}
        confidences = []

        for i, word in enumerate(data.get("text", [])):
            word = (word or "").strip()
            if not word:
                continue
            key = (data["block_num"][i], data["par_num"][i], data["line_num"][i])
            lines.setdefault(key, []).append(word)

            conf = float(data["conf"][i])
            if conf >= 0:
                confidences.append(conf)

        text = "\n".join(" ".join(words) for words in lines.values())
        confidence = round(sum(confidences) / len(confidences), 2) if confidences else 0.0
        return text, confidence
