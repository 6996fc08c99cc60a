"""
Reference Extractor — Finds the UPI transaction reference (UTR) in OCR text.

Recognized text is scanned with an ordered table of pattern matchers. Each
match is validated, scored, de-duplicated and ranked; the best candidate is
returned together with the next two alternatives. The extractor is pure:
the same text always yields the same ranking.

Pattern order (also the tie-break order):

    explicit_label   "UTR: ...", "Ref No ...", "Transaction ID ..."   98
    upi_standard     16-character alphanumeric                         95
    upi_long         20-character alphanumeric                         85
    bank_transfer    T-<12 to 15 digits>                               90
    neft_rtgs        10 to 15 digits                                   70
    generic          10 to 20 character alphanumeric                   70
"""
import re
from dataclasses import dataclass, field
from typing import List, NamedTuple, Optional, Sequence

from upi_verify.utils.validators import is_valid_reference, normalize_text


class ReferencePattern(NamedTuple):
    format: str
    regex: re.Pattern
    base_confidence: int


EXPLICIT_LABEL = "explicit_label"
UPI_STANDARD = "upi_standard"
UPI_LONG = "upi_long"
BANK_TRANSFER = "bank_transfer"
NEFT_RTGS = "neft_rtgs"
GENERIC = "generic"

# Longer labels first so "REF NO" is not consumed as "REF".
_LABELS = (
    r"(?:TRANSACTION\s+ID|TXN\s+ID|UTR(?:\s+NO)?"
    r"|REF(?:ERENCE)?(?:[\s.]*(?:NO|NUMBER))?|TXN)"
)
# A reference token always carries at least one digit.
_HAS_DIGIT = r"(?=[A-Z0-9]*\d)"

REFERENCE_PATTERNS: Sequence[ReferencePattern] = (
    ReferencePattern(
        EXPLICIT_LABEL,
        re.compile(rf"\b{_LABELS}\b[\s:.#\-]+(?P<ref>{_HAS_DIGIT}[A-Z0-9]{{10,20}})\b"),
        98,
    ),
    ReferencePattern(UPI_STANDARD, re.compile(rf"\b(?P<ref>{_HAS_DIGIT}[A-Z0-9]{{16}})\b"), 95),
    ReferencePattern(UPI_LONG, re.compile(rf"\b(?P<ref>{_HAS_DIGIT}[A-Z0-9]{{20}})\b"), 85),
    ReferencePattern(BANK_TRANSFER, re.compile(r"\b(?P<ref>T-\d{12,15})\b"), 90),
    ReferencePattern(NEFT_RTGS, re.compile(r"(?<![\w-])(?P<ref>\d{10,15})\b"), 70),
    ReferencePattern(GENERIC, re.compile(rf"(?<![\w-])(?P<ref>{_HAS_DIGIT}[A-Z0-9]{{10,20}})\b"), 70),
)

MIXED_RUN_BONUS = 5
DATE_LIKE_PENALTY = 10
# Only an explicit label may reach the top confidence band.
UNLABELLED_CEILING = 97
MAX_ALTERNATIVES = 2

_MIXED_RUNS = re.compile(r"[A-Z]{2,}\d{2,}|\d{2,}[A-Z]{2,}")
_DIGIT_RUN = re.compile(r"\d+")
_PENALTY_EXEMPT = frozenset({EXPLICIT_LABEL, BANK_TRANSFER})


@dataclass(frozen=True)
class ReferenceCandidate:
    reference: str
    format: str
    confidence: int
    priority: int
    position: int


@dataclass
class ExtractionResult:
    found: bool
    reference: Optional[str] = None
    confidence: int = 0
    format: Optional[str] = None
    alternatives: List[str] = field(default_factory=list)
    candidates: List[ReferenceCandidate] = field(default_factory=list)
    reason: str = ""

    def to_dict(self) -> dict:
        return {
            "found": self.found,
            "reference": self.reference,
            "confidence": self.confidence,
            "format": self.format,
            "alternatives": list(self.alternatives),
            "reason": self.reason,
        }


def looks_date_like(value: str) -> bool:
    """True when the value carries an isolated 6-8 digit run (YYYYMMDD, DDMMYY, ...)."""
    return any(6 <= len(run) <= 8 for run in _DIGIT_RUN.findall(value))


def score_candidate(value: str, pattern: ReferencePattern) -> int:
    """Apply the format base confidence and the shape adjustments to one candidate."""
    confidence = pattern.base_confidence

    if _MIXED_RUNS.search(value):
        confidence += MIXED_RUN_BONUS

    if pattern.format not in _PENALTY_EXEMPT and looks_date_like(value):
        confidence -= DATE_LIKE_PENALTY

    if pattern.format != EXPLICIT_LABEL:
        confidence = min(confidence, UNLABELLED_CEILING)

    return max(0, min(confidence, 100))


class ReferenceExtractor:
    """Ranks transaction-reference candidates found in recognized text."""

    def __init__(self, patterns: Sequence[ReferencePattern] = REFERENCE_PATTERNS):
        self.patterns = tuple(patterns)

    def find_candidates(self, text: str) -> List[ReferenceCandidate]:
        """Every validated match from every pattern, de-duplicated, best first."""
        clean_text = normalize_text(text)
        best: dict[str, ReferenceCandidate] = {}

        for priority, pattern in enumerate(self.patterns):
            for match in pattern.regex.finditer(clean_text):
                value = match.group("ref").strip().upper()
                if not is_valid_reference(value):
                    continue

                candidate = ReferenceCandidate(
                    reference=value,
                    format=pattern.format,
                    confidence=score_candidate(value, pattern),
                    priority=priority,
                    position=match.start("ref"),
                )
                existing = best.get(value)
                if existing is None or candidate.confidence > existing.confidence:
                    best[value] = candidate

        return sorted(best.values(), key=lambda c: (-c.confidence, c.priority, c.position))

    def extract(self, text: Optional[str]) -> ExtractionResult:
        if not text or not isinstance(text, str):
            return ExtractionResult(found=False, reason="Invalid text input")

        candidates = self.find_candidates(text)
        if not candidates:
            return ExtractionResult(found=False, reason="No valid transaction reference found in text")

        primary = candidates[0]
        return ExtractionResult(
            found=True,
            reference=primary.reference,
            confidence=primary.confidence,
            format=primary.format,
            alternatives=[c.reference for c in candidates[1:1 + MAX_ALTERNATIVES]],
            candidates=candidates,
            reason=f"Found {len(candidates)} potential reference(s)",
        )


_default_extractor = ReferenceExtractor()


def extract_reference(text: Optional[str]) -> ExtractionResult:
    """Module-level shortcut using the default pattern table."""
    return _default_extractor.extract(text)
