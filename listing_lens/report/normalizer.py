"""
Purpose:
- Turn the model's raw reply into a ListingReport the front-end can trust.
- extract(): best-effort JSON object recovery (fence unwrap, direct parse, first-{ to last-} span).
- coerce(): total mapping from any JSON value onto a valid report (defaults, clamps, truncation, backfill).
- normalize(): extract + coerce, or ExtractionFailure with a bounded preview of the raw text.

Notes:
- No bracket balancing or quote repair; a reply that survives neither parse is a failure.
- coerce() never raises and is idempotent on its own output.
"""

from __future__ import annotations
import json
import logging
import math
import re
from typing import Any, Dict, List, Optional, Sequence

from ..core.errors import ExtractionFailure
from .schema import (
    LIST_MAX,
    QUESTIONS_MIN,
    SUMMARY_MAX,
    TITLE_MAX,
    VALUE_MAX,
    ListingReport,
)

logger = logging.getLogger(__name__)

ExtractedCandidate = Optional[Dict[str, Any]]

DEFAULT_TITLE = "Unknown Vehicle"
DEFAULT_SUMMARY = "No summary returned."
DEFAULT_VALUE = "Unknown"
DEFAULT_SCORE = 50
RAW_PREVIEW_CHARS = 2000

# Appended in this order when the model asks fewer than QUESTIONS_MIN questions
FALLBACK_QUESTIONS = (
    "Can you confirm the service history and provide receipts/logbook photos?",
    "Any accidents, repairs, paintwork, flood/hail damage, or insurance claims?",
    "Is there finance owing, and can we do a PPSR check / clear title confirmation?",
)

# Canonical key first; "mechanic_questions" is what the older multi-image prompt asked for
QUESTION_KEYS = ("questions_to_ask", "mechanic_questions")

_FENCE_RE = re.compile(r"\A\s*```[\w.+-]*[ \t]*\n?(.*?)\s*```\s*\Z", re.DOTALL)

# --- Extraction --------------------------------------------------------------

def unwrap_code_fence(text: str) -> str:
    """Return the body of a ```lang ... ``` block wrapping the whole text, else the stripped text."""
    m = _FENCE_RE.match(text)
    if m:
        return m.group(1).strip()
    return text.strip()

# Past Python's int/str digit limit; such literals parse as float (inf) instead
_MAX_INT_DIGITS = 4000

def _parse_int(literal: str) -> Any:
    if len(literal) > _MAX_INT_DIGITS:
        return float(literal)
    return int(literal)

def _parse_object(text: str) -> ExtractedCandidate:
    try:
        value = json.loads(text, parse_int=_parse_int)
    except (ValueError, RecursionError):
        return None
    return value if isinstance(value, dict) else None

def extract(raw: Optional[str]) -> ExtractedCandidate:
    if not raw:
        return None
    text = unwrap_code_fence(raw)

    candidate = _parse_object(text)
    if candidate is not None:
        return candidate

    # Models like to wrap valid JSON in chatter
    start = text.find("{")
    end = text.rfind("}")
    if start != -1 and end > start:
        return _parse_object(text[start:end + 1])
    return None

# --- Coercion ----------------------------------------------------------------

def _clean_text(text: str) -> str:
    """Rejoin escaped surrogate pairs and replace lone halves with U+FFFD."""
    return text.encode("utf-16", "surrogatepass").decode("utf-16", "replace")

def _as_text(value: Any) -> str:
    if isinstance(value, str):
        return _clean_text(value)
    try:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return _clean_text(json.dumps(value, ensure_ascii=False, separators=(",", ":"), default=str))
    except (TypeError, ValueError, RecursionError):
        return ""

def _text_or(value: Any, default: str, limit: int) -> str:
    text = _as_text(value)[:limit] if value else ""
    return text or default

def _as_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = value
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    if isinstance(number, float) and math.isnan(number):
        return None
    return number

def _score(value: Any) -> int:
    number = _as_number(value)
    if number is None:
        number = DEFAULT_SCORE
    return int(round(max(0, min(100, number))))

def _text_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [_as_text(item) for item in value[:LIST_MAX]]

def _first_list(fields: Dict[str, Any], keys: Sequence[str]) -> Any:
    for key in keys:
        if isinstance(fields.get(key), list):
            return fields[key]
    return None

def coerce(candidate: Any) -> ListingReport:
    fields: Dict[str, Any] = candidate if isinstance(candidate, dict) else {}

    questions = _text_list(_first_list(fields, QUESTION_KEYS))
    if len(questions) < QUESTIONS_MIN:
        questions = (questions + list(FALLBACK_QUESTIONS))[:LIST_MAX]

    return ListingReport(
        vehicle_title=_text_or(fields.get("vehicle_title"), DEFAULT_TITLE, TITLE_MAX),
        lens_score=_score(fields.get("lens_score")),
        summary=_text_or(fields.get("summary"), DEFAULT_SUMMARY, SUMMARY_MAX),
        market_value_estimate=_text_or(fields.get("market_value_estimate"), DEFAULT_VALUE, VALUE_MAX),
        red_flags=_text_list(fields.get("red_flags")),
        questions_to_ask=questions,
    )

# --- Pipeline entry ----------------------------------------------------------

def normalize(raw: Optional[str], preview_chars: int = RAW_PREVIEW_CHARS) -> ListingReport:
    """
    Recover and coerce the model's reply.
    Raises ExtractionFailure (carrying at most `preview_chars` of the raw text) when no object is found.
    """
    candidate = extract(raw)
    if candidate is None:
        raw = raw or ""
        logger.warning("No JSON object in model output (%d chars)", len(raw))
        logger.debug("Unparseable model output: %r", raw[:preview_chars])
        raise ExtractionFailure(raw=_clean_text(raw[:preview_chars]))
    return coerce(candidate)
