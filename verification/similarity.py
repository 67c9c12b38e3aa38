"""
Similarity & Scoring Primitives

Pure functions shared by both verification pipelines. Every function here is
total: malformed input degrades to a neutral or zero score, never an exception.
"""

import math
import re
from datetime import date, datetime
from typing import Any, Iterable, Optional, Set

from rapidfuzz import fuzz

from .config import (
    DATE_CLOSENESS_BEYOND,
    DATE_CLOSENESS_STEPS,
    NEUTRAL_SCORES,
    SKILL_NORMALIZATIONS,
    SMOOTH_DATE_HORIZON_MONTHS,
)

_PUNCTUATION_RE = re.compile(r"[^\w\s]|_")
_WHITESPACE_RE = re.compile(r"\s+")

_MONTHS = {
    "jan": 1, "feb": 2, "mar": 3, "apr": 4, "may": 5, "jun": 6,
    "jul": 7, "aug": 8, "sep": 9, "sept": 9, "oct": 10, "nov": 11, "dec": 12,
}
_OPEN_ENDED = {"present", "current", "now", "ongoing", "today", "till date", "to date"}

_COMPANY_SUFFIXES = {
    "inc", "incorporated", "corp", "corporation", "co", "company", "ltd", "limited",
    "llc", "llp", "plc", "gmbh", "ag", "sa", "pvt", "private", "group", "holdings",
}

_ISO_FULL_RE = re.compile(r"^(\d{4})[-/.](\d{1,2})[-/.](\d{1,2})(?:[t\s].*)?$")
_YEAR_MONTH_RE = re.compile(r"^(\d{4})[-/.](\d{1,2})$")
_MONTH_YEAR_RE = re.compile(r"^(\d{1,2})[-/.](\d{4})$")
_YEAR_RE = re.compile(r"^(\d{4})$")
_NAMED_MONTH_YEAR_RE = re.compile(r"^([a-z]+)\.?,?\s+(\d{4})$")
_DAY_NAMED_MONTH_YEAR_RE = re.compile(r"^(\d{1,2})\s+([a-z]+)\.?,?\s+(\d{4})$")
_NAMED_MONTH_DAY_YEAR_RE = re.compile(r"^([a-z]+)\.?\s+(\d{1,2}),?\s+(\d{4})$")


def _text(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


def _as_float(value: Any, default: float = 0.0) -> float:
    try:
        result = float(value)
    except (TypeError, ValueError):
        return default
    return default if math.isnan(result) else result


def clamp(value: Any, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, _as_float(value, low)))


def round_half_up(value: Any) -> int:
    """Round to the nearest integer with .5 going up (not banker's rounding)."""
    number = _as_float(value)
    if math.isinf(number):
        return 0
    return int(math.floor(number + 0.5))


def to_percent(fraction: Any) -> int:
    """Map a [0, 1] fraction to an integer score clamped to [0, 100]."""
    return max(0, min(100, round_half_up(clamp(fraction) * 100)))


def normalize_text(value: Any) -> str:
    """Lowercase, strip punctuation, collapse whitespace."""
    cleaned = _PUNCTUATION_RE.sub("", _text(value).lower())
    return _WHITESPACE_RE.sub(" ", cleaned).strip()


def tokenize(value: Any, min_length: int = 3) -> Set[str]:
    return {token for token in normalize_text(value).split() if len(token) >= min_length}


def jaccard(set_a: Set[str], set_b: Set[str]) -> float:
    if not set_a and not set_b:
        return 0.0
    union = set_a | set_b
    return len(set_a & set_b) / len(union)


def token_set_similarity(a: Any, b: Any, min_length: int = 3) -> float:
    """
    Jaccard similarity over lowercase, punctuation-stripped tokens longer
    than two characters. Symmetric; 0 when both token sets are empty.
    """
    return jaccard(tokenize(a, min_length), tokenize(b, min_length))


def normalize_skill(skill: Any) -> str:
    """Normalize skill name using predefined mappings."""
    skill_text = _text(skill).strip()
    return SKILL_NORMALIZATIONS.get(skill_text.lower(), skill_text)


def skill_set(skills: Any) -> Set[str]:
    """Comparable set of normalized, lowercased skill names."""
    if not skills or isinstance(skills, (str, bytes)):
        return set()
    try:
        items = list(skills)
    except TypeError:
        return set()
    result = set()
    for item in items:
        normalized = normalize_text(normalize_skill(item))
        if normalized:
            result.add(normalized)
    return result


def set_similarity(items_a: Any, items_b: Any) -> float:
    """Jaccard similarity between two skill-like lists."""
    return jaccard(skill_set(items_a), skill_set(items_b))


def coverage_ratio(source: Any, candidates: Any) -> float:
    """Share of ``source`` items found in ``candidates``; 0 when source is empty."""
    source_set = skill_set(source)
    if not source_set:
        return 0.0
    return len(source_set & skill_set(candidates)) / len(source_set)


def strip_company_suffixes(name: Any) -> str:
    tokens = [t for t in normalize_text(name).split() if t not in _COMPANY_SUFFIXES]
    return " ".join(tokens)


def company_similarity(a: Any, b: Any) -> float:
    """Token similarity on company names, tolerant of legal suffixes (Corp, Inc, Ltd)."""
    raw = token_set_similarity(a, b)
    stripped_a, stripped_b = strip_company_suffixes(a), strip_company_suffixes(b)
    if not stripped_a or not stripped_b:
        return raw
    return max(raw, token_set_similarity(stripped_a, stripped_b, min_length=1))


def fuzzy_ratio(a: Any, b: Any) -> float:
    """Character-level similarity in [0, 1]; 0 when either side is empty."""
    left, right = normalize_text(a), normalize_text(b)
    if not left or not right:
        return 0.0
    return clamp(fuzz.ratio(left, right) / 100.0)


def digits_only(value: Any) -> str:
    return "".join(ch for ch in _text(value) if ch.isdigit())


# ---------------------------------------------------------------------------
# Dates
# ---------------------------------------------------------------------------

def _safe_date(year: int, month: int = 1, day: int = 1) -> Optional[str]:
    if not 1900 <= year <= 2100:
        return None
    try:
        return date(year, month, day).isoformat()
    except ValueError:
        return None


def _month_number(name: str) -> Optional[int]:
    return _MONTHS.get(name[:4]) or _MONTHS.get(name[:3])


def normalize_date(value: Any) -> Optional[str]:
    """
    Normalize year-only, year-month, or full dates to ISO ``YYYY-MM-DD``
    (day defaults to the 1st). Unparseable, absent, or open-ended values
    ("Present") return None.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, int):
        return _safe_date(value)

    text = _text(value).strip().lower()
    if not text or text in _OPEN_ENDED:
        return None

    match = _ISO_FULL_RE.match(text)
    if match:
        return _safe_date(int(match.group(1)), int(match.group(2)), int(match.group(3)))
    match = _YEAR_MONTH_RE.match(text)
    if match:
        return _safe_date(int(match.group(1)), int(match.group(2)))
    match = _MONTH_YEAR_RE.match(text)
    if match:
        return _safe_date(int(match.group(2)), int(match.group(1)))
    match = _YEAR_RE.match(text)
    if match:
        return _safe_date(int(match.group(1)))
    match = _NAMED_MONTH_YEAR_RE.match(text)
    if match:
        month = _month_number(match.group(1))
        return _safe_date(int(match.group(2)), month) if month else None
    match = _DAY_NAMED_MONTH_YEAR_RE.match(text)
    if match:
        month = _month_number(match.group(2))
        return _safe_date(int(match.group(3)), month, int(match.group(1))) if month else None
    match = _NAMED_MONTH_DAY_YEAR_RE.match(text)
    if match:
        month = _month_number(match.group(1))
        return _safe_date(int(match.group(3)), month, int(match.group(2))) if month else None
    return None


def _month_index(value: Any) -> Optional[int]:
    normalized = normalize_date(value)
    if normalized is None:
        return None
    year, month = int(normalized[:4]), int(normalized[5:7])
    return year * 12 + (month - 1)


def month_difference(a: Any, b: Any) -> Optional[int]:
    """Absolute month gap between two dates, or None when either is unparseable."""
    index_a, index_b = _month_index(a), _month_index(b)
    if index_a is None or index_b is None:
        return None
    return abs(index_a - index_b)


def _missing_date_score(a: Any, b: Any) -> float:
    if normalize_date(a) is None and normalize_date(b) is None:
        return NEUTRAL_SCORES["both_dates_missing"]
    return NEUTRAL_SCORES["one_date_missing"]


def date_closeness(a: Any, b: Any) -> float:
    """Stepped closeness for a single date comparison (0 months -> 1.0, >6 months -> 0.1)."""
    months = month_difference(a, b)
    if months is None:
        return _missing_date_score(a, b)
    for max_gap, score in DATE_CLOSENESS_STEPS:
        if months <= max_gap:
            return score
    return DATE_CLOSENESS_BEYOND


def smooth_date_closeness(a: Any, b: Any) -> float:
    """Linear decay ``1 - months / 24`` used inside composite scores."""
    months = month_difference(a, b)
    if months is None:
        return _missing_date_score(a, b)
    return clamp(1.0 - months / SMOOTH_DATE_HORIZON_MONTHS)


def duration_months(start: Any, end: Any, as_of: Any = None) -> Optional[int]:
    """
    Length of a date range in months. An open end falls back to ``as_of``;
    returns None when the span cannot be measured.
    """
    start_index = _month_index(start)
    end_index = _month_index(end)
    if end_index is None:
        end_index = _month_index(as_of)
    if start_index is None or end_index is None or end_index < start_index:
        return None
    return end_index - start_index


def duration_closeness(span_a: Optional[int], span_b: Optional[int]) -> float:
    """Compare two spans in months; unmeasurable spans give the neutral constant."""
    if span_a is None or span_b is None:
        return NEUTRAL_SCORES["duration"]
    longest = max(span_a, span_b)
    if longest <= 0:
        return 1.0
    return clamp(1.0 - abs(span_a - span_b) / longest)


def weighted_average(values: Iterable[Any], weights: Iterable[Any]) -> float:
    """Sum(value * weight) / Sum(weight); 0 when the weights sum to zero."""
    try:
        pairs = [(_as_float(v), _as_float(w)) for v, w in zip(values, weights)]
    except TypeError:
        return 0.0
    total_weight = sum(w for _, w in pairs)
    if total_weight == 0:
        return 0.0
    return sum(v * w for v, w in pairs) / total_weight
