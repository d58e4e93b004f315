"""Turn a free-form model completion into a validated ``ScoreReport``.

The completion provider is asked for strict JSON but routinely wraps it in
markdown fences, adds a sentence of preamble, returns scores as strings or
leaves fields out entirely. Everything short of "there is no JSON object in
here" is absorbed by per-field defaults; only that case raises
``MalformedCompletion``.
"""

import json
import logging
import math
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple

from .schemas import Badge, ScoreReport, ScoreWeights

logger = logging.getLogger(__name__)

DEFAULT_SCORE = 50

FALLBACK_INTERPRETATION = "Your online presence shows potential for growth."
FALLBACK_SUMMARY = (
    "Your online presence demonstrates solid fundamentals. The primary "
    "opportunity lies in strengthening the clarity of your positioning and "
    "value proposition."
)
FALLBACK_ACTIONS = (
    "Refine homepage messaging to clearly state who you help and the "
    "transformation you create",
    "Add client testimonials with specific results to build credibility",
    "Ensure consistent branding and active presence across your social platforms",
)

# First matching threshold wins, so keep this sorted descending.
BADGE_THRESHOLDS = (
    (85, Badge.EXCEPTIONAL),
    (70, Badge.STRONG),
    (55, Badge.SOLID_FOUNDATION),
    (40, Badge.NEEDS_REFINEMENT),
    (0, Badge.REQUIRES_ATTENTION),
)

# Older prompt variants used different keys for the narrative fields.
FIELD_ALIASES: Dict[str, Tuple[str, ...]] = {
    "interpretation": ("interpretation", "strategicAudit"),
    "summary": ("summary", "designAnalysis"),
    "actions": ("actions",),
}


class MalformedCompletion(Exception):
    """Raised when no JSON object can be recovered from a completion."""

    def __init__(self, message: str, text: str):
        super().__init__(message)
        self.text = text


def extract_json_object(text: str) -> Dict[str, Any]:
    """Return the JSON object embedded in ``text``.

    The substring from the first ``{`` to the last ``}`` is tried first, which
    drops code fences and any prose around the payload. If that does not parse
    (e.g. trailing prose contains a brace) the first balanced object starting
    at the first ``{`` is decoded instead.
    """
    text = text or ""
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end < start:
        raise MalformedCompletion("Completion contains no JSON object.", text)

    # Integers are read as floats: a 5000-digit score becomes inf (and is
    # defaulted) instead of tripping the int conversion limit.
    decoder = json.JSONDecoder(parse_int=float)
    try:
        parsed = decoder.decode(text[start:end + 1])
    except (ValueError, RecursionError):
        try:
            parsed, _ = decoder.raw_decode(text, start)
        except (ValueError, RecursionError) as exc:
            reason = getattr(exc, "msg", type(exc).__name__)
            raise MalformedCompletion(
                f"Completion is not valid JSON: {reason}", text
            ) from exc

    if not isinstance(parsed, dict):
        raise MalformedCompletion("Completion JSON is not an object.", text)
    return parsed


def _round_half_up(value: Decimal) -> int:
    return int(value.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def _as_decimal(value: Any) -> Optional[Decimal]:
    # bool is an int subclass; a literal true/false is not a score.
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        if isinstance(value, float) and not math.isfinite(value):
            return None
        return Decimal(str(value))
    if isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
        if not math.isfinite(number):
            return None
        return Decimal(str(number))
    return None


def _valid_score(value: Any) -> Optional[int]:
    number = _as_decimal(value)
    if number is None or number < 0 or number > 100:
        return None
    return _round_half_up(number)


def coerce_score(value: Any) -> int:
    """Integer score in [0, 100]; anything unusable or out of range becomes 50."""
    score = _valid_score(value)
    return DEFAULT_SCORE if score is None else score


def compute_overall(
    clarity: int, credibility: int, visibility: int, weights: ScoreWeights
) -> int:
    total = (
        clarity * Decimal(str(weights.clarity))
        + credibility * Decimal(str(weights.credibility))
        + visibility * Decimal(str(weights.visibility))
    )
    return max(0, min(100, _round_half_up(total)))


def derive_badge(overall: int) -> Badge:
    for threshold, badge in BADGE_THRESHOLDS:
        if overall >= threshold:
            return badge
    return Badge.REQUIRES_ATTENTION


def _usable_text(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _usable_actions(value: Any) -> Optional[Tuple[str, ...]]:
    if isinstance(value, (list, tuple)):
        actions = tuple(
            item.strip() for item in value if isinstance(item, str) and item.strip()
        )
        if actions:
            return actions
    return None


def _first_usable(data: Mapping[str, Any], keys: Sequence[str], coerce) -> Any:
    """Value of the first alias that survives ``coerce``; blank ones are skipped."""
    for key in keys:
        value = coerce(data.get(key))
        if value is not None:
            return value
    return None


def normalize(
    raw_text: str,
    weights: ScoreWeights,
    aliases: Mapping[str, Sequence[str]] = FIELD_ALIASES,
) -> ScoreReport:
    data = extract_json_object(raw_text)

    scores = {}
    for field in ("clarity", "credibility", "visibility"):
        score = _valid_score(data.get(field))
        if score is None:
            logger.warning("Defaulted %s score (got %r)", field, data.get(field))
            score = DEFAULT_SCORE
        scores[field] = score

    overall = compute_overall(
        scores["clarity"], scores["credibility"], scores["visibility"], weights
    )

    interpretation = _first_usable(
        data, aliases.get("interpretation", ("interpretation",)), _usable_text
    )
    summary = _first_usable(data, aliases.get("summary", ("summary",)), _usable_text)
    actions = _first_usable(data, aliases.get("actions", ("actions",)), _usable_actions)

    return ScoreReport(
        clarity=scores["clarity"],
        credibility=scores["credibility"],
        visibility=scores["visibility"],
        overall=overall,
        badge=derive_badge(overall),
        interpretation=interpretation or FALLBACK_INTERPRETATION,
        summary=summary or FALLBACK_SUMMARY,
        actions=actions or FALLBACK_ACTIONS,
    )
