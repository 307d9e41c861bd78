"""
Response Validator

Decodes the judge model's raw text against the expected score schema.
Decoding never raises: the result is either a decoded value (SingleScore,
MultiScore) or a DecodeError carrying the raw payload, and the metrics decide
what to substitute for a DecodeError.

Multi-guideline responses are tolerated per item: a malformed entry is dropped
and later filled in by reconcile(), while a missing or non-array `results`
rejects the whole response.
"""

import json
import logging
import math
from dataclasses import dataclass
from typing import Any, List, Sequence, Union

from .guidelines import Guideline
from .request_builder import SCORE_MAX, SCORE_MIN
from .results import GuidelineResult

logger = logging.getLogger(__name__)

NEUTRAL_SCORE = 5.0  # Midpoint of the 0-10 scale
MISSING_GUIDELINE_REASON = "This guideline was missing from LLM response"

SINGLE_KEYS = frozenset({"score", "reasons"})
ITEM_KEYS = frozenset({"title", "score", "reasons"})


@dataclass
class SingleScore:
    """A valid single-instruction response."""

    score: float
    reasons: List[str]


@dataclass
class MultiScore:
    """A valid multi-guideline response (items already filtered)."""

    results: List[GuidelineResult]
    dropped: int = 0  # Malformed items discarded during decoding


@dataclass
class DecodeError:
    """The response could not be decoded against the expected schema."""

    kind: str  # "empty", "invalid_json", "schema"
    message: str
    raw: str = ""


SingleDecode = Union[SingleScore, DecodeError]
MultiDecode = Union[MultiScore, DecodeError]


def _is_valid_score(value: Any) -> bool:
    # bool is an int subclass; true/false are not scores
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value) and SCORE_MIN <= value <= SCORE_MAX


def _is_string_list(value: Any) -> bool:
    return isinstance(value, list) and all(isinstance(v, str) for v in value)


def _parse_json(text: str) -> Union[Any, DecodeError]:
    if not text or not text.strip():
        return DecodeError("empty", "LLM returned empty response", raw=text or "")
    try:
        return json.loads(text)
    except (json.JSONDecodeError, TypeError, ValueError) as e:
        return DecodeError("invalid_json", f"Invalid JSON: {e}", raw=text)


def decode_single(text: str) -> SingleDecode:
    """Decode a {score, reasons} response."""
    parsed = _parse_json(text)
    if isinstance(parsed, DecodeError):
        return parsed

    if not isinstance(parsed, dict):
        return DecodeError("schema", "Response is not a JSON object", raw=text)

    extra = set(parsed) - SINGLE_KEYS
    if extra:
        return DecodeError("schema", f"Unexpected keys: {sorted(extra)}", raw=text)
    if not _is_valid_score(parsed.get("score")):
        return DecodeError(
            "schema", f"score must be a number in [{SCORE_MIN}, {SCORE_MAX}]", raw=text
        )
    if not _is_string_list(parsed.get("reasons")):
        return DecodeError("schema", "reasons must be an array of strings", raw=text)

    return SingleScore(score=float(parsed["score"]), reasons=list(parsed["reasons"]))


def _decode_item(item: Any) -> Union[GuidelineResult, None]:
    if not isinstance(item, dict) or set(item) - ITEM_KEYS:
        return None
    if not isinstance(item.get("title"), str):
        return None
    if not _is_valid_score(item.get("score")):
        return None
    if not _is_string_list(item.get("reasons")):
        return None
    return GuidelineResult(
        title=item["title"], score=float(item["score"]), reasons=list(item["reasons"])
    )


def decode_multi(text: str) -> MultiDecode:
    """Decode a {results: [{title, score, reasons}]} response."""
    parsed = _parse_json(text)
    if isinstance(parsed, DecodeError):
        return parsed

    if not isinstance(parsed, dict):
        return DecodeError("schema", "Response is not a JSON object", raw=text)
    extra = set(parsed) - {"results"}
    if extra:
        return DecodeError("schema", f"Unexpected keys: {sorted(extra)}", raw=text)

    items = parsed.get("results")
    if not isinstance(items, list) or not items:
        return DecodeError("schema", "Parsed response had empty results", raw=text)

    results: List[GuidelineResult] = []
    dropped = 0
    for item in items:
        decoded = _decode_item(item)
        if decoded is None:
            dropped += 1
            logger.warning(f"Dropping malformed result item: {item!r}")
            continue
        results.append(decoded)

    return MultiScore(results=results, dropped=dropped)


def reconcile(
    results: List[GuidelineResult], guidelines: Sequence[Guideline]
) -> List[GuidelineResult]:
    """Append a neutral placeholder for every requested guideline missing from results.

    Present entries are kept verbatim and in model order; placeholders are
    appended after them, so the final order need not match `guidelines`.
    """
    reconciled = list(results)
    present = {r.title for r in results}
    missing = [g for g in guidelines if g.title not in present]

    if missing:
        logger.warning(
            f"LLM returned results for {len(guidelines) - len(missing)} of "
            f"{len(guidelines)} guidelines"
        )
    for g in missing:
        logger.warning(f"Adding missing guideline: {g.title}")
        reconciled.append(
            GuidelineResult(
                title=g.title,
                score=NEUTRAL_SCORE,
                reasons=[MISSING_GUIDELINE_REASON],
                synthesized=True,
            )
        )
    return reconciled


def neutral_results(guidelines: Sequence[Guideline], reason: str) -> List[GuidelineResult]:
    """One synthesized midpoint result per guideline, in guideline order."""
    return [
        GuidelineResult(title=g.title, score=NEUTRAL_SCORE, reasons=[reason], synthesized=True)
        for g in guidelines
    ]
