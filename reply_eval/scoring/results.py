"""
Result types shared by the compliance metrics and the batch evaluator.

Scores travel through two scales: the model answers on 0-10, the metrics
report 0-1. GuidelineResult keeps the raw 0-10 value; ScoreResult holds the
normalized one.

NaN appears in two places with different meanings (an empty sample set and
"read the per-guideline detail"), so each carrier also exposes an explicit
Outcome: Scored | NoSamples | SeeDetail.
"""

import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union


@dataclass
class ScoreResult:
    """One (instruction, text) measurement, score normalized to [0, 1]."""

    score: float
    reasons: List[str] = field(default_factory=list)
    raw: Optional[str] = None  # Model output, kept when scoring failed
    error: Optional[str] = None  # Diagnostic; set only for substituted scores

    @property
    def failed(self) -> bool:
        """True when score is a substitute value rather than a judgment."""
        return self.error is not None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"score": self.score, "reasons": list(self.reasons)}
        if self.raw is not None:
            data["raw"] = self.raw
        if self.error is not None:
            data["error"] = self.error
        return data


@dataclass
class GuidelineResult:
    """Per-guideline judgment from a multi-guideline call, score on 0-10."""

    title: str
    score: float
    reasons: List[str] = field(default_factory=list)
    synthesized: bool = False  # Substitute value (missing item or failed call)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "score": self.score,
            "reasons": list(self.reasons),
            "synthesized": self.synthesized,
        }


@dataclass
class MultiResult:
    """All per-guideline results of one multi-guideline measurement."""

    results: List[GuidelineResult] = field(default_factory=list)

    def by_title(self, title: str) -> Optional[GuidelineResult]:
        """First result with the given title, or None."""
        for result in self.results:
            if result.title == title:
                return result
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {"results": [r.to_dict() for r in self.results]}


# -- Outcome sum type ---------------------------------------------------------


@dataclass(frozen=True)
class Scored:
    """A defined numeric score."""

    value: float


@dataclass(frozen=True)
class NoSamples:
    """Nothing was measured; no signal."""


@dataclass(frozen=True)
class SeeDetail:
    """A single scalar cannot represent the outcome; read the detail."""

    detail: MultiResult


Outcome = Union[Scored, NoSamples, SeeDetail]


def outcome_from_value(value: float) -> Outcome:
    """Map a possibly-NaN aggregate to Scored or NoSamples."""
    if math.isnan(value):
        return NoSamples()
    return Scored(value)
