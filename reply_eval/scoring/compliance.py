"""
Instruction Compliance Metrics

LLM-judged scores for how well a text follows natural-language instructions.

- InstructionComplianceMetric: one instruction per model call, score in [0, 1].
- GuidelinesComplianceMetric: every guideline of a set in a single model call,
  raw 0-10 scores per guideline.

Neither metric raises on model failure. Transport errors, empty responses and
schema violations become substitute values (0 for the single path, the 0-10
midpoint per guideline for the multi path) tagged with a diagnostic, so a
caller can tell "the text violates the guideline" from "scoring failed".

Usage:
    from reply_eval.scoring import InstructionComplianceMetric

    metric = InstructionComplianceMetric(provider)
    result = await metric.measure("Do not use emoji.", reply_text)
    print(result.score, result.reasons)
"""

import logging
import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence

from ..providers.base import BaseProvider, GenerationResponse
from .guidelines import Guideline
from .request_builder import SCORE_MAX, ScoringRequest, ScoringRequestBuilder
from .results import MultiResult, Outcome, ScoreResult, SeeDetail
from .validator import (
    DecodeError,
    decode_multi,
    decode_single,
    neutral_results,
    reconcile,
)

logger = logging.getLogger(__name__)

MIN_TEXT_LENGTH = 10

EMPTY_RESPONSE_REASON = "LLM returned empty response"
PARSE_FAILURE_REASON = "Failed to parse LLM response"
CALL_FAILURE_REASON = "LLM call failed"


def _failure_reason(decoded: DecodeError) -> str:
    if decoded.kind == "empty":
        return EMPTY_RESPONSE_REASON
    if decoded.kind == "invalid_json":
        return PARSE_FAILURE_REASON
    return decoded.message


class ComplianceMetric(ABC):
    """Common interface: score one instruction against one text."""

    def __init__(self, provider: BaseProvider, builder: Optional[ScoringRequestBuilder] = None):
        """
        Args:
            provider: Judge model provider.
            builder: Request builder (token caps, temperature).
        """
        self.provider = provider
        self.builder = builder or ScoringRequestBuilder()

    @abstractmethod
    async def measure(self, instruction: str, text: str) -> ScoreResult:
        """Score `text` against `instruction`, normalized to [0, 1]. Never raises."""
        ...

    async def _call(self, request: ScoringRequest) -> GenerationResponse:
        """Run the model call; transport failures are raised as exceptions."""
        response = await self.provider.generate_chat(
            request.messages, config=request.generation_config()
        )
        if response.error is not None:
            raise RuntimeError(response.error)
        return response


class InstructionComplianceMetric(ComplianceMetric):
    """Single-instruction compliance judged on 0-10 and normalized to [0, 1]."""

    async def measure(self, instruction: str, text: str) -> ScoreResult:
        request = self.builder.build_single(instruction, text)

        try:
            response = await self._call(request)
        except Exception as e:
            logger.error(f"{CALL_FAILURE_REASON}: {e}")
            return ScoreResult(score=0.0, error=f"{CALL_FAILURE_REASON}: {e}")

        decoded = decode_single(response.text)
        if isinstance(decoded, DecodeError):
            logger.warning(f"Falling back to score 0: {decoded.message}")
            return ScoreResult(
                score=0.0, raw=decoded.raw, error=f"{_failure_reason(decoded)} ({decoded.kind})"
            )

        return ScoreResult(score=decoded.score / SCORE_MAX, reasons=decoded.reasons)


@dataclass
class MultiMeasurement:
    """Result of GuidelinesComplianceMetric.measure_all.

    `score` is always NaN: per-guideline scores live in `info.results`
    (0-10 scale, not rescaled).
    """

    info: MultiResult
    score: float = math.nan
    error: Optional[str] = None  # Set when every result is a substitute
    raw: Optional[str] = None

    @property
    def outcome(self) -> Outcome:
        return SeeDetail(self.info)

    def to_dict(self) -> Dict[str, Any]:
        data = {"score": self.score, "info": self.info.to_dict()}
        if self.error is not None:
            data["error"] = self.error
        return data


class GuidelinesComplianceMetric(ComplianceMetric):
    """Scores a whole guideline set against one text in a single model call."""

    async def measure_all(self, guidelines: Sequence[Guideline], text: str) -> MultiMeasurement:
        """Score every guideline; always returns one result per guideline."""
        if len(text) < MIN_TEXT_LENGTH:
            logger.warning(
                f"Text is too short ({len(text)} chars), may result in poor evaluation"
            )

        request = self.builder.build_multi(guidelines, text)

        try:
            response = await self._call(request)
        except Exception as e:
            logger.error(f"{CALL_FAILURE_REASON}: {e}")
            reason = f"{CALL_FAILURE_REASON}: {e}"
            return MultiMeasurement(
                info=MultiResult(neutral_results(guidelines, reason)), error=reason
            )

        decoded = decode_multi(response.text)
        if isinstance(decoded, DecodeError):
            reason = _failure_reason(decoded)
            logger.error(f"{reason}, falling back to default scores")
            return MultiMeasurement(
                info=MultiResult(neutral_results(guidelines, reason)),
                error=reason,
                raw=decoded.raw,
            )

        return MultiMeasurement(info=MultiResult(reconcile(decoded.results, guidelines)))

    async def measure(self, instruction: str, text: str) -> ScoreResult:
        """Single-instruction convenience: one guideline, first result rescaled to [0, 1]."""
        guideline = Guideline(title=instruction, instruction=instruction)
        measurement = await self.measure_all([guideline], text)

        if not measurement.info.results:
            return ScoreResult(score=0.0, error="No result returned")

        first = measurement.info.results[0]
        return ScoreResult(
            score=first.score / SCORE_MAX,
            reasons=list(first.reasons),
            raw=measurement.raw,
            error=(first.reasons[0] if first.reasons else "Substituted result")
            if first.synthesized
            else None,
        )
