"""
Scoring Module

LLM-judged compliance scoring of texts against natural-language guidelines.

Components:
- request_builder: Prompt and JSON schema construction for the judge call
- validator: Tagged decoding of judge responses and result reconciliation
- compliance: Single-instruction and multi-guideline metrics
- guidelines: Guideline type and YAML loading

Usage:
    from reply_eval.scoring import GuidelinesComplianceMetric, load_guidelines

    guidelines = load_guidelines(Path("configs/guidelines.yaml"))
    metric = GuidelinesComplianceMetric(provider)
    measurement = await metric.measure_all(guidelines, reply_text)
    for result in measurement.info.results:
        print(result.title, result.score)
"""

from .compliance import (
    ComplianceMetric,
    GuidelinesComplianceMetric,
    InstructionComplianceMetric,
    MultiMeasurement,
)
from .guidelines import Guideline, load_guidelines, validate_guidelines
from .request_builder import (
    MULTI_SCORE_SCHEMA,
    SEPARATOR,
    SINGLE_SCORE_SCHEMA,
    ScoringRequest,
    ScoringRequestBuilder,
)
from .results import (
    GuidelineResult,
    MultiResult,
    NoSamples,
    Outcome,
    Scored,
    ScoreResult,
    SeeDetail,
)
from .validator import DecodeError, MultiScore, SingleScore, decode_multi, decode_single, reconcile

__all__ = [
    # Metrics
    "ComplianceMetric",
    "InstructionComplianceMetric",
    "GuidelinesComplianceMetric",
    "MultiMeasurement",
    # Guidelines
    "Guideline",
    "load_guidelines",
    "validate_guidelines",
    # Requests
    "ScoringRequest",
    "ScoringRequestBuilder",
    "SEPARATOR",
    "SINGLE_SCORE_SCHEMA",
    "MULTI_SCORE_SCHEMA",
    # Results
    "ScoreResult",
    "GuidelineResult",
    "MultiResult",
    "Outcome",
    "Scored",
    "NoSamples",
    "SeeDetail",
    # Decoding
    "DecodeError",
    "SingleScore",
    "MultiScore",
    "decode_single",
    "decode_multi",
    "reconcile",
]
