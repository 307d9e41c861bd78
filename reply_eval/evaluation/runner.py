"""
Evaluation Runner

Orchestrates an evaluation request: reads each CSV file, scores the
configured columns against the guideline set with a BatchEvaluator, and
collects the per-file reports. All files share one admission gate, so the
concurrency limit holds across the whole request.
"""

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

from utils.admission_gate import AdmissionGate
from utils.logging_config import StepTimer

from ..providers.base import BaseProvider
from ..scoring.compliance import (
    ComplianceMetric,
    GuidelinesComplianceMetric,
    InstructionComplianceMetric,
)
from ..workflows.reviews import read_rows
from .batch import BatchEvaluator, BatchReport
from .config import EvalRequestConfig

logger = logging.getLogger(__name__)


@dataclass
class EvaluationRun:
    """Results of one evaluation request, keyed by CSV file name."""

    request_config: EvalRequestConfig
    reports: Dict[str, BatchReport] = field(default_factory=dict)
    provider: str = ""
    model: str = ""
    timestamp: datetime = field(default_factory=datetime.now)
    duration_seconds: float = 0.0

    @property
    def failure_count(self) -> int:
        return sum(r.failure_count for r in self.reports.values())

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict."""
        return {
            "request": self.request_config.to_dict(),
            "provider": self.provider,
            "model": self.model,
            "timestamp": self.timestamp.isoformat(),
            "duration_seconds": self.duration_seconds,
            "failure_count": self.failure_count,
            "files": {name: report.to_dict() for name, report in self.reports.items()},
        }


class EvaluationRunner:
    """Runs an EvalRequestConfig against one judge provider."""

    def __init__(self, provider: BaseProvider, gate: Optional[AdmissionGate] = None) -> None:
        self.provider = provider
        self.gate = gate

    def _metric(self, mode: str) -> ComplianceMetric:
        if mode == "multi":
            return GuidelinesComplianceMetric(self.provider)
        return InstructionComplianceMetric(self.provider)

    async def run(self, config: EvalRequestConfig) -> EvaluationRun:
        """Evaluate every CSV file in the request, one after another."""
        start_time = time.time()
        gate = self.gate or AdmissionGate(config.concurrency)

        evaluator = BatchEvaluator(
            self._metric(config.mode),
            mode=config.mode,
            gate=gate,
            include_substitutes=config.include_substitutes,
        )

        run = EvaluationRun(
            request_config=config,
            provider=self.provider.provider_type.name.lower(),
            model=self.provider.model,
        )

        for csv_path in config.csv_files:
            rows = read_rows(csv_path)
            # Per-file peak; the concurrency limit itself stays shared
            gate.reset()
            with StepTimer(f"evaluate {csv_path.name}", logger):
                run.reports[csv_path.name] = await evaluator.run(
                    rows, config.columns, config.guidelines
                )

        run.duration_seconds = time.time() - start_time
        logger.info(
            f"Evaluation {config.request_id} finished in {run.duration_seconds:.1f}s "
            f"({run.failure_count} failed measurements)"
        )
        return run
