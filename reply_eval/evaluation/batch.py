"""
Batch Evaluator

Scores every (row, column, guideline) cell of a CSV-like table with a
compliance metric and aggregates the scores into per-column, per-guideline
average and population standard deviation.

Two modes:
- "single": one model call per (row, column, guideline).
- "multi": one model call per (row, column) covering all guidelines; the
  0-10 per-guideline scores are divided by 10.

All calls share one AdmissionGate, so at most `concurrency` are in flight.
Failed measurements (tagged substitutes or raised exceptions) are excluded
from the statistics and reported in BatchReport.failures.

Usage:
    evaluator = BatchEvaluator(GuidelinesComplianceMetric(provider), mode="multi")
    table = await evaluator.evaluate(rows, ["reply"], guidelines)
    print(table["reply"]["No emoji"].average)
"""

import asyncio
import logging
import math
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Sequence, Union

import numpy as np

from utils.admission_gate import DEFAULT_LIMIT, AdmissionGate
from utils.exceptions import ConfigError

from ..scoring.compliance import ComplianceMetric, GuidelinesComplianceMetric, MultiMeasurement
from ..scoring.guidelines import Guideline, validate_guidelines
from ..scoring.request_builder import SCORE_MAX
from ..scoring.results import Outcome, ScoreResult, outcome_from_value

logger = logging.getLogger(__name__)


def _cell_text(row: Mapping[str, Any], column: str) -> str:
    # Short CSV rows leave trailing cells as None
    value = row[column]
    return "" if value is None else str(value)


MODES = ("single", "multi")


@dataclass
class StatSummary:
    """Aggregate of one (column, guideline) cell. NaN fields when count == 0."""

    average: float
    stddev: float
    count: int = 0
    min: float = math.nan
    max: float = math.nan

    @property
    def outcome(self) -> Outcome:
        return outcome_from_value(self.average)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "average": self.average,
            "stddev": self.stddev,
            "count": self.count,
            "min": self.min,
            "max": self.max,
        }


# column -> guideline title -> stats, both in declaration order
AggregationTable = Dict[str, Dict[str, StatSummary]]


def compute_stats(scores: Sequence[float]) -> StatSummary:
    """Mean and population standard deviation of a score list.

    >>> compute_stats([2, 4, 4, 4, 5, 5, 7, 9]).stddev
    2.0
    """
    if not scores:
        return StatSummary(average=math.nan, stddev=math.nan, count=0)

    values = np.asarray(scores, dtype=float)
    return StatSummary(
        average=float(np.mean(values)),
        stddev=float(np.std(values)),
        count=len(values),
        min=float(np.min(values)),
        max=float(np.max(values)),
    )


@dataclass
class BatchFailure:
    """One measurement that produced no usable score."""

    column: str
    guideline: str
    row_index: int
    reason: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "column": self.column,
            "guideline": self.guideline,
            "row_index": self.row_index,
            "reason": self.reason,
        }


@dataclass
class BatchReport:
    """Aggregation table plus the measurements that were left out of it."""

    table: AggregationTable
    failures: List[BatchFailure] = field(default_factory=list)
    calls: int = 0
    peak_in_flight: int = 0

    @property
    def failure_count(self) -> int:
        return len(self.failures)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "table": {
                column: {title: stats.to_dict() for title, stats in cells.items()}
                for column, cells in self.table.items()
            },
            "failures": [f.to_dict() for f in self.failures],
            "calls": self.calls,
            "peak_in_flight": self.peak_in_flight,
        }


Row = Mapping[str, Any]
_Outcome = Union[ScoreResult, MultiMeasurement, BaseException]


class BatchEvaluator:
    """Concurrent compliance scoring over rows x columns x guidelines."""

    def __init__(
        self,
        metric: ComplianceMetric,
        mode: str = "single",
        concurrency: int = DEFAULT_LIMIT,
        gate: Optional[AdmissionGate] = None,
        include_substitutes: bool = False,
    ):
        """
        Args:
            metric: Metric used for every measurement.
            mode: "single" or "multi".
            concurrency: Admission limit, ignored when `gate` is given.
            gate: Shared admission gate.
            include_substitutes: Keep tagged fallback scores (0 or 5/10) in the
                statistics instead of excluding them. Raised exceptions are
                always excluded.
        """
        if mode not in MODES:
            raise ConfigError(f"Unknown evaluation mode: {mode!r} (expected one of {MODES})")
        if mode == "multi" and not isinstance(metric, GuidelinesComplianceMetric):
            raise ConfigError("multi mode requires a GuidelinesComplianceMetric")

        self.metric = metric
        self.mode = mode
        self.gate = gate or AdmissionGate(concurrency)
        self.include_substitutes = include_substitutes

    async def evaluate(
        self, rows: Sequence[Row], columns: Sequence[str], guidelines: Sequence[Guideline]
    ) -> AggregationTable:
        """Score all cells and return the aggregation table."""
        report = await self.run(rows, columns, guidelines)
        return report.table

    async def run(
        self, rows: Sequence[Row], columns: Sequence[str], guidelines: Sequence[Guideline]
    ) -> BatchReport:
        """Score all cells and return the table with failure details."""
        validate_guidelines(guidelines)
        self._check_columns(rows, columns)

        logger.info(
            f"Evaluating {len(rows)} rows x {len(columns)} columns x "
            f"{len(guidelines)} guidelines ({self.mode} mode, limit {self.gate.limit})"
        )

        if self.mode == "single":
            samples, failures, calls = await self._run_single(rows, columns, guidelines)
        else:
            samples, failures, calls = await self._run_multi(rows, columns, guidelines)

        table: AggregationTable = {}
        for column in columns:
            table[column] = {g.title: compute_stats(samples[column][g.title]) for g in guidelines}

        if failures:
            total = calls * self._cells_per_call(guidelines)
            logger.warning(f"{len(failures)} of {total} measurements failed")
        logger.info(f"Batch complete: {calls} calls, peak in flight {self.gate.peak_in_flight}")

        return BatchReport(
            table=table,
            failures=failures,
            calls=calls,
            peak_in_flight=self.gate.peak_in_flight,
        )

    def _cells_per_call(self, guidelines: Sequence[Guideline]) -> int:
        return len(guidelines) if self.mode == "multi" else 1

    @staticmethod
    def _check_columns(rows: Sequence[Row], columns: Sequence[str]) -> None:
        if not columns:
            raise ConfigError("No columns to evaluate")
        for index, row in enumerate(rows):
            missing = [c for c in columns if c not in row]
            if missing:
                raise ConfigError(f"Row {index} is missing column(s): {', '.join(missing)}")

    async def _admit(self, func: Callable[[], Awaitable[Any]]) -> Any:
        return await self.gate.run(func)

    @staticmethod
    async def _gather(coros: List[Awaitable[Any]]) -> List[_Outcome]:
        outcomes = await asyncio.gather(*coros, return_exceptions=True)
        for outcome in outcomes:
            if isinstance(outcome, BaseException) and not isinstance(outcome, Exception):
                raise outcome
        return outcomes

    def _empty_samples(
        self, columns: Sequence[str], guidelines: Sequence[Guideline]
    ) -> Dict[str, Dict[str, List[float]]]:
        return {c: {g.title: [] for g in guidelines} for c in columns}

    async def _run_single(self, rows, columns, guidelines):
        cells = [
            (column, guideline, index)
            for column in columns
            for guideline in guidelines
            for index in range(len(rows))
        ]
        outcomes = await self._gather(
            [
                self._admit(
                    lambda c=column, g=guideline, i=index: self.metric.measure(
                        g.instruction, _cell_text(rows[i], c)
                    )
                )
                for column, guideline, index in cells
            ]
        )

        samples = self._empty_samples(columns, guidelines)
        failures: List[BatchFailure] = []
        for (column, guideline, index), outcome in zip(cells, outcomes):
            if isinstance(outcome, BaseException):
                failures.append(BatchFailure(column, guideline.title, index, repr(outcome)))
                continue
            if outcome.failed:
                failures.append(BatchFailure(column, guideline.title, index, outcome.error))
                if not self.include_substitutes:
                    continue
            samples[column][guideline.title].append(outcome.score)

        return samples, failures, len(cells)

    async def _run_multi(self, rows, columns, guidelines):
        cells = [(column, index) for column in columns for index in range(len(rows))]
        outcomes = await self._gather(
            [
                self._admit(
                    lambda c=column, i=index: self.metric.measure_all(
                        guidelines, _cell_text(rows[i], c)
                    )
                )
                for column, index in cells
            ]
        )

        samples = self._empty_samples(columns, guidelines)
        failures: List[BatchFailure] = []
        for (column, index), outcome in zip(cells, outcomes):
            if isinstance(outcome, BaseException):
                for guideline in guidelines:
                    failures.append(BatchFailure(column, guideline.title, index, repr(outcome)))
                continue

            for guideline in guidelines:
                result = outcome.info.by_title(guideline.title)
                if result is None:
                    failures.append(BatchFailure(column, guideline.title, index, "No result"))
                    continue
                if result.synthesized:
                    reason = result.reasons[0] if result.reasons else "Substituted result"
                    failures.append(BatchFailure(column, guideline.title, index, reason))
                    if not self.include_substitutes:
                        continue
                samples[column][guideline.title].append(result.score / SCORE_MAX)

        return samples, failures, len(cells)
