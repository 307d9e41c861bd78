"""
Evaluation Module

Batch compliance evaluation of CSV reply exports against a guideline set.

Usage:
    from reply_eval.evaluation import EvalRequestConfig, EvaluationRunner

    config = EvalRequestConfig.from_yaml(Path("configs/eval_request_example.yaml"))
    run = await EvaluationRunner(provider).run(config)
    EvaluationReportGenerator().generate(run)
"""

from .batch import (
    AggregationTable,
    BatchEvaluator,
    BatchFailure,
    BatchReport,
    StatSummary,
    compute_stats,
)
from .config import EvalRequestConfig
from .report import (
    EvaluationReportGenerator,
    ReportConfig,
    write_stats_csv,
    write_stats_json,
    write_summary_csv,
)
from .runner import EvaluationRun, EvaluationRunner

__all__ = [
    "AggregationTable",
    "BatchEvaluator",
    "BatchFailure",
    "BatchReport",
    "StatSummary",
    "compute_stats",
    "EvalRequestConfig",
    "EvaluationRun",
    "EvaluationRunner",
    "EvaluationReportGenerator",
    "ReportConfig",
    "write_stats_csv",
    "write_stats_json",
    "write_summary_csv",
]
