"""
Evaluation Report Generator

Writes evaluation results as CSV (long and wide formats), JSON, and a
Jinja2-rendered markdown report.
"""

import csv
import json
import logging
import math
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

from jinja2 import Environment, FileSystemLoader

from utils.exceptions import ReportingError

from ..scoring.guidelines import Guideline
from .batch import AggregationTable, StatSummary
from .runner import EvaluationRun

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).parent / "templates"


def _fmt(value: float, digits: int = 3) -> str:
    if math.isnan(value):
        return "nan"
    return f"{value:.{digits}f}"


def _cell(stats: Optional[StatSummary]) -> str:
    if stats is None or stats.count == 0:
        return "n/a"
    return f"{_fmt(stats.average)}±{_fmt(stats.stddev)}"


def _sanitize_name(name: str) -> str:
    return re.sub(r"[^A-Za-z0-9._-]+", "_", name).strip("_") or "eval"


def write_stats_csv(table: AggregationTable, path: Path) -> Path:
    """Write the table in long format: column,guideline,average,stddev."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    with open(path, "w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(["column", "guideline", "average", "stddev"])
        for column, cells in table.items():
            for title, stats in cells.items():
                writer.writerow([column, title, _fmt(stats.average), _fmt(stats.stddev)])

    logger.info(f"Stats CSV saved to {path}")
    return path


def write_summary_csv(
    tables_by_file: Mapping[str, AggregationTable],
    guidelines: Sequence[Guideline],
    path: Path,
) -> Path:
    """Write a wide summary: one row per (file, column), one cell per guideline."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    with open(path, "w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(["file", "column"] + [g.title for g in guidelines])
        for file_name, table in tables_by_file.items():
            for column, cells in table.items():
                writer.writerow(
                    [file_name, column] + [_cell(cells.get(g.title)) for g in guidelines]
                )

    logger.info(f"Summary CSV saved to {path}")
    return path


def write_stats_json(data: Any, path: Path) -> Path:
    """Dump a table, report or run as JSON. NaN is written as null."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    if hasattr(data, "to_dict"):
        data = data.to_dict()
    elif isinstance(data, dict):
        data = {
            column: {
                title: s.to_dict() if isinstance(s, StatSummary) else s
                for title, s in cells.items()
            }
            for column, cells in data.items()
        }

    with open(path, "w", encoding="utf-8") as f:
        json.dump(_nan_to_none(data), f, indent=2, ensure_ascii=False, default=str)

    logger.info(f"Stats JSON saved to {path}")
    return path


def _nan_to_none(value: Any) -> Any:
    if isinstance(value, float) and math.isnan(value):
        return None
    if isinstance(value, dict):
        return {k: _nan_to_none(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_nan_to_none(v) for v in value]
    return value


@dataclass
class ReportConfig:
    """Configuration for report generation."""

    report_dir: Path = Path("./reports")
    formats: List[str] = field(default_factory=lambda: ["markdown", "json", "csv"])


class EvaluationReportGenerator:
    """Generates markdown, JSON and CSV reports for an EvaluationRun."""

    def __init__(self, config: Optional[ReportConfig] = None) -> None:
        self.config = config or ReportConfig()
        self._env = Environment(
            loader=FileSystemLoader(str(TEMPLATE_DIR)),
            trim_blocks=True,
            lstrip_blocks=True,
        )

    def generate(self, run: EvaluationRun) -> Dict[str, Path]:
        """Write every configured format.

        Returns:
            Mapping of format name to the written path.
        """
        try:
            self.config.report_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ReportingError(
                f"Cannot create report directory {self.config.report_dir}: {e}"
            ) from e

        timestamp_str = run.timestamp.strftime("%Y%m%d_%H%M%S")
        stem = f"eval_{_sanitize_name(run.request_config.request_id)}_{timestamp_str}"
        written: Dict[str, Path] = {}

        if "markdown" in self.config.formats:
            md_path = self.config.report_dir / f"{stem}.md"
            template = self._env.get_template("evaluation_report.md.j2")
            md_path.write_text(template.render(**self._build_context(run)), encoding="utf-8")
            logger.info(f"Evaluation report saved to {md_path}")
            written["markdown"] = md_path

        if "json" in self.config.formats:
            written["json"] = write_stats_json(run, self.config.report_dir / f"{stem}.json")

        if "csv" in self.config.formats:
            tables = {name: report.table for name, report in run.reports.items()}
            written["csv"] = write_summary_csv(
                tables,
                run.request_config.guidelines,
                self.config.report_dir / f"{stem}_summary.csv",
            )

        return written

    def _build_context(self, run: EvaluationRun) -> Dict[str, Any]:
        """Build Jinja2 template context from an EvaluationRun."""
        config = run.request_config

        files = []
        for name, report in run.reports.items():
            columns = []
            for column, cells in report.table.items():
                columns.append(
                    {
                        "name": column,
                        "rows": [
                            {
                                "guideline": title,
                                "average": _fmt(stats.average),
                                "stddev": _fmt(stats.stddev),
                                "count": stats.count,
                                "min": _fmt(stats.min),
                                "max": _fmt(stats.max),
                            }
                            for title, stats in cells.items()
                        ],
                    }
                )
            files.append(
                {
                    "name": name,
                    "columns": columns,
                    "calls": report.calls,
                    "failure_count": report.failure_count,
                    "failures": [f.to_dict() for f in report.failures[:20]],
                }
            )

        return {
            "request_id": config.request_id,
            "description": config.description,
            "timestamp": run.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
            "duration": f"{run.duration_seconds:.1f}",
            "provider": run.provider,
            "model": run.model,
            "mode": config.mode,
            "concurrency": config.concurrency,
            "include_substitutes": config.include_substitutes,
            "guidelines": [{"title": g.title, "instruction": g.instruction} for g in config.guidelines],
            "files": files,
            "failure_count": run.failure_count,
        }
