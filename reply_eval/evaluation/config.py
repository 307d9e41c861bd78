"""
Evaluation Request Configuration

Dataclass for a batch compliance evaluation request and its YAML loading.
CSV and guideline file references resolve relative to the YAML file.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from utils.admission_gate import DEFAULT_LIMIT
from utils.exceptions import ConfigError

from ..scoring.guidelines import Guideline, guidelines_from_data, load_guidelines
from .batch import MODES

logger = logging.getLogger(__name__)

OUTPUT_FORMATS = ("markdown", "json", "csv")


@dataclass
class EvalRequestConfig:
    """Complete evaluation request, loaded from YAML."""

    request_id: str
    csv_files: List[Path]
    columns: List[str]
    guidelines: List[Guideline]
    description: str = ""

    # Run
    mode: str = "multi"
    concurrency: int = DEFAULT_LIMIT
    include_substitutes: bool = False

    # Judge model; None means the environment defaults from config.py
    provider: Optional[str] = None
    model: Optional[str] = None

    # Output
    report_dir: Path = Path("./reports")
    formats: List[str] = field(default_factory=lambda: list(OUTPUT_FORMATS))

    @classmethod
    def from_yaml(cls, path: Path) -> "EvalRequestConfig":
        """Load an evaluation request from a YAML file.

        Raises:
            FileNotFoundError: The YAML file or a referenced file is missing.
            ConfigError: The YAML content is invalid.
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)

        if not isinstance(data, dict):
            raise ConfigError(f"Evaluation request must be a mapping: {path}")

        config_dir = path.parent

        # CSV inputs
        csv_files = []
        for name in _as_list(data.get("csv_files"), "csv_files"):
            csv_path = config_dir / name
            if not csv_path.exists():
                raise FileNotFoundError(f"CSV file not found: {csv_path}")
            csv_files.append(csv_path)
        if not csv_files:
            raise ConfigError("csv_files must list at least one file")

        columns = [str(c) for c in _as_list(data.get("columns"), "columns")]
        if not columns:
            raise ConfigError("columns must list at least one column")

        # Guidelines: inline list or a separate YAML file
        if "guidelines" in data and "guidelines_file" in data:
            raise ConfigError("Use either guidelines or guidelines_file, not both")
        if "guidelines_file" in data:
            guidelines = load_guidelines(config_dir / data["guidelines_file"])
        else:
            guidelines = guidelines_from_data(data.get("guidelines"))

        mode = data.get("mode", "multi")
        if mode not in MODES:
            raise ConfigError(f"Unknown mode {mode!r} (expected one of {MODES})")

        concurrency = data.get("concurrency", DEFAULT_LIMIT)
        if not isinstance(concurrency, int) or isinstance(concurrency, bool) or concurrency < 1:
            raise ConfigError(f"concurrency must be a positive integer, got {concurrency!r}")

        # Output section
        output = data.get("output", {}) or {}
        formats = [str(f) for f in _as_list(output.get("formats", list(OUTPUT_FORMATS)), "formats")]
        unknown = [f for f in formats if f not in OUTPUT_FORMATS]
        if unknown:
            raise ConfigError(f"Unknown output format(s): {', '.join(unknown)}")
        report_dir = Path(output.get("report_dir", "reports"))
        if not report_dir.is_absolute():
            report_dir = config_dir / report_dir

        config = cls(
            request_id=str(data.get("request_id") or path.stem),
            description=data.get("description", ""),
            csv_files=csv_files,
            columns=columns,
            guidelines=guidelines,
            mode=mode,
            concurrency=concurrency,
            include_substitutes=bool(data.get("include_substitutes", False)),
            provider=data.get("provider"),
            model=data.get("model"),
            report_dir=report_dir,
            formats=formats,
        )
        logger.debug(
            f"Loaded request {config.request_id}: {len(csv_files)} files, "
            f"{len(columns)} columns, {len(guidelines)} guidelines"
        )
        return config

    def to_dict(self) -> Dict[str, Any]:
        return {
            "request_id": self.request_id,
            "description": self.description,
            "csv_files": [str(p) for p in self.csv_files],
            "columns": list(self.columns),
            "guidelines": [{"title": g.title, "instruction": g.instruction} for g in self.guidelines],
            "mode": self.mode,
            "concurrency": self.concurrency,
            "include_substitutes": self.include_substitutes,
            "provider": self.provider,
            "model": self.model,
        }


def _as_list(value: Any, name: str) -> List[Any]:
    if value is None:
        return []
    if isinstance(value, (str, int)):
        return [value]
    if not isinstance(value, list):
        raise ConfigError(f"{name} must be a list")
    return value
