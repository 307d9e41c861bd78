"""
Guideline definitions and YAML loading.

A guideline is a named natural-language instruction used as a compliance
rubric. Guideline sets are static configuration: loaded once per run, and a
missing or malformed set is fatal.

YAML format:
    guidelines:
      - title: Tone and honorifics
        instruction: |
          Use polite, formal desu/masu style...
      - title: Emoji usage
        instruction: Do not use emoji.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, List

import yaml

from utils.exceptions import ConfigError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Guideline:
    """A named compliance instruction."""

    title: str
    instruction: str


def validate_guidelines(guidelines: Iterable[Guideline]) -> List[Guideline]:
    """Check a guideline set is non-empty with unique, non-blank titles.

    Raises:
        ConfigError: If the set is empty or titles are blank or duplicated.
    """
    items = list(guidelines)
    if not items:
        raise ConfigError("Guideline set is empty")

    seen = set()
    for g in items:
        if not g.title.strip():
            raise ConfigError("Guideline title must not be blank")
        if not g.instruction.strip():
            raise ConfigError(f"Guideline '{g.title}' has no instruction")
        if g.title in seen:
            raise ConfigError(f"Duplicate guideline title: '{g.title}'")
        seen.add(g.title)
    return items


def guidelines_from_data(data: Any) -> List[Guideline]:
    """Build guidelines from parsed YAML/JSON data (a list of mappings)."""
    if not isinstance(data, list):
        raise ConfigError("'guidelines' must be a list of {title, instruction} entries")

    guidelines = []
    for i, entry in enumerate(data):
        if not isinstance(entry, dict) or "title" not in entry or "instruction" not in entry:
            raise ConfigError(f"Guideline #{i + 1} must have 'title' and 'instruction'")
        guidelines.append(
            Guideline(title=str(entry["title"]).strip(), instruction=str(entry["instruction"]).strip())
        )
    return validate_guidelines(guidelines)


def load_guidelines(path: Path) -> List[Guideline]:
    """Load a guideline set from a YAML file.

    Raises:
        FileNotFoundError: If the file does not exist.
        ConfigError: If the content is not a valid guideline set.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Guidelines file not found: {path}")

    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    if isinstance(data, dict):
        data = data.get("guidelines")
    guidelines = guidelines_from_data(data)
    logger.info(f"Loaded {len(guidelines)} guidelines from {path}")
    return guidelines
