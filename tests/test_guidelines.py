"""Tests for guideline loading and validation."""

from pathlib import Path

import pytest
import yaml

from reply_eval.scoring.guidelines import (
    Guideline,
    guidelines_from_data,
    load_guidelines,
    validate_guidelines,
)
from utils.exceptions import ConfigError

EXAMPLE_GUIDELINES = Path(__file__).parents[1] / "configs" / "guidelines_example.yaml"


class TestValidateGuidelines:
    def test_valid_set_returned_in_order(self) -> None:
        items = [Guideline("B", "b"), Guideline("A", "a")]
        assert validate_guidelines(items) == items

    def test_empty_set_rejected(self) -> None:
        with pytest.raises(ConfigError, match="empty"):
            validate_guidelines([])

    def test_duplicate_title_rejected(self) -> None:
        with pytest.raises(ConfigError, match="Duplicate"):
            validate_guidelines([Guideline("A", "a"), Guideline("A", "b")])

    def test_blank_title_rejected(self) -> None:
        with pytest.raises(ConfigError):
            validate_guidelines([Guideline("  ", "a")])

    def test_blank_instruction_rejected(self) -> None:
        with pytest.raises(ConfigError):
            validate_guidelines([Guideline("A", "")])


class TestLoadGuidelines:
    def test_mapping_form(self, tmp_path: Path) -> None:
        f = tmp_path / "g.yaml"
        f.write_text(
            yaml.dump({"guidelines": [{"title": "Emoji", "instruction": "No emoji."}]})
        )
        assert load_guidelines(f) == [Guideline("Emoji", "No emoji.")]

    def test_bare_list_form(self, tmp_path: Path) -> None:
        f = tmp_path / "g.yaml"
        f.write_text(yaml.dump([{"title": "Emoji", "instruction": "No emoji."}]))
        assert load_guidelines(f)[0].title == "Emoji"

    def test_multiline_instruction_stripped(self, tmp_path: Path) -> None:
        f = tmp_path / "g.yaml"
        f.write_text("guidelines:\n  - title: Tone\n    instruction: |\n      Be polite.\n")
        assert load_guidelines(f)[0].instruction == "Be polite."

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_guidelines(tmp_path / "nope.yaml")

    def test_entry_without_instruction(self) -> None:
        with pytest.raises(ConfigError, match="#1"):
            guidelines_from_data([{"title": "A"}])

    def test_not_a_list(self) -> None:
        with pytest.raises(ConfigError):
            guidelines_from_data({"title": "A", "instruction": "a"})

    def test_shipped_example_loads(self) -> None:
        guidelines = load_guidelines(EXAMPLE_GUIDELINES)
        assert len(guidelines) == 8
        assert guidelines[6].title == "Emoji usage"
