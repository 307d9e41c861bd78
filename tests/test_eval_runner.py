"""Tests for evaluation runner orchestration."""

from pathlib import Path

import pytest

from conftest import FakeProvider, multi_json, single_json
from reply_eval.evaluation.config import EvalRequestConfig
from reply_eval.evaluation.runner import EvaluationRunner
from reply_eval.scoring.guidelines import Guideline
from utils.admission_gate import AdmissionGate


def _make_config(tmp_path: Path, mode: str) -> EvalRequestConfig:
    for name in ("a.csv", "b.csv"):
        (tmp_path / name).write_text(
            "reply,refined_reply\n"
            '"Thank you for your visit.","Thank you very much for staying with us."\n',
            encoding="utf-8",
        )
    return EvalRequestConfig(
        request_id="runner-test",
        csv_files=[tmp_path / "a.csv", tmp_path / "b.csv"],
        columns=["reply", "refined_reply"],
        guidelines=[Guideline("Tone", "Be polite."), Guideline("No emoji", "No emoji.")],
        mode=mode,
        concurrency=2,
    )


class TestEvaluationRunner:
    @pytest.mark.asyncio
    async def test_multi_mode_runs_every_file(self, tmp_path: Path) -> None:
        provider = FakeProvider(default=multi_json([("Tone", 8), ("No emoji", 10)]))
        run = await EvaluationRunner(provider).run(_make_config(tmp_path, "multi"))

        assert list(run.reports) == ["a.csv", "b.csv"]
        # one call per (row, column) per file
        assert len(provider.calls) == 4
        table = run.reports["b.csv"].table
        assert table["refined_reply"]["No emoji"].average == pytest.approx(1.0)
        assert run.provider == "openai"
        assert run.model == "fake-model"
        assert run.failure_count == 0

    @pytest.mark.asyncio
    async def test_single_mode(self, tmp_path: Path) -> None:
        provider = FakeProvider(default=single_json(6))
        run = await EvaluationRunner(provider).run(_make_config(tmp_path, "single"))

        assert len(provider.calls) == 8
        assert run.reports["a.csv"].table["reply"]["Tone"].average == pytest.approx(0.6)

    @pytest.mark.asyncio
    async def test_shared_gate_limits_all_files(self, tmp_path: Path) -> None:
        provider = FakeProvider(default=single_json(6), delay=0.005)
        gate = AdmissionGate(2)
        await EvaluationRunner(provider, gate=gate).run(_make_config(tmp_path, "single"))
        assert provider.peak_in_flight <= 2

    @pytest.mark.asyncio
    async def test_to_dict(self, tmp_path: Path) -> None:
        provider = FakeProvider(default="")
        run = await EvaluationRunner(provider).run(_make_config(tmp_path, "multi"))

        data = run.to_dict()
        assert data["request"]["request_id"] == "runner-test"
        assert data["failure_count"] == 8
        assert set(data["files"]) == {"a.csv", "b.csv"}

    @pytest.mark.asyncio
    async def test_peak_in_flight_is_per_file(self, tmp_path: Path) -> None:
        config = _make_config(tmp_path, "single")
        (tmp_path / "b.csv").write_text("reply,refined_reply\n", encoding="utf-8")
        provider = FakeProvider(default=single_json(6), delay=0.005)

        run = await EvaluationRunner(provider, gate=AdmissionGate(2)).run(config)

        assert run.reports["a.csv"].peak_in_flight == 2
        assert run.reports["b.csv"].peak_in_flight == 0
        assert run.reports["b.csv"].calls == 0
