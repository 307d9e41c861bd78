"""Tests for batch evaluation, aggregation and admission control."""

import json
import math

import pytest

from conftest import FakeProvider, multi_json, single_json
from reply_eval.evaluation.batch import BatchEvaluator, compute_stats
from reply_eval.scoring.compliance import GuidelinesComplianceMetric, InstructionComplianceMetric
from reply_eval.scoring.guidelines import Guideline
from reply_eval.scoring.results import NoSamples, Scored
from reply_eval.workflows.reviews import read_rows
from utils.admission_gate import AdmissionGate
from utils.exceptions import ConfigError


def _score_by_instruction(scores: dict):
    """Responder scoring each single request by the instruction it contains."""

    def respond(messages, config):
        user = messages[-1].content
        for instruction, score in scores.items():
            if instruction in user:
                return single_json(score)
        raise AssertionError("unexpected instruction")

    return respond


class TestComputeStats:
    def test_population_stddev(self) -> None:
        stats = compute_stats([2, 4, 4, 4, 5, 5, 7, 9])
        assert stats.average == 5.0
        assert stats.stddev == 2.0
        assert stats.count == 8
        assert (stats.min, stats.max) == (2.0, 9.0)
        assert stats.outcome == Scored(5.0)

    def test_empty_is_nan(self) -> None:
        stats = compute_stats([])
        assert math.isnan(stats.average)
        assert math.isnan(stats.stddev)
        assert stats.count == 0
        assert stats.outcome == NoSamples()

    def test_single_sample_has_zero_stddev(self) -> None:
        stats = compute_stats([0.7])
        assert stats.average == pytest.approx(0.7)
        assert stats.stddev == 0.0


class TestSingleMode:
    @pytest.mark.asyncio
    async def test_one_call_per_cell(self, guidelines) -> None:
        provider = FakeProvider(default=single_json(8))
        evaluator = BatchEvaluator(InstructionComplianceMetric(provider))
        rows = [{"reply": "a reply text"}, {"reply": "another reply"}]

        table = await evaluator.evaluate(rows, ["reply"], guidelines)

        assert len(provider.calls) == len(rows) * len(guidelines)
        for title in (g.title for g in guidelines):
            assert table["reply"][title].average == pytest.approx(0.8)
            assert table["reply"][title].count == 2

    @pytest.mark.asyncio
    async def test_per_guideline_scores(self, guidelines) -> None:
        provider = FakeProvider(
            responder=_score_by_instruction(
                {g.instruction: s for g, s in zip(guidelines, [10, 0, 5])}
            )
        )
        evaluator = BatchEvaluator(InstructionComplianceMetric(provider))

        table = await evaluator.evaluate([{"reply": "x" * 20}], ["reply"], guidelines)

        assert [table["reply"][g.title].average for g in guidelines] == pytest.approx(
            [1.0, 0.0, 0.5]
        )

    @pytest.mark.asyncio
    async def test_failures_excluded_and_counted(self) -> None:
        guideline = Guideline("Tone", "Be polite.")
        provider = FakeProvider(script=[single_json(10), "garbage", RuntimeError("down")])
        provider.default = single_json(10)
        evaluator = BatchEvaluator(InstructionComplianceMetric(provider), concurrency=1)
        rows = [{"reply": f"reply number {i}"} for i in range(3)]

        report = await evaluator.run(rows, ["reply"], [guideline])

        stats = report.table["reply"]["Tone"]
        assert stats.count == 1
        assert stats.average == 1.0
        assert report.failure_count == 2
        assert {f.row_index for f in report.failures} == {1, 2}

    @pytest.mark.asyncio
    async def test_include_substitutes_keeps_zero(self) -> None:
        guideline = Guideline("Tone", "Be polite.")
        provider = FakeProvider(script=[single_json(10), "garbage"])
        evaluator = BatchEvaluator(
            InstructionComplianceMetric(provider), concurrency=1, include_substitutes=True
        )
        rows = [{"reply": "first reply"}, {"reply": "second reply"}]

        report = await evaluator.run(rows, ["reply"], [guideline])

        assert report.table["reply"]["Tone"].average == 0.5
        assert report.failure_count == 1


class TestMultiMode:
    @pytest.mark.asyncio
    async def test_one_call_per_row_and_column(self, guidelines) -> None:
        provider = FakeProvider(
            default=multi_json([("Tone", 9), ("No emoji", 10), ("Length", 4)])
        )
        evaluator = BatchEvaluator(GuidelinesComplianceMetric(provider), mode="multi")
        rows = [{"reply": "reply one text", "refined": "refined one text"}] * 3

        table = await evaluator.evaluate(rows, ["reply", "refined"], guidelines)

        assert len(provider.calls) == 6
        assert table["refined"]["Tone"].average == pytest.approx(0.9)
        assert table["refined"]["Length"].average == pytest.approx(0.4)

    @pytest.mark.asyncio
    async def test_synthesized_results_excluded(self, guidelines) -> None:
        provider = FakeProvider(script=[multi_json([("Tone", 8)]), ""])
        evaluator = BatchEvaluator(
            GuidelinesComplianceMetric(provider), mode="multi", concurrency=1
        )
        rows = [{"reply": "reply one text"}, {"reply": "reply two text"}]

        report = await evaluator.run(rows, ["reply"], guidelines)

        assert report.table["reply"]["Tone"].count == 1
        assert report.table["reply"]["Tone"].average == pytest.approx(0.8)
        assert report.table["reply"]["No emoji"].outcome == NoSamples()
        # 2 missing in row 0, 3 substituted in row 1
        assert report.failure_count == 5

    @pytest.mark.asyncio
    async def test_include_substitutes_uses_midpoint(self) -> None:
        guideline = Guideline("Tone", "Be polite.")
        provider = FakeProvider(script=["garbage"])
        evaluator = BatchEvaluator(
            GuidelinesComplianceMetric(provider), mode="multi", include_substitutes=True
        )

        table = await evaluator.evaluate([{"reply": "a long enough reply"}], ["reply"], [guideline])

        assert table["reply"]["Tone"].average == pytest.approx(0.5)

    def test_multi_mode_requires_guidelines_metric(self) -> None:
        with pytest.raises(ConfigError):
            BatchEvaluator(InstructionComplianceMetric(FakeProvider()), mode="multi")


class TestOrderingAndValidation:
    COLUMNS = ["b", "a"]
    TITLES = ["Zeta", "Alpha", "Mid"]

    def _rank(self, user: str) -> tuple:
        """(column rank, guideline rank) of a request; earlier-declared ranks higher."""
        column = next(c for c in self.COLUMNS if f"column {c}" in user)
        title = next((t for t in self.TITLES if f"rule {t}" in user), self.TITLES[-1])
        return (
            len(self.COLUMNS) - 1 - self.COLUMNS.index(column),
            len(self.TITLES) - 1 - self.TITLES.index(title),
        )

    @pytest.mark.asyncio
    async def test_single_mode_order_independent_of_completion(self) -> None:
        guidelines = [Guideline(t, f"rule {t}") for t in self.TITLES]
        scores = {
            ("b", "Zeta"): 1,
            ("b", "Alpha"): 2,
            ("b", "Mid"): 3,
            ("a", "Zeta"): 4,
            ("a", "Alpha"): 5,
            ("a", "Mid"): 6,
        }
        finished = []

        def respond(messages, config):
            user = messages[-1].content
            column = next(c for c in self.COLUMNS if f"column {c}" in user)
            title = next(t for t in self.TITLES if f"rule {t}" in user)
            finished.append((column, title))
            return single_json(scores[(column, title)])

        def delay(messages):
            column_rank, title_rank = self._rank(messages[-1].content)
            return 0.005 * (column_rank * len(self.TITLES) + title_rank)

        provider = FakeProvider(responder=respond, delay=delay)
        evaluator = BatchEvaluator(InstructionComplianceMetric(provider))
        rows = [{"b": "reply in column b", "a": "reply in column a"}]

        table = await evaluator.evaluate(rows, self.COLUMNS, guidelines)

        # Last-declared cell finishes first, first-declared cell last
        assert finished[0] == ("a", "Mid")
        assert finished[-1] == ("b", "Zeta")
        assert list(table) == ["b", "a"]
        for column in self.COLUMNS:
            assert list(table[column]) == self.TITLES
            for title in self.TITLES:
                expected = scores[(column, title)] / 10
                assert table[column][title].average == pytest.approx(expected)

    @pytest.mark.asyncio
    async def test_multi_mode_order_independent_of_completion(self) -> None:
        guidelines = [Guideline(t, f"rule {t}") for t in self.TITLES]
        scores = {"b": [2, 4, 6], "a": [8, 9, 10]}
        finished = []

        def respond(messages, config):
            user = messages[-1].content
            column = next(c for c in self.COLUMNS if f"column {c}" in user)
            finished.append(column)
            # Model lists results in reverse order
            return multi_json(list(reversed(list(zip(self.TITLES, scores[column])))))

        def delay(messages):
            return 0.01 * self._rank(messages[-1].content)[0]

        provider = FakeProvider(responder=respond, delay=delay)
        evaluator = BatchEvaluator(GuidelinesComplianceMetric(provider), mode="multi")
        rows = [
            {"b": f"reply {i} in column b", "a": f"reply {i} in column a"} for i in range(2)
        ]

        table = await evaluator.evaluate(rows, self.COLUMNS, guidelines)

        assert finished == ["a", "a", "b", "b"]
        assert list(table) == ["b", "a"]
        for column in self.COLUMNS:
            assert list(table[column]) == self.TITLES
            averages = [table[column][t].average for t in self.TITLES]
            assert averages == pytest.approx([s / 10 for s in scores[column]])

    @pytest.mark.asyncio
    async def test_short_csv_row_scored_as_empty_text(self, tmp_path) -> None:
        f = tmp_path / "short.csv"
        f.write_text("id,reply\n1,Thank you for visiting us\n2\n", encoding="utf-8")
        provider = FakeProvider(default=single_json(5))
        evaluator = BatchEvaluator(InstructionComplianceMetric(provider))

        await evaluator.evaluate(read_rows(f), ["reply"], [Guideline("Tone", "Be polite.")])

        targets = [
            c[0][-1].content.split("Target text:\n")[1].split("\n")[0] for c in provider.calls
        ]
        assert sorted(targets) == ["", "Thank you for visiting us"]

    @pytest.mark.asyncio
    async def test_none_cell_scored_as_empty_text(self) -> None:
        provider = FakeProvider(default=single_json(5))
        evaluator = BatchEvaluator(InstructionComplianceMetric(provider))

        await evaluator.evaluate([{"reply": None}], ["reply"], [Guideline("Tone", "Be polite.")])

        assert "Target text:\n\n" in provider.calls[0][0][-1].content
        assert "None" not in provider.calls[0][0][-1].content

    @pytest.mark.asyncio
    async def test_empty_rows_give_nan(self, guidelines) -> None:
        provider = FakeProvider()
        evaluator = BatchEvaluator(InstructionComplianceMetric(provider))

        table = await evaluator.evaluate([], ["reply"], guidelines)

        assert provider.calls == []
        assert all(math.isnan(s.average) for s in table["reply"].values())

    @pytest.mark.asyncio
    async def test_missing_column_fails_before_any_call(self, guidelines) -> None:
        provider = FakeProvider(default=single_json(5))
        evaluator = BatchEvaluator(InstructionComplianceMetric(provider))

        with pytest.raises(ConfigError, match="missing column"):
            await evaluator.evaluate([{"reply": "x"}, {"other": "y"}], ["reply"], guidelines)
        assert provider.calls == []

    @pytest.mark.asyncio
    async def test_duplicate_guidelines_rejected(self) -> None:
        evaluator = BatchEvaluator(InstructionComplianceMetric(FakeProvider()))
        with pytest.raises(ConfigError):
            await evaluator.evaluate(
                [{"reply": "x"}], ["reply"], [Guideline("A", "a"), Guideline("A", "b")]
            )

    def test_unknown_mode_rejected(self) -> None:
        with pytest.raises(ConfigError):
            BatchEvaluator(InstructionComplianceMetric(FakeProvider()), mode="parallel")


class TestConcurrency:
    @pytest.mark.asyncio
    async def test_cap_of_ten_over_fifty_calls(self) -> None:
        provider = FakeProvider(default=single_json(7), delay=0.01)
        gate = AdmissionGate(10)
        evaluator = BatchEvaluator(InstructionComplianceMetric(provider), gate=gate)
        rows = [{"reply": f"reply {i:02d} text"} for i in range(50)]

        report = await evaluator.run(rows, ["reply"], [Guideline("Tone", "Be polite.")])

        assert len(provider.calls) == 50
        assert provider.peak_in_flight <= 10
        assert gate.peak_in_flight == 10
        assert report.peak_in_flight == 10
        assert report.table["reply"]["Tone"].count == 50

    @pytest.mark.asyncio
    async def test_cap_of_one_serializes(self) -> None:
        provider = FakeProvider(default=single_json(7), delay=0.001)
        evaluator = BatchEvaluator(InstructionComplianceMetric(provider), concurrency=1)
        rows = [{"reply": f"reply {i} text"} for i in range(5)]

        await evaluator.evaluate(rows, ["reply"], [Guideline("Tone", "Be polite.")])

        assert provider.peak_in_flight == 1


def test_report_to_dict_is_json_serializable(guidelines) -> None:
    from reply_eval.evaluation.batch import BatchFailure, BatchReport

    report = BatchReport(
        table={"reply": {g.title: compute_stats([0.5]) for g in guidelines}},
        failures=[BatchFailure("reply", "Tone", 0, "LLM returned empty response")],
        calls=3,
    )
    data = json.loads(json.dumps(report.to_dict()))
    assert data["table"]["reply"]["Tone"]["average"] == 0.5
    assert data["failures"][0]["reason"] == "LLM returned empty response"
