"""Tests for the admission gate."""

import asyncio

import pytest

from utils.admission_gate import AdmissionGate


class TestAdmissionGate:
    def test_rejects_zero_limit(self) -> None:
        with pytest.raises(ValueError):
            AdmissionGate(0)

    def test_can_be_built_outside_loop(self) -> None:
        gate = AdmissionGate(3)
        assert gate.in_flight == 0
        assert gate.peak_in_flight == 0

    @pytest.mark.asyncio
    async def test_peak_never_exceeds_limit(self) -> None:
        gate = AdmissionGate(4)

        async def work() -> int:
            async with gate:
                await asyncio.sleep(0.005)
                return gate.in_flight

        seen = await asyncio.gather(*(work() for _ in range(20)))

        assert max(seen) <= 4
        assert gate.peak_in_flight == 4
        assert gate.admitted == 20
        assert gate.in_flight == 0

    @pytest.mark.asyncio
    async def test_run_returns_result(self) -> None:
        gate = AdmissionGate(1)

        async def answer() -> int:
            return 42

        assert await gate.run(answer) == 42

    @pytest.mark.asyncio
    async def test_slot_released_on_error(self) -> None:
        gate = AdmissionGate(1)

        async def fail() -> None:
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            await gate.run(fail)
        assert gate.in_flight == 0

        async def ok() -> str:
            return "ok"

        assert await asyncio.wait_for(gate.run(ok), timeout=1) == "ok"

    @pytest.mark.asyncio
    async def test_reset_clears_counters(self) -> None:
        gate = AdmissionGate(2)
        async with gate:
            pass
        gate.reset()
        assert gate.admitted == 0
        assert gate.peak_in_flight == 0
