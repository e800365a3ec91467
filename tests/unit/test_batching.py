"""Unit tests for the rate-limited batch runner."""

import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from wakawars.provider.batching import run_in_batches


class TestRunInBatches:
    """Test concurrency, pacing and failure isolation."""

    @pytest.mark.asyncio
    async def test_concurrency_never_exceeds_batch_size(self):
        active = 0
        peak = 0

        async def handler(item: int) -> int:
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.01)
            active -= 1
            return item * 2

        outcomes = await run_in_batches(list(range(7)), handler, batch_size=3, delay_seconds=0)
        assert peak == 3
        assert [o.result for o in outcomes] == [0, 2, 4, 6, 8, 10, 12]

    @pytest.mark.asyncio
    async def test_sleeps_only_between_batches(self):
        async def handler(item: int) -> int:
            return item

        with patch("wakawars.provider.batching.asyncio.sleep", new_callable=AsyncMock) as sleep:
            await run_in_batches(list(range(7)), handler, batch_size=3, delay_seconds=1.5)
        assert sleep.await_count == 2
        sleep.assert_awaited_with(1.5)

    @pytest.mark.asyncio
    async def test_single_batch_no_sleep(self):
        async def handler(item: int) -> int:
            return item

        with patch("wakawars.provider.batching.asyncio.sleep", new_callable=AsyncMock) as sleep:
            await run_in_batches([1, 2, 3], handler, batch_size=3, delay_seconds=1.0)
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_failure_isolated_and_reported(self):
        errors: list[tuple[BaseException, int]] = []

        async def handler(item: int) -> int:
            if item == 2:
                raise RuntimeError("boom")
            return item

        outcomes = await run_in_batches(
            [1, 2, 3],
            handler,
            batch_size=3,
            delay_seconds=0,
            on_error=lambda error, item: errors.append((error, item)),
        )
        assert [o.ok for o in outcomes] == [True, False, True]
        assert [o.result for o in outcomes if o.ok] == [1, 3]
        assert len(errors) == 1
        assert errors[0][1] == 2
        assert str(errors[0][0]) == "boom"

    @pytest.mark.asyncio
    async def test_raising_error_callback_does_not_abort_run(self, caplog):
        async def handler(item: int) -> int:
            if item % 2:
                raise RuntimeError(f"bad {item}")
            return item

        def on_error(exc: BaseException, item: int) -> None:
            raise ValueError("callback broke")

        outcomes = await run_in_batches(list(range(5)), handler, batch_size=2, delay_seconds=0, on_error=on_error)
        assert [o.item for o in outcomes] == [0, 1, 2, 3, 4]
        assert [o.ok for o in outcomes] == [True, False, True, False, True]
        assert "Batch error callback failed" in caplog.text

    @pytest.mark.asyncio
    async def test_empty_input(self):
        handler = AsyncMock()
        assert await run_in_batches([], handler) == []
        handler.assert_not_called()

    @pytest.mark.asyncio
    async def test_invalid_batch_size(self):
        with pytest.raises(ValueError):
            await run_in_batches([1], AsyncMock(), batch_size=0)
