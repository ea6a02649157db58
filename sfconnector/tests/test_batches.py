"""
Tests for batch scheduling.
"""

import asyncio

import pytest

from sfconnector.engine.batches import BatchJob, BatchScheduler, calculate_increment


# ============================================================================
# TestGetBatches
# ============================================================================


class TestGetBatches:
    """Tests for batch splitting."""

    @pytest.mark.parametrize("length", [1, 2, 3, 7, 8, 13, 64])
    @pytest.mark.parametrize("cores", [1, 2, 3, 8])
    def test_batches_cover_items_and_stay_balanced(self, length, cores):
        items = [f"Type{i}" for i in range(length)]
        batches = BatchScheduler(multi_thread=True, cores=cores).get_batches(items)

        sizes = [len(batch.records) for batch in batches]
        assert sum(sizes) == length
        assert max(sizes) - min(sizes) <= 1
        assert len(batches) == min(cores, length)
        # Contiguous slices in input order
        assert [record for batch in batches for record in batch.records] == items

    def test_single_thread_uses_one_batch(self):
        batches = BatchScheduler(multi_thread=False, cores=8).get_batches(["A", "B", "C"])

        assert len(batches) == 1
        assert batches[0].records == ["A", "B", "C"]

    def test_empty_input_yields_no_batches(self):
        assert BatchScheduler(multi_thread=True, cores=4).get_batches([]) == []

    def test_batch_ids_are_sequential(self):
        batches = BatchScheduler(multi_thread=True, cores=3).get_batches(range(6))

        assert [batch.batch_id for batch in batches] == ["Batch_0", "Batch_1", "Batch_2"]


# ============================================================================
# TestRun
# ============================================================================


class TestRun:
    """Tests for concurrent execution and merging."""

    def test_results_merged_after_all_batches(self):
        scheduler = BatchScheduler(multi_thread=True, cores=3)
        batches = scheduler.get_batches(["a", "b", "c", "d", "e"])

        async def _worker(batch: BatchJob):
            await asyncio.sleep(0.01 * len(batch.records))
            return {record: record.upper() for record in batch.records}

        result = asyncio.run(scheduler.run(batches, _worker))

        assert result == {"a": "A", "b": "B", "c": "C", "d": "D", "e": "E"}
        assert BatchScheduler.all_completed(batches)

    def test_batches_run_concurrently(self):
        scheduler = BatchScheduler(multi_thread=True, cores=4)
        batches = scheduler.get_batches(range(4))
        running = []
        peak = []

        async def _worker(batch: BatchJob):
            running.append(batch.batch_id)
            peak.append(len(running))
            await asyncio.sleep(0.01)
            running.remove(batch.batch_id)
            return {}

        asyncio.run(scheduler.run(batches, _worker))

        assert max(peak) == 4

    def test_first_failure_cancels_siblings(self):
        scheduler = BatchScheduler(multi_thread=True, cores=2)
        batches = scheduler.get_batches(["fail", "slow"])
        finished = []

        async def _worker(batch: BatchJob):
            if batch.records == ["fail"]:
                raise ValueError("download failed")
            await asyncio.sleep(1)
            finished.append(batch.batch_id)
            return {}

        with pytest.raises(ValueError):
            asyncio.run(scheduler.run(batches, _worker))

        assert finished == []
        assert not BatchScheduler.all_completed(batches)

    def test_empty_run_returns_empty_result(self):
        async def _worker(batch: BatchJob):
            raise AssertionError("no batch expected")

        assert asyncio.run(BatchScheduler().run([], _worker)) == {}


# ============================================================================
# TestCalculateIncrement
# ============================================================================


class TestCalculateIncrement:
    """Tests for the per-item progress increment."""

    def test_increment_rounded_to_two_decimals(self):
        assert calculate_increment(["a", "b", "c"]) == 33.33

    def test_increment_times_length_close_to_hundred(self):
        for length in range(1, 50):
            increment = calculate_increment(list(range(length)))
            assert abs(increment * length - 100) <= 0.005 * length + 1e-9

    def test_empty_list_increment_is_zero(self):
        assert calculate_increment([]) == 0.0
