"""Tests for BatchScheduler pacing and isolation."""

import asyncio

import pytest

from app.relay.errors import UpstreamUnavailable
from app.relay.scheduler import BatchScheduler, chunked, unique_symbols


class TestHelpers:
    """Unit tests for symbol normalization and chunking."""

    def test_unique_symbols(self):
        """Test normalization keeps first-seen order."""
        assert unique_symbols([" tcs", "TCS", "reliance", "", "Infy "]) == ["TCS", "RELIANCE", "INFY"]

    def test_chunked(self):
        """Test chunking leaves the remainder in the last chunk."""
        assert chunked(["A", "B", "C", "D", "E"], 2) == [["A", "B"], ["C", "D"], ["E"]]

    def test_chunked_rejects_zero(self):
        """Test a zero batch size is rejected."""
        with pytest.raises(ValueError):
            chunked(["A"], 0)

    def test_scheduler_validates_arguments(self, fetcher):
        """Test constructor validation."""
        with pytest.raises(ValueError):
            BatchScheduler(fetcher, batch_size=0)
        with pytest.raises(ValueError):
            BatchScheduler(fetcher, batch_delay=-1)


@pytest.mark.asyncio
class TestBatchScheduler:
    """Tests for chunked, paced runs."""

    async def test_chunk_count_and_delays(self, fetcher, provider, recording_sleep):
        """Test k*B + r symbols take ceil(n/B) chunks with a delay between each."""
        for symbol in ["A1", "A2", "A3", "A4", "A5", "A6", "A7"]:
            provider.prices[symbol] = 100.0
        scheduler = BatchScheduler(fetcher, batch_size=3, batch_delay=0.5, sleep=recording_sleep)
        chunks = []

        async def on_chunk(quotes):
            chunks.append([q.symbol for q in quotes])

        run = await scheduler.run(["A1", "A2", "A3", "A4", "A5", "A6", "A7"], on_chunk=on_chunk)

        assert run.chunks == 3
        assert chunks == [["A1", "A2", "A3"], ["A4", "A5", "A6"], ["A7"]]
        assert recording_sleep.delays == [0.5, 0.5]
        assert run.succeeded == ["A1", "A2", "A3", "A4", "A5", "A6", "A7"]

    async def test_empty_run(self, fetcher, recording_sleep):
        """Test an empty symbol list completes immediately."""
        scheduler = BatchScheduler(fetcher, sleep=recording_sleep)
        run = await scheduler.run([])
        assert run.chunks == 0
        assert recording_sleep.delays == []

    async def test_real_delay_between_chunk_starts(self, fetcher, provider):
        """Test consecutive chunks start at least batch_delay apart."""
        scheduler = BatchScheduler(fetcher, batch_size=2, batch_delay=0.05)
        await scheduler.run(["RELIANCE", "TCS", "INFY", "SBIN"])
        first_chunk_start = provider.call_times[0]
        second_chunk_start = provider.call_times[2]
        assert second_chunk_start - first_chunk_start >= 0.045

    async def test_chunk_completes_before_next_starts(self, fetcher, provider):
        """Test peak concurrency within one run never exceeds the batch size."""
        provider.delay = 0.02
        scheduler = BatchScheduler(fetcher, batch_size=2, batch_delay=0.0)
        await scheduler.run(["RELIANCE", "TCS", "INFY", "SBIN"])
        assert provider.max_active == 2

    async def test_batch_size_bounds_each_run_separately(self, fetcher, provider):
        """Test concurrent runs are not coordinated, so their chunks overlap."""
        provider.delay = 0.05
        scheduler = BatchScheduler(fetcher, batch_size=1, batch_delay=0.0)
        await asyncio.gather(scheduler.run(["RELIANCE"]), scheduler.run(["TCS"]))
        assert provider.max_active == 2

    async def test_failures_isolated_within_chunk(self, fetcher, provider, recording_sleep):
        """Test one failing symbol does not stop its siblings."""
        provider.quote_errors["TCS"] = UpstreamUnavailable
        provider.ltp_errors["TCS"] = UpstreamUnavailable
        scheduler = BatchScheduler(fetcher, batch_size=3, sleep=recording_sleep)
        delivered = []

        async def on_chunk(quotes):
            delivered.extend(q.symbol for q in quotes)

        run = await scheduler.run(["RELIANCE", "TCS", "INFY"], on_chunk=on_chunk)
        assert delivered == ["RELIANCE", "INFY"]
        assert set(run.failures) == {"TCS"}
        assert isinstance(run.failures["TCS"], UpstreamUnavailable)

    async def test_empty_chunk_skips_callback(self, fetcher, provider, recording_sleep, caplog):
        """Test a chunk with no quotes produces no callback but the run continues."""
        provider.quote_errors["TCS"] = UpstreamUnavailable
        provider.ltp_errors["TCS"] = UpstreamUnavailable
        scheduler = BatchScheduler(fetcher, batch_size=1, sleep=recording_sleep)
        calls = []

        async def on_chunk(quotes):
            calls.append([q.symbol for q in quotes])

        run = await scheduler.run(["TCS", "RELIANCE"], on_chunk=on_chunk)
        assert calls == [["RELIANCE"]]
        assert run.chunks == 2
        assert "No data returned for batch: TCS" in caplog.text

    async def test_callback_error_does_not_abort(self, fetcher, recording_sleep):
        """Test a failing chunk handler is logged and the run continues."""
        scheduler = BatchScheduler(fetcher, batch_size=1, sleep=recording_sleep)
        seen = []

        async def on_chunk(quotes):
            seen.append(quotes[0].symbol)
            raise RuntimeError("handler bug")

        run = await scheduler.run(["RELIANCE", "TCS"], on_chunk=on_chunk)
        assert seen == ["RELIANCE", "TCS"]
        assert run.succeeded == ["RELIANCE", "TCS"]

    async def test_duplicates_fetched_once(self, fetcher, provider, recording_sleep):
        """Test duplicate and mixed-case symbols collapse before fetching."""
        scheduler = BatchScheduler(fetcher, sleep=recording_sleep)
        run = await scheduler.run(["tcs", "TCS", " TCS "])
        assert run.symbols == ["TCS"]
        assert provider.quote_calls == ["TCS"]

    async def test_per_run_overrides(self, fetcher, provider, recording_sleep):
        """Test batch size and delay can be overridden per run."""
        scheduler = BatchScheduler(fetcher, batch_size=1, batch_delay=0.5, sleep=recording_sleep)
        run = await scheduler.run(["RELIANCE", "TCS", "INFY"], batch_size=3, batch_delay=0.1)
        assert run.chunks == 1
        assert recording_sleep.delays == []
