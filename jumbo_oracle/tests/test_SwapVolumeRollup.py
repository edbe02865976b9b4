"""Unit tests for SwapVolumeRollup."""

from datetime import datetime, timezone
from decimal import Decimal

from conftest import FakeSwapSource, make_swap
from jumbo_oracle.src.SwapVolumeRollup import (
    HOUR_IN_SECONDS,
    SwapVolumeRollup,
    fold_swaps,
    hour_boundaries,
)

NOW = datetime(2024, 1, 1, 5, 30, tzinfo=timezone.utc)
HOUR_NOW = 1704085200  # 2024-01-01 05:00:00 UTC


class TestHourBoundaries:
    """Test window boundary computation."""

    def test_truncates_to_hour_newest_first(self) -> None:
        assert hour_boundaries(NOW, 3) == [
            HOUR_NOW,
            HOUR_NOW - HOUR_IN_SECONDS,
            HOUR_NOW - 2 * HOUR_IN_SECONDS,
        ]

    def test_naive_datetime_treated_as_utc(self) -> None:
        assert hour_boundaries(NOW.replace(tzinfo=None), 1) == [HOUR_NOW]

    def test_default_is_a_day(self) -> None:
        bounds = hour_boundaries(NOW)
        assert len(bounds) == 24
        assert bounds[0] - bounds[-1] == 23 * HOUR_IN_SECONDS


class TestFoldSwaps:
    """Test per-pool folding."""

    def test_swap_increments_side_of_token_in(self) -> None:
        """A swap of A into pool 42 adds to the first side only."""
        volumes = fold_swaps(
            [
                make_swap("seed 42", "A", "B", "0"),
                make_swap("abc 42", "A", "B", "100"),
            ]
        )

        assert volumes["42"].token_first == "A"
        assert volumes["42"].volume_24h_first == Decimal(100)
        assert volumes["42"].volume_24h_second == Decimal(0)

    def test_opposite_direction_books_second_side(self) -> None:
        volumes = fold_swaps(
            [
                make_swap("r1 7", "A", "B", "100"),
                make_swap("r2 7", "B", "A", "30"),
                make_swap("r3 7", "A", "B", "5"),
            ]
        )

        assert volumes["7"].token_first == "A"
        assert volumes["7"].token_second == "B"
        assert volumes["7"].volume_24h_first == Decimal(105)
        assert volumes["7"].volume_24h_second == Decimal(30)

    def test_malformed_id_dropped(self) -> None:
        """A swap id without a pool part is skipped, not fatal."""
        volumes = fold_swaps(
            [
                make_swap("malformed", "A", "B", "100"),
                make_swap("", "A", "B", "100"),
                make_swap("abc 42", "A", "B", "1"),
            ]
        )

        assert list(volumes) == ["42"]
        assert volumes["42"].volume_24h_first == Decimal(1)

    def test_pools_kept_separate(self) -> None:
        volumes = fold_swaps(
            [make_swap("a 1", "A", "B", "10"), make_swap("b 2", "C", "D", "20")]
        )

        assert volumes["1"].volume_24h_first == Decimal(10)
        assert volumes["2"].volume_24h_first == Decimal(20)

    def test_large_amounts_exact(self) -> None:
        """Amounts beyond float precision add exactly."""
        big = "123456789012345678901234567890"
        volumes = fold_swaps([make_swap("a 1", "A", "B", big), make_swap("b 1", "A", "B", "1")])

        assert volumes["1"].volume_24h_first == Decimal(big) + 1


class TestSwapVolumeRollup:
    """Test window fetching and rollup."""

    async def test_requests_23_hour_ranges(self) -> None:
        """24 boundaries yield 23 inclusive ranges."""
        source = FakeSwapSource()
        await SwapVolumeRollup(source).rollup_24h(NOW)

        assert len(source.requests) == 23
        assert (HOUR_NOW - HOUR_IN_SECONDS, HOUR_NOW) in source.requests
        assert min(gte for gte, _ in source.requests) == HOUR_NOW - 23 * HOUR_IN_SECONDS

    async def test_rollup_sums_window(self) -> None:
        swaps = [
            make_swap("a 42", "A", "B", "100", HOUR_NOW - 100),
            make_swap("b 42", "A", "B", "50", HOUR_NOW - 3 * HOUR_IN_SECONDS - 100),
            make_swap("c 42", "B", "A", "7", HOUR_NOW - 5 * HOUR_IN_SECONDS - 100),
            make_swap("old 42", "A", "B", "999", HOUR_NOW - 30 * HOUR_IN_SECONDS),
        ]
        volumes = await SwapVolumeRollup(FakeSwapSource(swaps)).rollup_24h(NOW)

        assert volumes["42"].volume_24h_first == Decimal(150)
        assert volumes["42"].volume_24h_second == Decimal(7)

    async def test_recompute_is_idempotent(self) -> None:
        """Two rollups over unchanged history give identical volumes."""
        swaps = [make_swap("a 42", "A", "B", "100", HOUR_NOW - 100)]
        rollup = SwapVolumeRollup(FakeSwapSource(swaps))

        first = await rollup.rollup_24h(NOW)
        second = await rollup.rollup_24h(NOW)

        assert first == second
        assert second["42"].volume_24h_first == Decimal(100)

    async def test_swap_on_boundary_counted_in_both_buckets(self) -> None:
        """Inclusive ranges share their boundary timestamp."""
        swaps = [make_swap("a 42", "A", "B", "100", HOUR_NOW - HOUR_IN_SECONDS)]
        volumes = await SwapVolumeRollup(FakeSwapSource(swaps)).rollup_24h(NOW)

        assert volumes["42"].volume_24h_first == Decimal(200)

    async def test_failed_bucket_is_empty(self) -> None:
        """A failing hour drops only its own swaps."""
        failing = HOUR_NOW - HOUR_IN_SECONDS
        swaps = [
            make_swap("a 42", "A", "B", "100", HOUR_NOW - 100),
            make_swap("b 42", "A", "B", "50", HOUR_NOW - 2 * HOUR_IN_SECONDS - 100),
        ]
        rollup = SwapVolumeRollup(FakeSwapSource(swaps, failing_ranges=[failing]))

        buckets = await rollup.fetch_window(NOW)
        volumes = await rollup.rollup_24h(NOW)

        assert buckets[0] == []
        assert volumes["42"].volume_24h_first == Decimal(50)
