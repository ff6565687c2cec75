"""
Unit tests for aggregation.

Tests bucketing, sort order, rolling totals and conservation of cost.
"""

from datetime import datetime

import pytest

from usage_dashboard.core.aggregator import Aggregate, aggregate_usage, week_start
from usage_dashboard.storage.models import UsageRecord


def local(year, month, day, hour=12):
    """Aware datetime in the local timezone."""
    return datetime(year, month, day, hour, 0).astimezone()


def make_record(when, cost=0.1, provider="anthropic", model="claude-sonnet",
                tokens=100, cache_read=0) -> UsageRecord:
    return UsageRecord(
        timestamp=when,
        provider=provider,
        model=model,
        input_tokens=tokens // 2,
        output_tokens=tokens // 2,
        cache_read_tokens=cache_read,
        total_tokens=tokens,
        cost=cost,
    )


# Wednesday; the week began on Sunday 2026-03-01
NOW = local(2026, 3, 4, 15)


class TestAggregateUsage:
    """Test aggregation of usage records."""

    def test_empty_records(self):
        """Test empty input produces zero totals and no buckets."""
        aggregate = aggregate_usage([], now=NOW)

        assert aggregate.summary.total_calls == 0
        assert aggregate.summary.total_cost == 0
        assert aggregate.daily == []
        assert aggregate.models == []
        assert aggregate.providers == []

    def test_daily_buckets_ascending(self):
        """Test daily buckets are keyed by local date in ascending order."""
        records = [
            make_record(local(2026, 3, 3), cost=0.2),
            make_record(local(2026, 3, 1), cost=0.1),
            make_record(local(2026, 3, 3), cost=0.3),
        ]

        aggregate = aggregate_usage(records, now=NOW)

        assert [d.date for d in aggregate.daily] == ["2026-03-01", "2026-03-03"]
        assert aggregate.daily[1].calls == 2
        assert aggregate.daily[1].cost == pytest.approx(0.5)
        assert aggregate.daily[1].input_tokens == 100

    def test_model_and_provider_keys(self):
        """Test model identity is provider/model and provider identity is bare."""
        records = [
            make_record(NOW, provider="openai", model="gpt-5", cost=0.4),
            make_record(NOW, provider="anthropic", model="claude-sonnet", cost=0.1),
            make_record(NOW, provider="anthropic", model="claude-haiku", cost=0.2),
        ]

        aggregate = aggregate_usage(records, now=NOW)

        assert [m.key for m in aggregate.models] == [
            "openai/gpt-5", "anthropic/claude-haiku", "anthropic/claude-sonnet",
        ]
        assert [p.provider for p in aggregate.providers] == ["openai", "anthropic"]
        assert aggregate.providers[1].cost == pytest.approx(0.3)
        assert aggregate.providers[1].calls == 2

    def test_cost_ties_keep_first_seen_order(self):
        """Test equal costs keep insertion order."""
        records = [
            make_record(NOW, model="b", cost=0.1),
            make_record(NOW, model="a", cost=0.1),
            make_record(NOW, model="c", cost=0.1),
        ]

        aggregate = aggregate_usage(records, now=NOW)

        assert [m.model for m in aggregate.models] == ["b", "a", "c"]

    def test_rolling_totals(self):
        """Test today, week and month totals are relative to aggregation time."""
        records = [
            make_record(local(2026, 3, 4), cost=1.0),   # today
            make_record(local(2026, 3, 1), cost=2.0),   # Sunday, this week
            make_record(local(2026, 2, 28), cost=4.0),  # last week, last month
            make_record(local(2026, 3, 2), cost=8.0),   # this week
        ]

        summary = aggregate_usage(records, now=NOW).summary

        assert summary.today_cost == pytest.approx(1.0)
        assert summary.week_cost == pytest.approx(11.0)
        assert summary.month_cost == pytest.approx(11.0)
        assert summary.total_cost == pytest.approx(15.0)
        assert summary.total_calls == 4

    def test_conservation(self):
        """Test daily, model and provider costs all sum to the total."""
        records = [
            make_record(local(2026, 2, day), cost=0.01 * day, provider=p, model=m)
            for day in range(1, 20)
            for p, m in (("openai", "gpt-5"), ("anthropic", "claude-sonnet"), ("google", "gemini"))
        ]

        aggregate = aggregate_usage(records, now=NOW)
        total = aggregate.summary.total_cost

        assert sum(d.cost for d in aggregate.daily) == pytest.approx(total, abs=1e-9)
        assert sum(m.cost for m in aggregate.models) == pytest.approx(total, abs=1e-9)
        assert sum(p.cost for p in aggregate.providers) == pytest.approx(total, abs=1e-9)
        assert sum(d.calls for d in aggregate.daily) == len(records)

    def test_cache_read_tokens_per_model(self):
        """Test cache read tokens accumulate on model buckets."""
        records = [make_record(NOW, cache_read=30), make_record(NOW, cache_read=20)]

        aggregate = aggregate_usage(records, now=NOW)

        assert aggregate.models[0].cache_read_tokens == 50
        assert aggregate.models[0].average_cost == pytest.approx(0.1)

    def test_round_trip_dict(self):
        """Test aggregates survive serialization for the cache file."""
        aggregate = aggregate_usage([make_record(NOW, cost=0.25)], now=NOW)

        restored = Aggregate.from_dict(aggregate.to_dict())

        assert restored == aggregate


class TestWeekStart:
    """Test week boundary computation."""

    def test_week_starts_on_sunday(self):
        assert week_start(local(2026, 3, 4)) == "2026-03-01"

    def test_sunday_is_its_own_week_start(self):
        assert week_start(local(2026, 3, 1)) == "2026-03-01"

    def test_saturday_belongs_to_previous_sunday(self):
        assert week_start(local(2026, 3, 7)) == "2026-03-01"
