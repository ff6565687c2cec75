"""
Multi-axis aggregation of usage records.

Folds the full record set into per-day, per-model and per-provider buckets
plus today/this-week/this-month rolling totals. The aggregate is recomputed
from scratch on every refresh.
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional

from usage_dashboard.storage.models import UsageRecord


@dataclass
class Summary:
    """Overall totals and rolling spend relative to aggregation time."""
    total_cost: float = 0.0
    total_tokens: int = 0
    total_calls: int = 0
    today_cost: float = 0.0
    week_cost: float = 0.0
    month_cost: float = 0.0


@dataclass
class DailyBucket:
    date: str
    cost: float = 0.0
    tokens: int = 0
    calls: int = 0
    input_tokens: int = 0
    output_tokens: int = 0


@dataclass
class ModelBucket:
    key: str
    provider: str
    model: str
    cost: float = 0.0
    tokens: int = 0
    calls: int = 0
    input_tokens: int = 0
    output_tokens: int = 0
    cache_read_tokens: int = 0

    @property
    def average_cost(self) -> float:
        """Average cost per call (0 when there are no calls)."""
        return self.cost / self.calls if self.calls else 0.0


@dataclass
class ProviderBucket:
    provider: str
    cost: float = 0.0
    tokens: int = 0
    calls: int = 0


@dataclass(frozen=True)
class Aggregate:
    """Complete aggregation result."""
    summary: Summary = field(default_factory=Summary)
    daily: List[DailyBucket] = field(default_factory=list)
    models: List[ModelBucket] = field(default_factory=list)
    providers: List[ProviderBucket] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "summary": asdict(self.summary),
            "daily": [asdict(b) for b in self.daily],
            "models": [asdict(b) for b in self.models],
            "providers": [asdict(b) for b in self.providers],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Aggregate":
        return cls(
            summary=Summary(**data.get("summary", {})),
            daily=[DailyBucket(**b) for b in data.get("daily", [])],
            models=[ModelBucket(**b) for b in data.get("models", [])],
            providers=[ProviderBucket(**b) for b in data.get("providers", [])],
        )


def local_date(ts: datetime) -> str:
    """Calendar date of `ts` in local time, as YYYY-MM-DD."""
    return ts.astimezone().strftime("%Y-%m-%d")


def week_start(now: datetime) -> str:
    """Date of the Sunday that starts the local calendar week containing `now`."""
    local = now.astimezone()
    # Python weekday(): Monday=0 .. Sunday=6; the week starts on Sunday
    days_since_sunday = (local.weekday() + 1) % 7
    return (local - timedelta(days=days_since_sunday)).strftime("%Y-%m-%d")


def aggregate_usage(records: Iterable[UsageRecord], now: Optional[datetime] = None) -> Aggregate:
    """Aggregate usage records along day, model and provider axes.

    Rolling totals are relative to `now` (defaults to the current time), not
    to the span of the records. Model and provider buckets are sorted by
    descending cost with ties kept in first-seen order.

    Args:
        records: Usage records to fold
        now: Aggregation instant; naive values are taken as local time

    Returns:
        Aggregate with sorted buckets and summary totals
    """
    now = (now or datetime.now()).astimezone()
    today = now.strftime("%Y-%m-%d")
    week = week_start(now)
    month = now.strftime("%Y-%m")

    summary = Summary()
    daily: Dict[str, DailyBucket] = {}
    models: Dict[str, ModelBucket] = {}
    providers: Dict[str, ProviderBucket] = {}

    for record in records:
        day = local_date(record.timestamp)

        bucket = daily.get(day)
        if bucket is None:
            bucket = daily[day] = DailyBucket(date=day)
        bucket.cost += record.cost
        bucket.tokens += record.total_tokens
        bucket.calls += 1
        bucket.input_tokens += record.input_tokens
        bucket.output_tokens += record.output_tokens

        model = models.get(record.key)
        if model is None:
            model = models[record.key] = ModelBucket(
                key=record.key, provider=record.provider, model=record.model
            )
        model.cost += record.cost
        model.tokens += record.total_tokens
        model.calls += 1
        model.input_tokens += record.input_tokens
        model.output_tokens += record.output_tokens
        model.cache_read_tokens += record.cache_read_tokens

        provider = providers.get(record.provider)
        if provider is None:
            provider = providers[record.provider] = ProviderBucket(provider=record.provider)
        provider.cost += record.cost
        provider.tokens += record.total_tokens
        provider.calls += 1

        summary.total_cost += record.cost
        summary.total_tokens += record.total_tokens
        summary.total_calls += 1

        if day == today:
            summary.today_cost += record.cost
        if day >= week:
            summary.week_cost += record.cost
        if day.startswith(month):
            summary.month_cost += record.cost

    return Aggregate(
        summary=summary,
        daily=sorted(daily.values(), key=lambda b: b.date),
        # sorted() is stable, so equal costs keep insertion order
        models=sorted(models.values(), key=lambda b: b.cost, reverse=True),
        providers=sorted(providers.values(), key=lambda b: b.cost, reverse=True),
    )
