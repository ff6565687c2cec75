"""
Cost-saving tips derived from the aggregate.

Tips are advisory only: they are regenerated from scratch every cycle and
never raise.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List

from .aggregator import Aggregate
from .pricing import PricingTable

# Share of calls on free models below which the tip is a warning
FREE_MODEL_TARGET = 0.3
# Cache hit rate above which the tip counts as a success
CACHE_HIT_TARGET = 0.3
# Average cost-per-call multiple that triggers the model comparison tip
EXPENSIVE_RATIO = 5
DEFAULT_DAILY_ALERT = 1.0


class TipSeverity(Enum):
    """Display class of a tip."""
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    DANGER = "danger"


@dataclass(frozen=True)
class Tip:
    """Human-readable observation with a severity class."""
    text: str
    severity: TipSeverity

    def to_dict(self) -> Dict[str, Any]:
        return {"text": self.text, "severity": self.severity.value}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Tip":
        return cls(text=data["text"], severity=TipSeverity(data["severity"]))


def generate_tips(
    aggregate: Aggregate,
    pricing: PricingTable,
    daily_alert: float = DEFAULT_DAILY_ALERT,
) -> List[Tip]:
    """Generate tips from the aggregate and the pricing table.

    Rules, in order:
    - Top model: share of total spend taken by the most expensive model
    - Free models: share of calls served by zero-priced models
    - Cache: cache-read tokens as a share of all prompt tokens
    - Model comparison: most vs least expensive average cost per call
    - Daily alert: today's spend above `daily_alert`

    A rule whose denominator is zero is skipped.

    Args:
        aggregate: Current aggregate
        pricing: Pricing snapshot for this cycle
        daily_alert: Spend threshold for today's alert

    Returns:
        List of tips; a single info tip when there is no data
    """
    models = aggregate.models
    summary = aggregate.summary
    if not models:
        return [Tip("No usage data yet", TipSeverity.INFO)]

    tips: List[Tip] = []

    top = models[0]
    if top.cost > 0 and summary.total_cost > 0:
        share = top.cost / summary.total_cost * 100
        tips.append(Tip(
            f"{top.key} accounts for {share:.1f}% of total spend (${top.cost:.4f})",
            TipSeverity.INFO,
        ))

    free_models = [m for m in models if pricing.is_free(m.key)]
    if free_models and summary.total_calls > 0:
        free_calls = sum(m.calls for m in free_models)
        ratio = free_calls / summary.total_calls
        tips.append(Tip(
            f"Free models served {ratio * 100:.1f}% of calls "
            f"({free_calls}/{summary.total_calls}). "
            "Route simple tasks to free models to save money",
            TipSeverity.WARNING if ratio < FREE_MODEL_TARGET else TipSeverity.SUCCESS,
        ))

    input_tokens = sum(m.input_tokens for m in models)
    cache_tokens = sum(m.cache_read_tokens for m in models)
    if input_tokens + cache_tokens > 0:
        hit_rate = cache_tokens / (input_tokens + cache_tokens)
        tips.append(Tip(
            f"Cache hit rate is {hit_rate * 100:.1f}%. "
            "Keeping a conversation in one session improves cache hits",
            TipSeverity.SUCCESS if hit_rate > CACHE_HIT_TARGET else TipSeverity.WARNING,
        ))

    paid = [m for m in models if m.cost > 0 and m.calls > 0]
    if len(paid) >= 2:
        # max()/min() return the first bucket on ties
        expensive = max(paid, key=lambda m: m.average_cost)
        cheap = min(paid, key=lambda m: m.average_cost)
        if expensive.average_cost > cheap.average_cost * EXPENSIVE_RATIO:
            multiple = round(expensive.average_cost / cheap.average_cost)
            tips.append(Tip(
                f"{expensive.key} costs {multiple}x more per call than {cheap.key}. "
                "Consider the cheaper model for simple tasks",
                TipSeverity.WARNING,
            ))

    if summary.today_cost > daily_alert:
        tips.append(Tip(
            f"Today's spend has reached ${summary.today_cost:.2f}; keep an eye on usage",
            TipSeverity.DANGER,
        ))

    return tips
