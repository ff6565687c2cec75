"""
Model pricing loaded from the agent runtime configuration.

The pricing table is a read-only snapshot re-read on every refresh cycle.
"""

from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .result import ErrorKind, Result


@dataclass(frozen=True)
class ModelPricing:
    """Per-token unit prices for one provider/model key."""
    input: float = 0.0
    output: float = 0.0
    cache_read: float = 0.0
    cache_write: float = 0.0

    def __post_init__(self):
        """Validate prices are non-negative."""
        for name in ("input", "output", "cache_read", "cache_write"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} price cannot be negative")

    @property
    def is_free(self) -> bool:
        return self.input == 0 and self.output == 0


@dataclass(frozen=True)
class PricingTable:
    """Pricing keyed by `provider/model`."""
    prices: Dict[str, ModelPricing] = field(default_factory=dict)

    def get_pricing(self, key: str) -> Optional[ModelPricing]:
        """Get pricing for a model key, or None when it is not configured."""
        return self.prices.get(key)

    def is_free(self, key: str) -> bool:
        """True when the key is configured with zero input and output price."""
        pricing = self.prices.get(key)
        return pricing is not None and pricing.is_free

    def __len__(self) -> int:
        return len(self.prices)

    def to_dict(self) -> Dict[str, Dict[str, float]]:
        return {key: asdict(pricing) for key, pricing in self.prices.items()}

    @classmethod
    def from_dict(cls, data: Dict[str, Dict[str, float]]) -> "PricingTable":
        return cls({key: ModelPricing(**values) for key, values in data.items()})


def _price(cost: Dict[str, Any], name: str) -> float:
    value = cost.get(name)
    if value is None:
        return 0.0
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"'{name}' price must be a number")
    return float(value)


def parse_pricing(document: Any) -> PricingTable:
    """Build a pricing table from a parsed configuration document.

    Providers are read from `models.providers`, or from a top-level
    `providers` mapping. Each provider lists models as `{id, cost}`.

    Raises:
        ValueError: If the document does not have the expected shape
    """
    if not isinstance(document, dict):
        raise ValueError("Pricing configuration must be a mapping")

    models_section = document.get("models")
    if isinstance(models_section, dict) and "providers" in models_section:
        providers = models_section["providers"]
    else:
        providers = document.get("providers", {})
    if not isinstance(providers, dict):
        raise ValueError("'providers' must be a mapping")

    prices: Dict[str, ModelPricing] = {}
    for provider_name, provider in providers.items():
        if not isinstance(provider, dict):
            raise ValueError(f"Provider '{provider_name}' must be a mapping")
        for model in provider.get("models") or []:
            if not isinstance(model, dict) or not model.get("id"):
                raise ValueError(f"Provider '{provider_name}' has a model without an id")
            cost = model.get("cost") or {}
            if not isinstance(cost, dict):
                raise ValueError(f"'cost' of {provider_name}/{model['id']} must be a mapping")
            prices[f"{provider_name}/{model['id']}"] = ModelPricing(
                input=_price(cost, "input"),
                output=_price(cost, "output"),
                cache_read=_price(cost, "cacheRead"),
                cache_write=_price(cost, "cacheWrite"),
            )
    return PricingTable(prices)


def load_pricing_table(path: str) -> Result:
    """Load the pricing table from the runtime configuration file.

    The file may be JSON or YAML; `yaml.safe_load` reads both.

    Args:
        path: Path to the configuration document

    Returns:
        Result holding a PricingTable, or CONFIG_MISSING / CONFIG_CORRUPT
    """
    config_path = Path(path).expanduser()
    if not config_path.is_file():
        return Result.failure(ErrorKind.CONFIG_MISSING, f"Pricing config not found: {path}")

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            document = yaml.safe_load(f)
    except OSError as e:
        return Result.failure(ErrorKind.CONFIG_MISSING, f"Cannot read pricing config {path}: {e}")
    except (yaml.YAMLError, UnicodeDecodeError) as e:
        return Result.failure(ErrorKind.CONFIG_CORRUPT, f"Invalid pricing config {path}: {e}")

    try:
        return Result.success(parse_pricing(document))
    except ValueError as e:
        return Result.failure(ErrorKind.CONFIG_CORRUPT, f"Invalid pricing config {path}: {e}")
