"""
Unit tests for pricing configuration loading.

Tests the runtime config layout, defaults and error reporting.
"""

import json
import os
import tempfile

import pytest

from usage_dashboard.core.pricing import ModelPricing, PricingTable, load_pricing_table, parse_pricing
from usage_dashboard.core.result import ErrorKind


RUNTIME_CONFIG = {
    "models": {
        "providers": {
            "anthropic": {
                "models": [
                    {"id": "claude-sonnet", "cost": {"input": 3, "output": 15, "cacheRead": 0.3, "cacheWrite": 3.75}},
                ],
            },
            "local": {
                "models": [
                    {"id": "llama", "cost": {"input": 0, "output": 0}},
                    {"id": "qwen"},
                ],
            },
        },
    },
}


class TestModelPricing:
    """Test ModelPricing dataclass."""

    def test_free_when_input_and_output_are_zero(self):
        assert ModelPricing(input=0, output=0, cache_read=1).is_free

    def test_not_free_with_output_price(self):
        assert not ModelPricing(input=0, output=1).is_free

    def test_negative_price_raises_error(self):
        with pytest.raises(ValueError, match="input price cannot be negative"):
            ModelPricing(input=-1)


class TestParsePricing:
    """Test pricing document parsing."""

    def test_runtime_layout(self):
        """Test providers nested under models.providers."""
        table = parse_pricing(RUNTIME_CONFIG)

        assert len(table) == 3
        sonnet = table.get_pricing("anthropic/claude-sonnet")
        assert sonnet.input == 3.0
        assert sonnet.output == 15.0
        assert sonnet.cache_read == 0.3
        assert sonnet.cache_write == 3.75

    def test_missing_cost_defaults_to_zero(self):
        """Test a model without cost is priced at zero."""
        table = parse_pricing(RUNTIME_CONFIG)

        assert table.get_pricing("local/qwen") == ModelPricing()
        assert table.is_free("local/qwen")
        assert table.is_free("local/llama")
        assert not table.is_free("anthropic/claude-sonnet")

    def test_unknown_key_is_none_and_not_free(self):
        table = parse_pricing(RUNTIME_CONFIG)

        assert table.get_pricing("openai/gpt-5") is None
        assert not table.is_free("openai/gpt-5")

    def test_top_level_providers(self):
        """Test a top-level providers mapping is accepted."""
        table = parse_pricing({"providers": {"openai": {"models": [{"id": "gpt-5", "cost": {"input": 1.25}}]}}})

        assert table.get_pricing("openai/gpt-5").input == 1.25

    def test_document_without_providers_is_empty(self):
        assert len(parse_pricing({"gateway": {"port": 1}})) == 0

    def test_invalid_shapes_raise_error(self):
        with pytest.raises(ValueError):
            parse_pricing(["not", "a", "mapping"])
        with pytest.raises(ValueError):
            parse_pricing({"providers": {"openai": {"models": [{"cost": {}}]}}})
        with pytest.raises(ValueError):
            parse_pricing({"providers": {"openai": {"models": [{"id": "x", "cost": {"input": "cheap"}}]}}})

    def test_round_trip_dict(self):
        table = parse_pricing(RUNTIME_CONFIG)
        assert PricingTable.from_dict(table.to_dict()) == table


class TestLoadPricingTable:
    """Test loading pricing from disk."""

    def setup_method(self):
        """Set up test environment."""
        self.temp_dir = tempfile.mkdtemp()

    def teardown_method(self):
        """Clean up test environment."""
        import shutil
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def _write(self, content: str, filename: str = "openclaw.json") -> str:
        path = os.path.join(self.temp_dir, filename)
        with open(path, "w", encoding="utf-8") as f:
            f.write(content)
        return path

    def test_loads_json_config(self):
        path = self._write(json.dumps(RUNTIME_CONFIG))

        result = load_pricing_table(path)

        assert result.ok
        assert len(result.value) == 3

    def test_loads_yaml_config(self):
        path = self._write(
            "providers:\n"
            "  openai:\n"
            "    models:\n"
            "      - id: gpt-5\n"
            "        cost: {input: 1.25, output: 10}\n",
            "pricing.yaml",
        )

        result = load_pricing_table(path)

        assert result.value.get_pricing("openai/gpt-5").output == 10.0

    def test_missing_file_is_config_missing(self):
        result = load_pricing_table(os.path.join(self.temp_dir, "absent.json"))

        assert result.error == ErrorKind.CONFIG_MISSING
        assert result.unwrap_or(PricingTable()) == PricingTable()

    def test_unparseable_file_is_config_corrupt(self):
        path = self._write("{invalid: [")

        assert load_pricing_table(path).error == ErrorKind.CONFIG_CORRUPT

    def test_wrong_shape_is_config_corrupt(self):
        path = self._write(json.dumps({"models": {"providers": ["anthropic"]}}))

        assert load_pricing_table(path).error == ErrorKind.CONFIG_CORRUPT

    def test_undecodable_file_is_config_corrupt(self):
        path = os.path.join(self.temp_dir, "openclaw.json")
        with open(path, "wb") as f:
            f.write(b"\xff\xfe\x00models")

        assert load_pricing_table(path).error == ErrorKind.CONFIG_CORRUPT
