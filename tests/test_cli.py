"""
Tests for the CLI interface.
"""
import json
import os
import tempfile
from datetime import datetime
from unittest.mock import patch

import pytest
import yaml
from typer.testing import CliRunner

from usage_dashboard.cli.main import app, EXIT_CODE_PASS, EXIT_CODE_FAIL
from usage_dashboard.core.aggregator import aggregate_usage
from usage_dashboard.core.pricing import PricingTable
from usage_dashboard.core.tips import generate_tips
from usage_dashboard.storage.cache import CacheSnapshot, CacheStore, DashboardSnapshot
from usage_dashboard.storage.models import UsageRecord

runner = CliRunner()


def make_snapshot() -> DashboardSnapshot:
    now = datetime(2026, 3, 4, 12, 0).astimezone()
    records = [
        UsageRecord(timestamp=now, provider="openai", model="gpt-5", total_tokens=1500, cost=1234.5),
    ]
    aggregate = aggregate_usage(records, now=now)
    return DashboardSnapshot(
        aggregate=aggregate,
        tips=generate_tips(aggregate, PricingTable()),
        quotas=None,
        pricing=PricingTable(),
        updated_at=now,
    )


@pytest.fixture
def workspace():
    """Temporary directory with a config file pointing inside it."""
    with tempfile.TemporaryDirectory() as temp_dir:
        sessions = os.path.join(temp_dir, "sessions")
        os.makedirs(sessions)
        config_path = os.path.join(temp_dir, "dashboard.yaml")
        with open(config_path, "w", encoding="utf-8") as f:
            yaml.dump({
                "sessions_dir": sessions,
                "pricing_path": os.path.join(temp_dir, "openclaw.json"),
                "cache_path": os.path.join(temp_dir, "cache.json"),
                "quota_command": [],
            }, f)
        yield temp_dir, config_path


class TestCLI:
    """Test CLI commands."""

    def test_no_command_prints_hint(self):
        result = runner.invoke(app, [])

        assert result.exit_code == EXIT_CODE_PASS
        assert "Use --help" in result.output

    def test_refresh_scans_and_prints(self, workspace):
        """Test refresh runs a cycle and shows the result."""
        temp_dir, config_path = workspace
        line = json.dumps({
            "type": "message",
            "timestamp": datetime.now().astimezone().isoformat(),
            "message": {
                "role": "assistant", "provider": "openai", "model": "gpt-5",
                "usage": {"input": 10, "output": 5, "totalTokens": 15, "cost": {"total": 0.25}},
            },
        })
        with open(os.path.join(temp_dir, "sessions", "a.jsonl"), "w", encoding="utf-8") as f:
            f.write(line + "\n")

        result = runner.invoke(app, ["--config", config_path, "refresh"])

        assert result.exit_code == EXIT_CODE_PASS
        assert "Usage Summary" in result.output
        assert "$0.2500" in result.output
        assert "openai/gpt-5" in result.output
        assert CacheStore(os.path.join(temp_dir, "cache.json")).load().ok

    def test_refresh_in_progress_fails(self, workspace):
        _, config_path = workspace
        with patch("usage_dashboard.cli.main.RefreshOrchestrator") as mock_orchestrator:
            mock_orchestrator.return_value.refresh.return_value = None
            result = runner.invoke(app, ["--config", config_path, "refresh"])

        assert result.exit_code == EXIT_CODE_FAIL
        assert "already in progress" in result.output

    def test_show_without_cache_fails(self, workspace):
        _, config_path = workspace

        result = runner.invoke(app, ["--config", config_path, "show"])

        assert result.exit_code == EXIT_CODE_FAIL
        assert "No cached usage data found" in result.output

    def test_show_prints_cached_snapshot(self, workspace):
        """Test show reads the cache without scanning."""
        temp_dir, config_path = workspace
        CacheStore(os.path.join(temp_dir, "cache.json")).save(CacheSnapshot(result=make_snapshot()))

        with patch("usage_dashboard.cli.main.RefreshOrchestrator") as mock_orchestrator:
            result = runner.invoke(app, ["--config", config_path, "show"])
            mock_orchestrator.assert_not_called()

        assert result.exit_code == EXIT_CODE_PASS
        assert "$1,234.5000" in result.output
        assert "1.5k" in result.output
        assert "100.0%" in result.output

    def test_tips_prints_cached_tips(self, workspace):
        temp_dir, config_path = workspace
        CacheStore(os.path.join(temp_dir, "cache.json")).save(CacheSnapshot(result=make_snapshot()))

        result = runner.invoke(app, ["--config", config_path, "tips"])

        assert result.exit_code == EXIT_CODE_PASS
        assert "Tips" in result.output
        assert "openai/gpt-5" in result.output

    def test_bad_config_fails(self):
        result = runner.invoke(app, ["--config", "nonexistent.yaml", "show"])

        assert result.exit_code == EXIT_CODE_FAIL
        assert "Error loading configuration" in result.output
