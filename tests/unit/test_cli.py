"""
测试命令行参数
"""

import pytest

from volspike.cli import apply_overrides, build_parser
from volspike.core.config import Config
from volspike.core.exceptions import ValidationError


def test_scan_options():
    args = build_parser().parse_args(
        ["--debug", "scan", "-e", "binance", "-t", "4h", "-m", "3", "--min-volume", "5e7", "--no-telegram"]
    )

    config = apply_overrides(Config(), args)

    assert args.debug is True
    assert config.monitor.interval == "4h"
    assert config.monitor.volume_multiplier == 3.0
    assert config.monitor.min_quote_volume == 5e7
    assert [e.name for e in config.enabled_exchanges()] == ["binance"]
    assert config.telegram.enabled is False


def test_no_overrides_keeps_config():
    args = build_parser().parse_args(["run"])
    config = apply_overrides(Config(), args)

    assert config.monitor == Config().monitor
    assert len(config.enabled_exchanges()) == 2


def test_invalid_override_is_rejected():
    args = build_parser().parse_args(["scan", "-m", "6"])

    with pytest.raises(ValidationError):
        apply_overrides(Config(), args)


def test_funding_options():
    args = build_parser().parse_args(
        ["funding", "-e", "okx", "--funding-threshold", "0.3", "--swing-threshold", "8"]
    )

    config = apply_overrides(Config(), args)

    assert args.command == "funding"
    assert config.alerts.funding_threshold_pct == 0.3
    assert config.alerts.price_swing_pct == 8.0
    assert [e.name for e in config.enabled_exchanges()] == ["okx"]
    assert config.monitor == Config().monitor


def test_run_can_disable_alerts():
    args = build_parser().parse_args(["run", "--no-alerts"])
    config = apply_overrides(Config(), args)

    assert config.alerts.enabled is False


def test_timeframe_override_clears_exchange_interval():
    config = Config()
    config.exchanges["okx"].interval = "1h"
    args = build_parser().parse_args(["scan", "-t", "4h"])

    config = apply_overrides(config, args)

    assert config.monitor.interval == "4h"
    assert config.exchanges["okx"].interval == ""


def test_invalid_funding_threshold_is_rejected():
    args = build_parser().parse_args(["funding", "--funding-threshold", "0"])

    with pytest.raises(ValidationError):
        apply_overrides(Config(), args)
