"""
VolSpike CLI 入口

用法:
    volspike scan         # 单次成交量扫描, 打印报告 (配置了 Telegram 时同时推送)
    volspike funding      # 单次资金费率 / 价格波动扫描
    volspike run          # 持续运行全部扫描器
    volspike --config config/default.yaml --debug scan -e binance -t 4h
"""

import argparse
import asyncio
import logging
from dataclasses import replace
from typing import List, Optional

from volspike.core.config import Config, load_config


def setup_logging(level: str = "INFO", fmt: Optional[str] = None, debug: bool = False):
    logging.basicConfig(
        level=logging.DEBUG if debug else getattr(logging, level.upper(), logging.INFO),
        format=fmt or "%(asctime)s - %(levelname)s - %(message)s"
    )


def apply_overrides(config: Config, args) -> Config:
    """命令行参数覆盖配置文件"""
    monitor_overrides = {}
    if getattr(args, "timeframe", None):
        monitor_overrides["interval"] = args.timeframe
    if getattr(args, "multiplier", None) is not None:
        monitor_overrides["volume_multiplier"] = args.multiplier
    if getattr(args, "high_threshold", None) is not None:
        monitor_overrides["high_ratio_threshold"] = args.high_threshold
    if getattr(args, "min_volume", None) is not None:
        monitor_overrides["min_quote_volume"] = args.min_volume
    if getattr(args, "batch_size", None) is not None:
        monitor_overrides["batch_size"] = args.batch_size
    if monitor_overrides:
        # replace() 重新执行 __post_init__ 校验
        config.monitor = replace(config.monitor, **monitor_overrides)
        if "interval" in monitor_overrides:
            # 命令行指定的周期优先于交易所单独配置
            for exc in config.exchanges.values():
                exc.interval = ""

    alert_overrides = {}
    if getattr(args, "funding_threshold", None) is not None:
        alert_overrides["funding_threshold_pct"] = args.funding_threshold
    if getattr(args, "swing_threshold", None) is not None:
        alert_overrides["price_swing_pct"] = args.swing_threshold
    if getattr(args, "no_alerts", False):
        alert_overrides["enabled"] = False
    if alert_overrides:
        config.alerts = replace(config.alerts, **alert_overrides)

    exchanges: List[str] = getattr(args, "exchange", None) or []
    if exchanges:
        for name, exc in config.exchanges.items():
            exc.enabled = name in exchanges

    if getattr(args, "no_telegram", False):
        config.telegram.enabled = False

    return config


def _print_delivery(delivery) -> None:
    if delivery is None:
        return
    status = "✅" if delivery.delivered else f"⚠️ {len(delivery.failed)} failed"
    print(f"Telegram: {len(delivery.segments)} segment(s) {status}")


async def cmd_scan(config: Config):
    """单次成交量扫描"""
    from volspike.scanner import VolumeSpikeScanner

    scanner = VolumeSpikeScanner(config)
    await scanner.start()

    try:
        reports = await scanner.scan_once()
    finally:
        await scanner.stop()

    for report in reports:
        print("=" * 60)
        if report.error:
            print(f"❌ {report.exchange}: {report.error}")
            continue
        print(report.digest)
        _print_delivery(report.delivery)
    print("=" * 60)


async def cmd_funding(config: Config):
    """单次资金费率 / 价格波动扫描"""
    from volspike.scanner import FundingRateScanner

    scanner = FundingRateScanner(config)
    await scanner.start()

    try:
        reports = await scanner.scan_once()
    finally:
        await scanner.stop()

    for report in reports:
        print("=" * 60)
        if report.error:
            print(f"❌ {report.exchange}: {report.error}")
            continue
        if not report.messages:
            print(f"{report.exchange}: no funding or price swing alerts "
                  f"({report.symbols_selected} symbols checked)")
        for message in report.messages:
            print(message)
            print()
        for delivery in report.deliveries:
            _print_delivery(delivery)
    print("=" * 60)


async def cmd_run(config: Config):
    """持续运行"""
    from volspike.main import run_monitors

    print("Running continuously... (Ctrl+C to stop)")
    await run_monitors(config)


def _add_common_options(p: argparse.ArgumentParser) -> None:
    p.add_argument("-e", "--exchange", action="append", choices=["binance", "okx"],
                   help="Exchange to scan (repeatable, default: all enabled)")
    p.add_argument("--min-volume", type=float, help="Min 24h quote volume (USDT)")
    p.add_argument("--batch-size", type=int, help="Concurrent requests per batch")
    p.add_argument("--no-telegram", action="store_true", help="Print only, do not push")


def _add_scan_options(p: argparse.ArgumentParser) -> None:
    p.add_argument("-t", "--timeframe", choices=["1h", "4h", "1d"], help="Candle interval")
    p.add_argument("-m", "--multiplier", type=float, help="Volume ratio threshold")
    p.add_argument("--high-threshold", type=float, help="High ratio marker threshold")


def _add_alert_options(p: argparse.ArgumentParser) -> None:
    p.add_argument("--funding-threshold", type=float, help="Funding rate alert threshold (%%)")
    p.add_argument("--swing-threshold", type=float, help="Price swing alert threshold (%%)")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="volspike",
        description="Perpetual futures volume spike monitor"
    )
    parser.add_argument("--debug", action="store_true", help="Debug mode")
    parser.add_argument("-c", "--config", help="YAML config path (or env VOLSPIKE_CONFIG)")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    scan_parser = subparsers.add_parser("scan", help="Run a single volume scan")
    _add_common_options(scan_parser)
    _add_scan_options(scan_parser)

    funding_parser = subparsers.add_parser("funding", help="Run a single funding rate / price swing scan")
    _add_common_options(funding_parser)
    _add_alert_options(funding_parser)

    run_parser = subparsers.add_parser("run", help="Run all scanners on schedule")
    _add_common_options(run_parser)
    _add_scan_options(run_parser)
    _add_alert_options(run_parser)
    run_parser.add_argument("--no-alerts", action="store_true",
                            help="Disable the funding rate / price swing scanner")

    return parser


def main(argv: Optional[List[str]] = None):
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return

    config = apply_overrides(load_config(args.config), args)
    setup_logging(config.log_level, config.log_format, args.debug)

    try:
        if args.command == "scan":
            asyncio.run(cmd_scan(config))
        elif args.command == "funding":
            asyncio.run(cmd_funding(config))
        elif args.command == "run":
            asyncio.run(cmd_run(config))
    except KeyboardInterrupt:
        print("\n👋 Stopping...")


if __name__ == "__main__":
    main()
