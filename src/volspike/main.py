"""
VolSpike 主入口

默认以持续模式运行: 成交量异动扫描器按 monitor.schedule_* 定时执行,
资金费率 / 价格波动扫描器 (alerts.enabled) 按 alerts.schedule_* 定时执行。
"""

import asyncio
import logging

from volspike.core.config import Config, load_config
from volspike.scanner import run_funding_scanner, run_volume_scanner

logger = logging.getLogger(__name__)


async def run_monitors(config: Config) -> None:
    """并发运行所有已启用的扫描器, 任意一个退出则全部停止"""
    tasks = [asyncio.create_task(run_volume_scanner(config, continuous=True))]
    if config.alerts.enabled:
        tasks.append(asyncio.create_task(run_funding_scanner(config, continuous=True)))

    try:
        await asyncio.gather(*tasks)
    finally:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)


async def main() -> None:
    config = load_config()

    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format=config.log_format,
    )
    logger.info(f"Exchanges: {[e.name for e in config.enabled_exchanges()]}")

    await run_monitors(config)


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass
