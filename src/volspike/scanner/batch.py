"""
分批并发调度

把交易对按固定大小分组:
1. 组内并发请求，全部完成后再继续
2. 组与组之间暂停 inter_batch_delay 秒，避免触发交易所限频
3. 单个交易对失败 (None 或异常) 直接丢弃，不影响同组其他请求
"""

import asyncio
import logging
from typing import Awaitable, Callable, Iterator, List, Optional, Sequence, TypeVar

from ..core.exceptions import ValidationError

logger = logging.getLogger(__name__)

T = TypeVar("T")

SleepFn = Callable[[float], Awaitable[None]]


def chunked(items: Sequence[str], size: int) -> Iterator[Sequence[str]]:
    """按 size 切分为连续分组"""
    for i in range(0, len(items), size):
        yield items[i:i + size]


async def process_in_batches(
    symbols: Sequence[str],
    batch_size: int,
    inter_batch_delay: float,
    fetch_fn: Callable[[str], Awaitable[Optional[T]]],
    sleep: SleepFn = asyncio.sleep,
) -> List[T]:
    """
    分批执行 fetch_fn

    Args:
        symbols: 交易对列表
        batch_size: 每组最大并发数
        inter_batch_delay: 组间暂停 (秒)
        fetch_fn: 单个交易对的异步获取函数, 失败返回 None
        sleep: 暂停函数 (测试时注入)

    Returns:
        成功结果列表, 顺序与输入一致
    """
    if batch_size < 1:
        raise ValidationError(f"batch_size must be >= 1, got {batch_size}", field="batch_size")
    if inter_batch_delay < 0:
        raise ValidationError("inter_batch_delay must be >= 0", field="inter_batch_delay")

    results: List[T] = []
    batches = list(chunked(list(symbols), batch_size))

    for index, batch in enumerate(batches):
        outcomes = await asyncio.gather(
            *(fetch_fn(symbol) for symbol in batch),
            return_exceptions=True,
        )

        for symbol, outcome in zip(batch, outcomes):
            if isinstance(outcome, asyncio.CancelledError):
                raise outcome
            if isinstance(outcome, BaseException):
                logger.error(f"Error processing {symbol}: {outcome!r}")
                continue
            if outcome is not None:
                results.append(outcome)

        logger.debug(f"Batch {index + 1}/{len(batches)} done ({len(batch)} symbols)")

        if index < len(batches) - 1:
            await sleep(inter_batch_delay)

    return results
