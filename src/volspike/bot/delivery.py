"""
分段推送

Telegram 单条消息有长度上限，长报告需要拆分:
1. 优先在 max_length 以内最后一个换行处拆分 (换行符被消耗)
2. 换行位于前半段之前 (或不存在) 时，在 max_length 处硬拆分
3. 每段独立重试，失败不影响后续分段
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Optional

from ..core.exceptions import DeliveryFailure, ValidationError

logger = logging.getLogger(__name__)

SendFn = Callable[[str], Awaitable[bool]]
SleepFn = Callable[[float], Awaitable[None]]


def split_message(text: str, max_length: int) -> List[str]:
    """按 max_length 拆分文本，不会产生超长分段"""
    if max_length < 2:
        raise ValidationError(f"max_length must be >= 2, got {max_length}", field="max_length")
    if len(text) <= max_length:
        return [text]

    segments: List[str] = []
    rest = text
    while len(rest) > max_length:
        cut = rest.rfind("\n", 0, max_length + 1)
        if cut >= max_length // 2:
            segments.append(rest[:cut])
            rest = rest[cut + 1:]
        else:
            segments.append(rest[:max_length])
            rest = rest[max_length:]
    if rest:
        segments.append(rest)
    return segments


@dataclass
class SegmentStatus:
    """单个分段的推送结果"""
    index: int
    length: int
    delivered: bool = False
    attempts: int = 0
    error: Optional[DeliveryFailure] = None


@dataclass
class DeliveryReport:
    """整条消息的推送结果"""
    segments: List[SegmentStatus] = field(default_factory=list)

    @property
    def delivered(self) -> bool:
        return all(s.delivered for s in self.segments)

    @property
    def failed(self) -> List[SegmentStatus]:
        return [s for s in self.segments if not s.delivered]

    def raise_for_failures(self) -> None:
        failed = self.failed
        if failed:
            indices = [s.index for s in failed]
            raise DeliveryFailure(
                f"{len(failed)}/{len(self.segments)} segments failed: {indices}",
                segment_indices=indices,
            )


class ChunkedDelivery:
    """带重试和分段间隔的消息推送"""

    def __init__(
        self,
        send: SendFn,
        max_segment_length: int = 4000,
        max_retries: int = 3,
        retry_delay: float = 2.0,
        segment_delay: float = 0.5,
        sleep: SleepFn = asyncio.sleep,
    ):
        if max_retries < 1:
            raise ValidationError(f"max_retries must be >= 1, got {max_retries}", field="max_retries")
        self._send = send
        self.max_segment_length = max_segment_length
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.segment_delay = segment_delay
        self._sleep = sleep

    async def deliver(self, text: str) -> DeliveryReport:
        segments = split_message(text, self.max_segment_length)
        report = DeliveryReport()

        for index, segment in enumerate(segments):
            if index > 0:
                await self._sleep(self.segment_delay)
            status = await self._deliver_segment(index, segment)
            report.segments.append(status)

        if report.failed:
            logger.error(
                f"Delivery incomplete: {len(report.failed)}/{len(segments)} segments failed"
            )
        else:
            logger.info(f"Delivered {len(segments)} segment(s)")
        return report

    async def _deliver_segment(self, index: int, segment: str) -> SegmentStatus:
        status = SegmentStatus(index=index, length=len(segment))
        last_error = ""

        for attempt in range(1, self.max_retries + 1):
            status.attempts = attempt
            try:
                if await self._send(segment):
                    status.delivered = True
                    return status
                last_error = "transport returned failure"
            except Exception as e:
                last_error = repr(e)
            logger.warning(
                f"Segment {index} attempt {attempt}/{self.max_retries} failed: {last_error}"
            )
            if attempt < self.max_retries:
                await self._sleep(self.retry_delay)

        status.error = DeliveryFailure(
            f"Segment {index} failed after {self.max_retries} attempts: {last_error}",
            segment_indices=[index],
        )
        return status
