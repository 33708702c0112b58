"""EventBatcher — デバウンス付きイベント送信"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Sequence
from typing import Protocol

from . import metrics
from .models import QueuedEvent

logger = logging.getLogger(__name__)

FLUSH_DELAY_SECONDS = 2.0


class _EventSender(Protocol):
    """イベントバッチを送信するプロトコル。"""

    async def post_events(self, events: Sequence[QueuedEvent]) -> None: ...


class EventBatcher:
    """評価・ゴールイベントを溜め、一定時間後にまとめて送信する。

    送信はファイア・アンド・フォーゲットで、失敗は再送せずログとカウンタに残す。
    """

    def __init__(self, sender: _EventSender, delay: float = FLUSH_DELAY_SECONDS) -> None:
        self._sender = sender
        self._delay = delay
        self._queue: list[QueuedEvent] = []
        self._timer: asyncio.Task[None] | None = None
        self._in_flight: set[asyncio.Task[None]] = set()
        self.sent_batches = 0
        self.dropped_batches = 0

    @property
    def pending(self) -> int:
        return len(self._queue)

    @property
    def flush_scheduled(self) -> bool:
        return self._timer is not None

    def enqueue(self, event: QueuedEvent) -> None:
        """イベントを追加し、未予約なら送信を予約する。"""
        self._queue.append(event)
        if self._timer is not None:
            return
        try:
            self._timer = asyncio.get_running_loop().create_task(self._delayed_flush())
        except RuntimeError:
            # イベントループ外: 次回の enqueue か close で送信される
            logger.debug("No running event loop, deferring event flush")

    async def _delayed_flush(self) -> None:
        await asyncio.sleep(self._delay)
        self._timer = None
        self.flush()

    def flush(self) -> asyncio.Task[None] | None:
        """バッファを取り出して 1 回の送信を発行する。実行中のイベントループが必要。"""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if not self._queue:
            return None
        batch, self._queue = self._queue, []
        task = asyncio.get_running_loop().create_task(self._deliver(batch))
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)
        return task

    async def _deliver(self, batch: list[QueuedEvent]) -> None:
        try:
            await self._sender.post_events(batch)
        except Exception as e:
            self.dropped_batches += 1
            metrics.event_batches_dropped_total.add(1)
            logger.warning(
                "Discarded event batch after failed flush",
                extra={"event_count": len(batch), "error": str(e)},
            )
            return
        self.sent_batches += 1
        metrics.event_batches_sent_total.add(1)

    async def close(self, flush: bool = True) -> None:
        """予約中のタイマーを止め、残りを送信して送信中のバッチを待つ。"""
        if self._timer is not None:
            timer, self._timer = self._timer, None
            timer.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await timer
        if flush:
            self.flush()
        else:
            self._queue.clear()
        if self._in_flight:
            await asyncio.gather(*self._in_flight)
