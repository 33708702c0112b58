"""クライアントイベントとイベントバス"""

from __future__ import annotations

import inspect
import logging
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

logger = logging.getLogger(__name__)


class ClientEvent(StrEnum):
    """クライアントが発行するイベント名。"""

    INIT = "INIT"
    LOADED = "LOADED"
    LOADED_FROM_CACHE = "LOADED_FROM_CACHE"
    ERROR = "ERROR"
    UPDATED = "UPDATED"


EventCallback = Callable[[Any], Awaitable[None] | None]


@dataclass(frozen=True)
class Subscription:
    """on() が返す購読トークン。off() に渡して解除する。"""

    event: str
    id: str = field(default_factory=lambda: str(uuid.uuid4()))


class EventBus:
    """イベント名ごとの購読・発行。同期・非同期どちらのコールバックも受け付ける。"""

    def __init__(self) -> None:
        self._handlers: dict[str, dict[str, EventCallback]] = {}

    def on(self, event: str, callback: EventCallback) -> Subscription:
        subscription = Subscription(event=str(event))
        self._handlers.setdefault(subscription.event, {})[subscription.id] = callback
        return subscription

    def off(self, event: str, subscription: Subscription | None = None) -> None:
        """購読を解除する。トークン省略時はそのイベントの全購読を解除する。"""
        event = str(event)
        if subscription is None:
            self._handlers.pop(event, None)
            return
        handlers = self._handlers.get(event)
        if handlers is not None:
            handlers.pop(subscription.id, None)
            if not handlers:
                del self._handlers[event]

    def listener_count(self, event: str) -> int:
        return len(self._handlers.get(str(event), {}))

    def clear(self) -> None:
        self._handlers.clear()

    async def emit(self, event: str, payload: Any = None) -> None:
        """購読者へ順に通知する。購読者の例外はログに残して次へ進む。"""
        for callback in list(self._handlers.get(str(event), {}).values()):
            try:
                result = callback(payload)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Event listener failed", extra={"event": str(event)})
