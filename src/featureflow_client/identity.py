"""匿名 ID ストア"""

from __future__ import annotations

import logging
import secrets
import time

from .storage import FeatureflowStorage

logger = logging.getLogger(__name__)

ANONYMOUS_ID_KEY = "ff-anonymous-id"
ANONYMOUS_PREFIX = "anonymous:"

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def _base36(number: int) -> str:
    digits = []
    while number:
        number, rem = divmod(number, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits)) or "0"


def generate_anonymous_id() -> str:
    """乱数と現在時刻から匿名 ID を生成する。"""
    random_part = _base36(secrets.randbits(52))
    time_part = _base36(int(time.time() * 1000))
    return f"{ANONYMOUS_PREFIX}{random_part}{time_part}"


class AnonymousIdStore:
    """未認証ユーザー用の匿名 ID を遅延生成して永続化する。"""

    def __init__(self, storage: FeatureflowStorage) -> None:
        self._storage = storage

    async def get_anonymous_id(self) -> str:
        try:
            stored = await self._storage.get_item(ANONYMOUS_ID_KEY)
        except Exception as e:
            logger.warning(
                "Failed to read anonymous id",
                extra={"error": str(e)},
            )
            stored = None
        if stored:
            return stored
        return await self.reset_anonymous_id()

    async def reset_anonymous_id(self) -> str:
        anonymous_id = generate_anonymous_id()
        try:
            await self._storage.set_item(ANONYMOUS_ID_KEY, anonymous_id)
        except Exception as e:
            logger.warning(
                "Failed to save anonymous id",
                extra={"error": str(e)},
            )
        return anonymous_id
