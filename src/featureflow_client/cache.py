"""鮮度付きフィーチャーキャッシュ"""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from . import metrics
from .exceptions import FeatureflowErrorCodes, MalformedCacheError, StorageError
from .models import Feature, features_from_json, features_to_json
from .storage import FeatureflowStorage

logger = logging.getLogger(__name__)

# フォーマット変更時はバージョンを上げて旧エントリを無効化する
CACHE_KEY_PREFIX = "ff:py:v2"
DEFAULT_CACHE_TTL_MS = 10_000


@dataclass
class CacheEntry:
    """キャッシュエントリ。timestamp は epoch ミリ秒、旧形式では None。"""

    features: dict[str, Feature]
    timestamp: int | None
    is_fresh: bool = False


class FreshnessCache:
    """(user_id, api_key) 単位でフィーチャーセットを保存し、鮮度を判定する。"""

    def __init__(
        self,
        storage: FeatureflowStorage,
        api_key: str,
        ttl_ms: int = DEFAULT_CACHE_TTL_MS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._storage = storage
        self._api_key = api_key
        self._ttl_ms = ttl_ms
        self._clock = clock

    def key_for(self, user_id: str) -> str:
        return f"{CACHE_KEY_PREFIX}:{user_id}:{self._api_key}"

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    async def load(self, user_id: str) -> CacheEntry | None:
        """キャッシュを読み出す。読み出し失敗や破損はキャッシュミスとして扱う。"""
        try:
            entry = await self._read(user_id)
        except (StorageError, MalformedCacheError) as e:
            logger.warning(
                "Failed to load features from cache",
                extra={"user_id": user_id, "error": str(e)},
            )
            entry = None
        if entry is None:
            metrics.cache_lookups_total.add(1, {"result": "miss"})
        else:
            metrics.cache_lookups_total.add(1, {"result": "fresh" if entry.is_fresh else "stale"})
        return entry

    async def _read(self, user_id: str) -> CacheEntry | None:
        try:
            raw = await self._storage.get_item(self.key_for(user_id))
        except Exception as e:
            raise StorageError(
                code=FeatureflowErrorCodes.STORAGE_READ,
                message=f"Failed to read cache entry: {e}",
                cause=e,
            ) from e
        if not raw:
            return None
        return self._parse(raw)

    def _parse(self, raw: str) -> CacheEntry:
        try:
            payload: Any = json.loads(raw)
        except ValueError as e:
            raise MalformedCacheError(f"Cache entry is not valid JSON: {e}", cause=e) from e
        if not isinstance(payload, dict):
            raise MalformedCacheError("Cache entry is not a JSON object")

        timestamp = payload.get("timestamp")
        if "features" in payload:
            blob = payload["features"]
        else:
            # 旧形式: フィーチャーの辞書そのもの
            blob, timestamp = payload, None
        if isinstance(timestamp, bool) or not isinstance(timestamp, (int, float)):
            timestamp = None

        try:
            features = features_from_json(blob)
        except ValueError as e:
            raise MalformedCacheError(f"Cache entry has invalid features: {e}", cause=e) from e

        is_fresh = timestamp is not None and self._now_ms() - timestamp < self._ttl_ms
        return CacheEntry(
            features=features,
            timestamp=int(timestamp) if timestamp is not None else None,
            is_fresh=is_fresh,
        )

    async def save(self, user_id: str, features: dict[str, Feature]) -> None:
        """現在時刻のタイムスタンプ付きで保存する。失敗はログのみ。"""
        payload = json.dumps({"features": features_to_json(features), "timestamp": self._now_ms()})
        try:
            await self._storage.set_item(self.key_for(user_id), payload)
        except Exception as e:
            error = StorageError(
                code=FeatureflowErrorCodes.STORAGE_WRITE,
                message=f"Failed to save features to cache: {e}",
                cause=e,
            )
            logger.warning(
                "Failed to save features to cache",
                extra={"user_id": user_id, "error": str(error)},
            )
