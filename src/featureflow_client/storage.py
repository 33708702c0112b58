"""永続キー・バリューストレージ"""

from __future__ import annotations

import asyncio
import json
from abc import ABC, abstractmethod
from pathlib import Path


class FeatureflowStorage(ABC):
    """文字列 blob を保存する非同期ストレージの抽象基底クラス。"""

    @abstractmethod
    async def get_item(self, key: str) -> str | None:
        """キーに対応する値を取得する。存在しなければ None。"""
        ...

    @abstractmethod
    async def set_item(self, key: str, value: str) -> None:
        """キーと値を保存する。"""
        ...

    @abstractmethod
    async def remove_item(self, key: str) -> None:
        """キーを削除する。"""
        ...


class InMemoryStorage(FeatureflowStorage):
    """インメモリストレージ。テストや永続化不要の環境向け。"""

    def __init__(self) -> None:
        self._store: dict[str, str] = {}

    async def get_item(self, key: str) -> str | None:
        return self._store.get(key)

    async def set_item(self, key: str, value: str) -> None:
        self._store[key] = value

    async def remove_item(self, key: str) -> None:
        self._store.pop(key, None)

    def clear(self) -> None:
        self._store.clear()


class JsonFileStorage(FeatureflowStorage):
    """JSON ファイル 1 つに全キーを保存するストレージ。

    ファイル I/O はイベントループを塞がないようスレッドで行う。
    """

    def __init__(self, path: Path | str) -> None:
        self._path = Path(path)
        self._lock = asyncio.Lock()

    def _read(self) -> dict[str, str]:
        if not self._path.exists():
            return {}
        data = json.loads(self._path.read_text(encoding="utf-8") or "{}")
        if not isinstance(data, dict):
            raise ValueError(f"Storage file is not a JSON object: {self._path}")
        return data

    def _write(self, data: dict[str, str]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_suffix(self._path.suffix + ".tmp")
        tmp.write_text(json.dumps(data), encoding="utf-8")
        tmp.replace(self._path)

    async def get_item(self, key: str) -> str | None:
        async with self._lock:
            data = await asyncio.to_thread(self._read)
        return data.get(key)

    async def set_item(self, key: str, value: str) -> None:
        async with self._lock:
            data = await asyncio.to_thread(self._read)
            data[key] = value
            await asyncio.to_thread(self._write, data)

    async def remove_item(self, key: str) -> None:
        async with self._lock:
            data = await asyncio.to_thread(self._read)
            if data.pop(key, None) is not None:
                await asyncio.to_thread(self._write, data)


def create_storage(path: Path | str | None = None) -> FeatureflowStorage:
    """パス指定があればファイルストレージ、無ければ新しいインメモリストレージを返す。"""
    if path is not None:
        return JsonFileStorage(path)
    return InMemoryStorage()
