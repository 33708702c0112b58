"""featureflow HTTP REST クライアント実装"""

from __future__ import annotations

import asyncio
import base64
import json
from collections.abc import Sequence
from typing import Any

import httpx

from ._version import __version__
from .exceptions import (
    FeatureflowErrorCodes,
    NetworkError,
    NetworkTimeoutError,
)
from .models import Feature, QueuedEvent, User, features_from_json

CLIENT_HEADER = "X-Featureflow-Client"
CLIENT_NAME = "PythonClient"


def encode_user(user: User) -> str:
    """ユーザーを URL セーフな base64 の JSON にエンコードする。"""
    payload = json.dumps(user.to_dict(), separators=(",", ":"))
    return base64.urlsafe_b64encode(payload.encode("utf-8")).decode("ascii")


class RestClient:
    """httpx を使ったフィーチャー取得・イベント送信クライアント。"""

    def __init__(
        self,
        api_key: str,
        base_url: str,
        events_url: str,
        timeout_ms: int,
    ) -> None:
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._events_url = events_url.rstrip("/")
        self._timeout = timeout_ms / 1000.0
        self._headers = {CLIENT_HEADER: f"{CLIENT_NAME}/{__version__}"}

    def _make_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(headers=self._headers, timeout=self._timeout)

    def features_url(self, user: User, keys: Sequence[str] | None = None) -> str:
        url = f"{self._base_url}/api/js/v1/evaluate/{self._api_key}/user/{encode_user(user)}"
        if keys:
            url += "?keys=" + ",".join(keys)
        return url

    @property
    def events_endpoint(self) -> str:
        return f"{self._events_url}/api/js/v1/event/{self._api_key}"

    async def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        # httpx のタイムアウトはフェーズ単位なので、リクエスト全体を別途打ち切る
        try:
            async with asyncio.timeout(self._timeout):
                async with self._make_client() as client:
                    return await client.request(method, url, **kwargs)
        except (httpx.TimeoutException, TimeoutError) as e:
            raise NetworkTimeoutError(f"Request timeout: {method} {url}", cause=e) from e
        except httpx.HTTPError as e:
            raise NetworkError(
                code=FeatureflowErrorCodes.TRANSPORT,
                message=f"Request failed: {e}",
                cause=e,
            ) from e

    async def get_features(
        self, user: User, keys: Sequence[str] | None = None
    ) -> dict[str, Feature]:
        """ユーザーに対するフィーチャー定義を取得する。"""
        resp = await self._send("GET", self.features_url(user, keys))
        if resp.status_code != 200:
            raise NetworkError(
                code=FeatureflowErrorCodes.HTTP_STATUS,
                message=f"HTTP {resp.status_code}: {resp.reason_phrase}",
            )
        content_type = resp.headers.get("Content-Type", "")
        if "application/json" not in content_type:
            raise NetworkError(
                code=FeatureflowErrorCodes.CONTENT_TYPE,
                message=f"Unexpected content type: {content_type or '<none>'}",
            )
        try:
            return features_from_json(resp.json())
        except ValueError as e:
            raise NetworkError(
                code=FeatureflowErrorCodes.CONTENT_TYPE,
                message=f"Invalid feature payload: {e}",
                cause=e,
            ) from e

    async def post_events(self, events: Sequence[QueuedEvent]) -> None:
        """イベントをまとめて送信する。レスポンス本文は読まない。"""
        resp = await self._send(
            "POST",
            self.events_endpoint,
            json=[event.to_dict() for event in events],
        )
        if resp.status_code >= 400:
            raise NetworkError(
                code=FeatureflowErrorCodes.HTTP_STATUS,
                message=f"HTTP {resp.status_code}: {resp.reason_phrase}",
            )
