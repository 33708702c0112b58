"""テスト共通フィクスチャ"""

import asyncio
import contextlib
from collections.abc import AsyncIterator

import pytest

SLOW_BODY = b'{"f":"on","g":"off"}'


@pytest.fixture
async def slow_server(monkeypatch: pytest.MonkeyPatch) -> AsyncIterator[str]:
    """本文を 200ms ごとに 2 バイトずつ返すローカル HTTP サーバー。

    各読み込みはフェーズ単位のタイムアウトに収まるが、全体では約 2 秒かかる。
    """
    for name in ("HTTP_PROXY", "HTTPS_PROXY", "ALL_PROXY", "http_proxy", "https_proxy", "all_proxy"):
        monkeypatch.delenv(name, raising=False)

    handlers: set[asyncio.Task] = set()

    async def handle(reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        task = asyncio.current_task()
        if task is not None:
            handlers.add(task)
        with contextlib.suppress(
            ConnectionError, asyncio.IncompleteReadError, asyncio.CancelledError
        ):
            await reader.readuntil(b"\r\n\r\n")
            writer.write(
                b"HTTP/1.1 200 OK\r\n"
                b"Content-Type: application/json\r\n"
                b"Content-Length: " + str(len(SLOW_BODY)).encode() + b"\r\n"
                b"Connection: close\r\n\r\n"
            )
            await writer.drain()
            for i in range(0, len(SLOW_BODY), 2):
                await asyncio.sleep(0.2)
                writer.write(SLOW_BODY[i : i + 2])
                await writer.drain()
        writer.close()

    server = await asyncio.start_server(handle, "127.0.0.1", 0)
    port = server.sockets[0].getsockname()[1]
    try:
        yield f"http://127.0.0.1:{port}"
    finally:
        for task in handlers:
            task.cancel()
        await asyncio.gather(*handlers, return_exceptions=True)
        server.close()
        await server.wait_closed()
