"""httpx を使った送信トランスポート"""

from __future__ import annotations

from typing import Any, Protocol

import httpx

from .exceptions import StatsigError, StatsigErrorCodes
from .metadata import SDK_TYPE, SDK_VERSION
from .models import now_ms


class Transport(Protocol):
    """リモート API への送信プロトコル。"""

    async def dispatch(
        self, url: str, body: dict[str, Any], timeout_ms: int
    ) -> httpx.Response: ...

    async def shutdown(self) -> None: ...


class HttpTransport:
    """httpx.AsyncClient による POST 送信。"""

    def __init__(self, secret_key: str) -> None:
        self._headers: dict[str, str] = {
            "Content-Type": "application/json; charset=UTF-8",
            "STATSIG-API-KEY": secret_key,
            "STATSIG-SDK-TYPE": SDK_TYPE,
            "STATSIG-SDK-VERSION": SDK_VERSION,
        }
        self._client: httpx.AsyncClient | None = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(headers=self._headers)
        return self._client

    def _handle_error(self, resp: httpx.Response, url: str) -> None:
        if resp.status_code >= 400:
            raise StatsigError(
                code=StatsigErrorCodes.HTTP_ERROR,
                message=f"{url}: HTTP {resp.status_code}: {resp.text}",
            )

    async def dispatch(
        self, url: str, body: dict[str, Any], timeout_ms: int
    ) -> httpx.Response:
        """body を JSON として POST し、レスポンスを返す。

        Raises:
            StatsigError: HTTP エラーまたは通信失敗の場合
        """
        try:
            resp = await self._get_client().post(
                url,
                json=body,
                headers={"STATSIG-CLIENT-TIME": str(now_ms())},
                timeout=timeout_ms / 1000,
            )
            self._handle_error(resp, url)
            return resp
        except StatsigError:
            raise
        except Exception as e:
            raise StatsigError(
                code=StatsigErrorCodes.NETWORK_ERROR,
                message=f"Failed to dispatch request to {url}: {e}",
                cause=e,
            ) from e

    async def shutdown(self) -> None:
        """コネクションプールを閉じる。以降の dispatch は新しいクライアントを使う。"""
        if self._client is not None:
            client, self._client = self._client, None
            await client.aclose()
