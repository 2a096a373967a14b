"""ローカル評価が確定できない場合のリモート評価クライアント"""

from __future__ import annotations

from typing import Any

import structlog

from .exceptions import StatsigError, StatsigErrorCodes
from .metadata import get_statsig_metadata
from .models import DynamicConfig, StatsigUser
from .transport import Transport

REMOTE_TIMEOUT_MS = 5000

logger = structlog.stdlib.get_logger(__name__)


class RemoteFallbackClient:
    """/check_gate と /get_config への委譲を行う。"""

    def __init__(self, transport: Transport, api: str) -> None:
        self._transport = transport
        self._api = api.rstrip("/")

    async def _post(self, path: str, body: dict[str, Any]) -> dict[str, Any]:
        resp = await self._transport.dispatch(self._api + path, body, REMOTE_TIMEOUT_MS)
        try:
            data = resp.json()
        except ValueError as e:
            raise StatsigError(
                code=StatsigErrorCodes.HTTP_ERROR,
                message=f"Invalid JSON response from {path}: {e}",
                cause=e,
            ) from e
        if not isinstance(data, dict):
            raise StatsigError(
                code=StatsigErrorCodes.HTTP_ERROR,
                message=f"Unexpected response shape from {path}",
            )
        return data

    async def check_gate(self, user: StatsigUser, gate_name: str) -> dict[str, Any]:
        """ゲートをリモートで評価する。失敗は呼び出し元に伝播する。"""
        return await self._post(
            "/check_gate",
            {
                "user": user.to_dict(),
                "gateName": gate_name,
                "statsigMetadata": get_statsig_metadata(),
            },
        )

    async def get_config(self, user: StatsigUser, config_name: str) -> DynamicConfig:
        """コンフィグをリモートで評価する。失敗時は空の DynamicConfig を返す。"""
        try:
            data = await self._post(
                "/get_config",
                {
                    "user": user.to_dict(),
                    "configName": config_name,
                    "statsigMetadata": get_statsig_metadata(),
                },
            )
        except Exception as e:
            logger.warning("remote config evaluation failed", config_name=config_name, error=str(e))
            return DynamicConfig(config_name)
        value = data.get("value")
        return DynamicConfig(
            config_name,
            value if isinstance(value, dict) else {},
            str(data.get("rule_id") or ""),
        )
