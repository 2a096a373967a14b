"""StatsigServer — ゲート・コンフィグ・レイヤー評価とイベントログの公開 API"""

from __future__ import annotations

import asyncio
import math
from typing import Any, Mapping, Union

import structlog

from .dispatcher import EvaluationDispatcher
from .evaluator import Evaluator, InMemoryEvaluator
from .exceptions import StatsigError, StatsigErrorCodes
from .exposure import ExposureEmitter
from .lifecycle import LifecycleManager, LifecycleState
from .log_queue import InMemoryLogQueue, LogQueue
from .logger import configure_logging
from .models import DynamicConfig, Layer, LogEvent, StatsigUser, now_ms
from .options import StatsigOptions
from .remote import RemoteFallbackClient
from .sanitizer import (
    is_user_identifiable,
    is_valid_event_value,
    normalize_user,
    sanitize_event,
)
from .transport import HttpTransport, Transport

UserLike = Union[StatsigUser, Mapping[str, Any], None]

logger = structlog.stdlib.get_logger(__name__)


def _coerce_user(user: UserLike) -> StatsigUser | None:
    if user is None or isinstance(user, StatsigUser):
        return user
    return StatsigUser.from_dict(user)


def _event_time(value: Any) -> int:
    # 呼び出し元が数値で指定した場合のみ採用する
    if isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value):
        return int(value)
    return now_ms()


class StatsigServer:
    """フィーチャーゲート・コンフィグ・エクスペリメント・レイヤーを評価するサーバー SDK。

    評価・イベントログの前に ``await server.initialize()`` を呼び出すこと。
    コラボレーター（評価エンジン・トランスポート・ログキュー）は差し替え可能。
    ``local_mode`` ではトランスポートとログキューを使わない。
    """

    def __init__(
        self,
        secret_key: str,
        options: StatsigOptions | None = None,
        *,
        evaluator: Evaluator | None = None,
        transport: Transport | None = None,
        log_queue: LogQueue | None = None,
    ) -> None:
        self._options = options or StatsigOptions()
        if self._options.log.configure:
            configure_logging(self._options.log)

        self._evaluator: Evaluator = evaluator or InMemoryEvaluator()
        if self._options.local_mode:
            self._transport: Transport | None = None
            self._log_queue: LogQueue | None = None
            remote = None
        else:
            self._transport = transport or HttpTransport(secret_key)
            self._log_queue = log_queue or InMemoryLogQueue()
            remote = RemoteFallbackClient(self._transport, self._options.api_base)

        self._lifecycle = LifecycleManager(
            secret_key,
            self._options,
            self._evaluator,
            self._transport,
            self._log_queue,
        )
        self._dispatcher = EvaluationDispatcher(
            self._evaluator,
            remote,
            ExposureEmitter(self._log_queue),
            self._lifecycle.is_ready,
            self._options.environment,
        )
        self._warned_no_user_id = False

    @property
    def options(self) -> StatsigOptions:
        return self._options

    @property
    def state(self) -> LifecycleState:
        return self._lifecycle.state

    def is_ready(self) -> bool:
        return self._lifecycle.is_ready()

    def initialize(self) -> asyncio.Future[None]:
        """SDK を初期化する。実行中のイベントループ内から呼び出し、戻り値を await する。

        Raises:
            StatsigError: サーバーシークレットキーの形式が不正な場合
        """
        return self._lifecycle.initialize()

    async def check_gate(self, user: UserLike, gate_name: str) -> bool:
        """ゲートの値を返す。

        Raises:
            StatsigError: 未初期化・名前不正・識別不能ユーザー、
                またはリモート評価の失敗
        """
        return await self._dispatcher.check_gate(_coerce_user(user), gate_name)

    async def get_config(self, user: UserLike, config_name: str) -> DynamicConfig:
        """コンフィグを返す。入力が正しければリモート失敗時も空のコンフィグを返す。"""
        return await self._dispatcher.get_config(_coerce_user(user), config_name, "config_name")

    async def get_experiment(self, user: UserLike, experiment_name: str) -> DynamicConfig:
        """エクスペリメントを返す。"""
        return await self._dispatcher.get_config(
            _coerce_user(user), experiment_name, "experiment_name"
        )

    async def get_layer(self, user: UserLike, layer_name: str) -> Layer:
        """レイヤーを返す。エクスポージャーはパラメータ読み出し時に記録される。"""
        return await self._dispatcher.get_layer(_coerce_user(user), layer_name)

    def log_event(
        self,
        user: UserLike,
        event_name: str,
        value: str | int | float | None = None,
        metadata: Mapping[str, Any] | None = None,
    ) -> None:
        """イベントを記録する。

        Future を返さないため、未初期化の場合は同期的に例外を送出する。

        Raises:
            StatsigError: initialize() 前に呼び出した場合
        """
        self.log_event_object(
            {
                "event_name": event_name,
                "user": user,
                "value": value,
                "metadata": metadata,
            }
        )

    def log_event_object(self, event_object: Mapping[str, Any]) -> None:
        """``event_name`` / ``user`` / ``value`` / ``metadata`` / ``time`` を持つ辞書からイベントを記録する。"""
        event_name = event_object.get("event_name")
        user = _coerce_user(event_object.get("user"))
        value = event_object.get("value")
        metadata = event_object.get("metadata")
        event_time = event_object.get("time")

        if not self._lifecycle.is_ready():
            raise StatsigError(
                code=StatsigErrorCodes.NOT_INITIALIZED,
                message="Must call initialize() first.",
            )
        if not isinstance(event_name, str) or len(event_name) == 0:
            logger.error("log_event requires a non-empty string event name")
            return
        if not is_valid_event_value(value):
            logger.error(
                "log_event value must be a string, number or None",
                event_name=event_name,
                value_type=type(value).__name__,
            )
            return
        if metadata is not None and not isinstance(metadata, Mapping):
            logger.error(
                "log_event metadata must be a mapping",
                event_name=event_name,
                metadata_type=type(metadata).__name__,
            )
            return
        if not is_user_identifiable(user) and not self._warned_no_user_id:
            self._warned_no_user_id = True
            logger.warning(
                "no valid user id was provided, event will be logged without an "
                "identifiable user; this message is only logged once",
            )

        if self._log_queue is None:
            return

        normalized = normalize_user(user, self._options.environment)
        event_name, value, metadata = sanitize_event(event_name, value, metadata)
        event = LogEvent(
            event_name=event_name,
            user=normalized,
            value=value,
            metadata=metadata,
            time=_event_time(event_time),
        )
        self._log_queue.log(event)

    async def shutdown(self) -> None:
        """SDK を停止し、コラボレーターのリソースを解放する。"""
        await self._lifecycle.shutdown()

    async def flush(self) -> None:
        """未送信のイベントをフラッシュする。"""
        await self._lifecycle.flush()

    def get_client_initialize_response(self, user: UserLike) -> dict[str, Any] | None:
        """クライアント SDK 向けの初期化レスポンスを返す。

        Raises:
            StatsigError: initialize() 前に呼び出した場合
        """
        if not self._lifecycle.is_ready():
            raise StatsigError(
                code=StatsigErrorCodes.NOT_INITIALIZED,
                message="Must call initialize() first.",
            )
        normalized = normalize_user(_coerce_user(user), self._options.environment)
        return self._evaluator.get_client_initialize_response(normalized)

    def override_gate(self, gate_name: str, value: bool, user_id: str | None = "") -> None:
        if not isinstance(value, bool):
            logger.warning("attempted to override a gate with a non boolean value", gate_name=gate_name)
            return
        self._evaluator.override_gate(gate_name, value, user_id)

    def override_config(
        self, config_name: str, value: Mapping[str, Any], user_id: str | None = ""
    ) -> None:
        if not isinstance(value, Mapping):
            logger.warning(
                "attempted to override a config with a non object value", config_name=config_name
            )
            return
        self._evaluator.override_config(config_name, dict(value), user_id)
