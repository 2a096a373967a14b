"""初期化・シャットダウンの状態管理"""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import Any

import structlog

from .evaluator import Evaluator
from .exceptions import StatsigError, StatsigErrorCodes
from .log_queue import LogQueue
from .options import StatsigOptions
from .transport import Transport

SECRET_KEY_PREFIX = "secret-"

logger = structlog.stdlib.get_logger(__name__)


class LifecycleState(str, Enum):
    """SDK のライフサイクル状態。"""

    NOT_READY = "not_ready"
    INITIALIZING = "initializing"
    READY = "ready"


def validate_secret_key(secret_key: Any) -> None:
    """サーバーシークレットキーの形式を検証する。

    Raises:
        StatsigError: 空文字・非文字列・接頭辞不一致の場合
    """
    if (
        not isinstance(secret_key, str)
        or len(secret_key) == 0
        or not secret_key.startswith(SECRET_KEY_PREFIX)
    ):
        raise StatsigError(
            code=StatsigErrorCodes.INVALID_SECRET_KEY,
            message=(
                "Invalid key provided. You must use a Server Secret Key "
                f"starting with '{SECRET_KEY_PREFIX}'"
            ),
        )


class LifecycleManager:
    """NotReady -> Initializing -> Ready の状態遷移を管理する。

    初期化の試行ごとに世代番号を振り、最新の試行からの遷移だけを受け付ける。
    タイムアウトで打ち切られた読み込みや、shutdown 後に完了した読み込みは
    状態を変えない。ルールセットの読み込みタスクは shutdown 後も保持し、
    完了前に再初期化された場合はそのタスクを引き継ぐ。
    """

    def __init__(
        self,
        secret_key: str,
        options: StatsigOptions,
        evaluator: Evaluator,
        transport: Transport | None,
        log_queue: LogQueue | None,
    ) -> None:
        self._secret_key = secret_key
        self._options = options
        self._evaluator = evaluator
        self._transport = transport
        self._log_queue = log_queue
        self._state = LifecycleState.NOT_READY
        self._pending: asyncio.Future[None] | None = None
        self._load_task: asyncio.Future[None] | None = None
        self._generation = 0

    @property
    def state(self) -> LifecycleState:
        return self._state

    def is_ready(self) -> bool:
        return self._state is LifecycleState.READY

    def initialize(self) -> asyncio.Future[None]:
        """初期化を開始し、完了を待つ Future を返す。

        実行中のイベントループ内から呼び出すこと。初期化中の呼び出しには
        同一の Future を返し、ルールセットの読み込みは一度だけ行う。

        Raises:
            StatsigError: シークレットキーの形式が不正な場合（状態は変更しない）
        """
        if self._pending is not None:
            return self._pending

        if self._state is LifecycleState.READY:
            done: asyncio.Future[None] = asyncio.get_running_loop().create_future()
            done.set_result(None)
            return done

        validate_secret_key(self._secret_key)

        self._generation += 1
        self._state = LifecycleState.INITIALIZING
        self._pending = asyncio.ensure_future(self._run(self._generation))
        return self._pending

    async def _run(self, generation: int) -> None:
        load = self._load_task
        if load is None or load.done():
            load = asyncio.ensure_future(self._load())
            self._load_task = load
        timeout_ms = self._options.init_timeout_ms
        if timeout_ms > 0:
            done, _ = await asyncio.wait({load}, timeout=timeout_ms / 1000)
            if load not in done:
                logger.warning(
                    "initialization timed out, continuing with ruleset load in background",
                    init_timeout_ms=timeout_ms,
                )
                load.add_done_callback(_log_abandoned_load)
                self._mark_ready(generation)
                return
        try:
            await load
        finally:
            self._mark_ready(generation)

    async def _load(self) -> None:
        try:
            await self._evaluator.init()
        except Exception as e:
            logger.error("ruleset load failed", error=str(e))
            raise StatsigError(
                code=StatsigErrorCodes.INITIALIZATION_ERROR,
                message=f"Failed to initialize evaluator: {e}",
                cause=e,
            ) from e

    def _mark_ready(self, generation: int) -> None:
        if generation != self._generation or self._state is not LifecycleState.INITIALIZING:
            return
        self._state = LifecycleState.READY
        self._pending = None

    async def flush(self) -> None:
        """ログキューをフラッシュする。ログキューが無ければ何もしない。"""
        if self._log_queue is None:
            return
        await self._log_queue.flush()

    async def shutdown(self) -> None:
        """NotReady に戻し、全コラボレーターをシャットダウンする。

        いずれかが失敗しても残りのシャットダウンは必ず試行し、
        最初の失敗を StatsigError として送出する。
        """
        self._generation += 1
        self._state = LifecycleState.NOT_READY
        self._pending = None

        errors: list[Exception] = []
        collaborators: list[tuple[str, Any]] = [
            ("log_queue", self._log_queue),
            ("transport", self._transport),
            ("evaluator", self._evaluator),
        ]
        for name, collaborator in collaborators:
            if collaborator is None:
                continue
            try:
                await collaborator.shutdown()
            except Exception as e:
                logger.error("collaborator shutdown failed", collaborator=name, error=str(e))
                errors.append(e)
        if errors:
            raise StatsigError(
                code=StatsigErrorCodes.SHUTDOWN_ERROR,
                message=f"{len(errors)} collaborator(s) failed to shut down",
                cause=errors[0],
            )


def _log_abandoned_load(task: asyncio.Future[None]) -> None:
    if task.cancelled():
        return
    error = task.exception()
    if error is not None:
        logger.warning("ruleset load finished with error after timeout", error=str(error))
