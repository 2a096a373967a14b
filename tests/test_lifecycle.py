"""LifecycleManager のユニットテスト"""

import asyncio
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
from k1s0_statsig import (
    InMemoryEvaluator,
    InMemoryLogQueue,
    LifecycleManager,
    LifecycleState,
    StatsigError,
    StatsigErrorCodes,
    StatsigOptions,
)

SECRET = "secret-test"


class SlowEvaluator(InMemoryEvaluator):
    """release されるまでルールセット読み込みが終わらない評価エンジン。"""

    def __init__(self) -> None:
        super().__init__()
        self.release = asyncio.Event()

    async def init(self) -> None:
        self.init_count += 1
        await self.release.wait()
        self._initialized = True


class FailingEvaluator(InMemoryEvaluator):
    async def init(self) -> None:
        self.init_count += 1
        raise RuntimeError("ruleset download failed")


def make_manager(
    evaluator: Any = None,
    init_timeout_ms: int = 0,
    secret_key: Any = SECRET,
    log_queue: Any = None,
) -> LifecycleManager:
    return LifecycleManager(
        secret_key,
        StatsigOptions(init_timeout_ms=init_timeout_ms),
        evaluator or InMemoryEvaluator(),
        None,
        log_queue,
    )


@pytest.mark.parametrize("secret_key", ["", "client-abc", None, 123])
async def test_initialize_rejects_invalid_secret_key(secret_key: Any) -> None:
    """不正なシークレットキーでは状態を変えずに失敗すること。"""
    evaluator = InMemoryEvaluator()
    manager = make_manager(evaluator, secret_key=secret_key)
    with pytest.raises(StatsigError) as exc_info:
        manager.initialize()
    assert exc_info.value.code == StatsigErrorCodes.INVALID_SECRET_KEY
    assert manager.state == LifecycleState.NOT_READY
    assert evaluator.init_count == 0


async def test_initialize_transitions_to_ready() -> None:
    """初期化完了で READY になること。"""
    manager = make_manager()
    assert manager.is_ready() is False
    await manager.initialize()
    assert manager.state == LifecycleState.READY
    assert manager.is_ready() is True


async def test_concurrent_initialize_shares_one_attempt() -> None:
    """初期化中の呼び出しは同一の Future を受け取り、読み込みは一度だけ行われること。"""
    evaluator = SlowEvaluator()
    manager = make_manager(evaluator)
    first = manager.initialize()
    second = manager.initialize()
    assert first is second
    assert manager.state == LifecycleState.INITIALIZING
    evaluator.release.set()
    await asyncio.gather(first, second)
    assert evaluator.init_count == 1
    assert manager.is_ready() is True


async def test_initialize_when_ready_resolves_immediately() -> None:
    """READY 状態では即座に完了し、再読み込みしないこと。"""
    evaluator = InMemoryEvaluator()
    manager = make_manager(evaluator)
    await manager.initialize()
    future = manager.initialize()
    assert future.done()
    await future
    assert evaluator.init_count == 1


async def test_initialize_timeout_wins_race() -> None:
    """タイムアウトが先に来た場合、読み込み中でも READY になること。"""
    evaluator = SlowEvaluator()
    manager = make_manager(evaluator, init_timeout_ms=50)
    await asyncio.wait_for(manager.initialize(), timeout=1.0)
    assert manager.is_ready() is True
    assert evaluator.initialized is False

    # 遅れて完了した読み込みは二度目の遷移を起こさない
    evaluator.release.set()
    await asyncio.sleep(0.01)
    assert evaluator.initialized is True
    assert manager.state == LifecycleState.READY
    assert evaluator.init_count == 1


async def test_initialize_load_wins_race() -> None:
    """読み込みがタイムアウトより先に完了すること。"""
    evaluator = InMemoryEvaluator()
    manager = make_manager(evaluator, init_timeout_ms=5000)
    await asyncio.wait_for(manager.initialize(), timeout=1.0)
    assert manager.is_ready() is True
    assert evaluator.initialized is True


async def test_late_load_after_shutdown_does_not_mark_ready() -> None:
    """shutdown 後に完了した古い読み込みは状態を変えないこと。"""
    evaluator = SlowEvaluator()
    manager = make_manager(evaluator, init_timeout_ms=20)
    await manager.initialize()
    await manager.shutdown()
    assert manager.state == LifecycleState.NOT_READY

    evaluator.release.set()
    await asyncio.sleep(0.01)
    assert manager.state == LifecycleState.NOT_READY


async def test_initialize_failure_propagates_and_marks_ready() -> None:
    """読み込み失敗は INITIALIZATION_ERROR として伝播し、状態は READY になること。"""
    evaluator = FailingEvaluator()
    manager = make_manager(evaluator)
    with pytest.raises(StatsigError) as exc_info:
        await manager.initialize()
    assert exc_info.value.code == StatsigErrorCodes.INITIALIZATION_ERROR
    assert isinstance(exc_info.value.__cause__, RuntimeError)
    assert manager.is_ready() is True


async def test_shutdown_resets_and_allows_reinitialize() -> None:
    """shutdown で NOT_READY に戻り、再初期化できること。"""
    evaluator = InMemoryEvaluator()
    manager = make_manager(evaluator)
    await manager.initialize()
    await manager.shutdown()
    assert manager.state == LifecycleState.NOT_READY
    assert evaluator.initialized is False

    await manager.initialize()
    assert manager.is_ready() is True
    assert evaluator.init_count == 2


async def test_shutdown_attempts_every_collaborator() -> None:
    """一つが失敗しても全コラボレーターのシャットダウンを試行すること。"""
    evaluator = MagicMock()
    evaluator.init = AsyncMock()
    evaluator.shutdown = AsyncMock()
    transport = MagicMock()
    transport.shutdown = AsyncMock(side_effect=RuntimeError("close failed"))
    log_queue = MagicMock()
    log_queue.shutdown = AsyncMock(side_effect=RuntimeError("flush failed"))

    manager = LifecycleManager(SECRET, StatsigOptions(), evaluator, transport, log_queue)
    await manager.initialize()
    with pytest.raises(StatsigError) as exc_info:
        await manager.shutdown()

    assert exc_info.value.code == StatsigErrorCodes.SHUTDOWN_ERROR
    assert str(exc_info.value.__cause__) == "flush failed"
    log_queue.shutdown.assert_awaited_once()
    transport.shutdown.assert_awaited_once()
    evaluator.shutdown.assert_awaited_once()
    assert manager.state == LifecycleState.NOT_READY


async def test_flush_delegates_to_log_queue() -> None:
    """flush がログキューに委譲されること。"""
    log_queue = InMemoryLogQueue()
    manager = make_manager(log_queue=log_queue)
    log_queue.flush = AsyncMock()
    await manager.flush()
    log_queue.flush.assert_awaited_once()


async def test_flush_without_log_queue_is_noop() -> None:
    """ログキューが無い場合 flush は何もしないこと。"""
    manager = make_manager()
    await manager.flush()


async def test_reinitialize_during_pending_load_reuses_it() -> None:
    """読み込み中に shutdown して再初期化しても、読み込みは一度だけ行われること。"""
    evaluator = SlowEvaluator()
    manager = make_manager(evaluator)
    first = manager.initialize()
    await asyncio.sleep(0)
    await manager.shutdown()
    assert manager.state == LifecycleState.NOT_READY

    second = manager.initialize()
    assert second is not first
    assert manager.state == LifecycleState.INITIALIZING

    evaluator.release.set()
    await asyncio.gather(first, second)
    assert evaluator.init_count == 1
    assert manager.state == LifecycleState.READY


async def test_reinitialize_after_timed_out_load_reuses_it() -> None:
    """タイムアウト後も継続中の読み込みを再初期化で引き継ぐこと。"""
    evaluator = SlowEvaluator()
    manager = make_manager(evaluator, init_timeout_ms=20)
    await manager.initialize()
    await manager.shutdown()
    await manager.initialize()
    assert manager.is_ready() is True

    evaluator.release.set()
    await asyncio.sleep(0.01)
    assert evaluator.init_count == 1
    assert manager.state == LifecycleState.READY
