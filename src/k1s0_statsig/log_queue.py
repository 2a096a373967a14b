"""ログキューのプロトコルとインメモリ実装"""

from __future__ import annotations

from typing import Protocol

from .models import ExposureRecord, LogEvent


class LogQueue(Protocol):
    """イベント・エクスポージャーを受け取るログキュープロトコル。

    log / log_exposure は呼び出し元をブロックしてはならない。
    """

    def log(self, event: LogEvent) -> None: ...

    def log_exposure(self, record: ExposureRecord) -> None: ...

    async def flush(self) -> None: ...

    async def shutdown(self) -> None: ...


class InMemoryLogQueue:
    """イベントをメモリ上に保持するログキュー。"""

    def __init__(self) -> None:
        self._buffer: list[LogEvent] = []
        self.flushed: list[LogEvent] = []
        self.closed = False

    @property
    def pending(self) -> list[LogEvent]:
        """未フラッシュのイベントを返す。"""
        return list(self._buffer)

    @property
    def events(self) -> list[LogEvent]:
        """フラッシュ済みを含む全イベントを返す。"""
        return self.flushed + self._buffer

    def log(self, event: LogEvent) -> None:
        self._buffer.append(event)

    def log_exposure(self, record: ExposureRecord) -> None:
        self._buffer.append(record.to_log_event())

    async def flush(self) -> None:
        self.flushed.extend(self._buffer)
        self._buffer.clear()

    async def shutdown(self) -> None:
        await self.flush()
        self.closed = True
