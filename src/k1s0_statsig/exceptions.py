"""statsig ライブラリの例外型定義"""

from __future__ import annotations


class StatsigError(Exception):
    """statsig ライブラリのエラー基底クラス。"""

    def __init__(
        self,
        code: str,
        message: str,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        if cause is not None:
            self.__cause__ = cause

    def __str__(self) -> str:
        return f"{self.code}: {super().__str__()}"


class StatsigErrorCodes:
    """StatsigError のエラーコード定数。"""

    NOT_INITIALIZED: str = "NOT_INITIALIZED"
    INVALID_ARGUMENT: str = "INVALID_ARGUMENT"
    UNIDENTIFIABLE_USER: str = "UNIDENTIFIABLE_USER"
    INVALID_SECRET_KEY: str = "INVALID_SECRET_KEY"
    INITIALIZATION_ERROR: str = "INITIALIZATION_ERROR"
    HTTP_ERROR: str = "HTTP_ERROR"
    NETWORK_ERROR: str = "NETWORK_ERROR"
    CONFIG_ERROR: str = "CONFIG_ERROR"
    SHUTDOWN_ERROR: str = "SHUTDOWN_ERROR"
