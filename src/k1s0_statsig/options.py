"""SDK オプション定義（pydantic BaseModel）"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field, ValidationError

from .exceptions import StatsigError, StatsigErrorCodes

DEFAULT_API = "https://statsigapi.net/v1"


class LogOptions(BaseModel):
    """ログ設定。"""

    level: str = "INFO"
    format: Literal["json", "text"] = "json"
    configure: bool = False


class StatsigOptions(BaseModel):
    """StatsigServer のオプション。"""

    api: str = DEFAULT_API
    environment: dict[str, str] | None = None
    init_timeout_ms: int = Field(default=0, ge=0)
    local_mode: bool = False
    log: LogOptions = Field(default_factory=LogOptions)

    @property
    def api_base(self) -> str:
        """末尾のスラッシュを除いた API ベース URL。"""
        return self.api.rstrip("/")


def load_options(path: Path) -> StatsigOptions:
    """YAML ファイルから StatsigOptions を読み込む。

    ファイルのトップレベルに ``statsig`` キーがあればその配下を使う。
    """
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise StatsigError(
            code=StatsigErrorCodes.CONFIG_ERROR,
            message=f"Failed to read options file: {path}",
            cause=e,
        ) from e
    try:
        data: dict[str, Any] = yaml.safe_load(text) or {}
    except yaml.YAMLError as e:
        raise StatsigError(
            code=StatsigErrorCodes.CONFIG_ERROR,
            message=f"Failed to parse YAML: {path}",
            cause=e,
        ) from e
    if not isinstance(data, dict):
        raise StatsigError(
            code=StatsigErrorCodes.CONFIG_ERROR,
            message=f"Options file must contain a mapping: {path}",
        )
    if isinstance(data.get("statsig"), dict):
        data = data["statsig"]
    try:
        return StatsigOptions.model_validate(data)
    except ValidationError as e:
        raise StatsigError(
            code=StatsigErrorCodes.CONFIG_ERROR,
            message=f"Options validation failed: {e}",
            cause=e,
        ) from e
