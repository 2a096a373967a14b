"""statsig データモデル"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Mapping, Union

# logEvent の value として受け付ける型
EventValue = Union[str, int, float, None]

SecondaryExposure = dict[str, str]

# StatsigUser のフィールド名とワイヤー上のキーの対応
_USER_WIRE_KEYS: dict[str, str] = {
    "user_id": "userID",
    "email": "email",
    "ip": "ip",
    "user_agent": "userAgent",
    "country": "country",
    "locale": "locale",
    "app_version": "appVersion",
    "custom": "custom",
    "private_attributes": "privateAttributes",
    "custom_ids": "customIDs",
    "statsig_environment": "statsigEnvironment",
}


def now_ms() -> int:
    """現在時刻をエポックミリ秒で返す。"""
    return int(time.time() * 1000)


@dataclass
class StatsigUser:
    """評価対象のユーザー。"""

    user_id: str | int | None = None
    email: str | None = None
    ip: str | None = None
    user_agent: str | None = None
    country: str | None = None
    locale: str | None = None
    app_version: str | None = None
    custom: dict[str, Any] | None = None
    private_attributes: dict[str, Any] | None = None
    custom_ids: dict[str, str] | None = None
    statsig_environment: dict[str, str] | None = None

    def to_dict(self) -> dict[str, Any]:
        """未設定フィールドを除いたワイヤー形式の辞書を返す。"""
        return {
            wire: getattr(self, attr)
            for attr, wire in _USER_WIRE_KEYS.items()
            if getattr(self, attr) is not None
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> StatsigUser:
        """ワイヤー形式（または属性名）のキーを持つ辞書から生成する。"""
        kwargs: dict[str, Any] = {}
        for attr, wire in _USER_WIRE_KEYS.items():
            if wire in data:
                kwargs[attr] = data[wire]
            elif attr in data:
                kwargs[attr] = data[attr]
        return cls(**kwargs)


@dataclass(frozen=True)
class ConfigEvaluation:
    """ローカル評価エンジンが返す評価結果。

    value はゲートなら bool、コンフィグ・レイヤーなら JSON オブジェクト。
    """

    value: Any = False
    rule_id: str = ""
    secondary_exposures: list[SecondaryExposure] = field(default_factory=list)
    fetch_from_server: bool = False
    config_delegate: str | None = None
    undelegated_secondary_exposures: list[SecondaryExposure] = field(default_factory=list)
    explicit_parameters: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class DynamicConfig:
    """コンフィグ・エクスペリメントの評価結果。"""

    name: str
    value: dict[str, Any] = field(default_factory=dict)
    rule_id: str = ""
    secondary_exposures: list[SecondaryExposure] = field(default_factory=list)

    def get(self, key: str, default: Any = None) -> Any:
        """パラメータ値を取得する。存在しなければ default を返す。"""
        return self.value.get(key, default)


@dataclass(frozen=True)
class Layer:
    """レイヤーの評価結果。

    パラメータを ``get`` で読み出した時点でエクスポージャーを記録する。
    """

    name: str
    value: dict[str, Any] = field(default_factory=dict)
    rule_id: str = ""
    exposure_logger: Callable[[Layer, str], None] | None = field(
        default=None, repr=False, compare=False
    )

    def get(self, key: str, default: Any = None) -> Any:
        """パラメータ値を取得し、存在すればエクスポージャーを記録する。"""
        if key not in self.value:
            return default
        if self.exposure_logger is not None:
            self.exposure_logger(self, key)
        return self.value[key]


class ExposureKind(str, Enum):
    """エクスポージャーの種別。"""

    GATE = "statsig::gate_exposure"
    CONFIG = "statsig::config_exposure"
    LAYER = "statsig::layer_exposure"


@dataclass(frozen=True)
class ExposureRecord:
    """評価結果の消費を表すエクスポージャー。"""

    kind: ExposureKind
    user: StatsigUser
    entity_name: str
    rule_id: str
    value: Any = None
    secondary_exposures: list[SecondaryExposure] = field(default_factory=list)
    metadata: dict[str, str] = field(default_factory=dict)
    time: int = field(default_factory=now_ms)

    def to_log_event(self) -> LogEvent:
        """内部イベントとしての LogEvent に変換する。"""
        return LogEvent(
            event_name=self.kind.value,
            user=self.user,
            metadata=dict(self.metadata),
            secondary_exposures=list(self.secondary_exposures),
            time=self.time,
        )


@dataclass(frozen=True)
class LogEvent:
    """ログキューに渡すイベント。"""

    event_name: str
    user: StatsigUser | None = None
    value: EventValue = None
    metadata: dict[str, Any] | None = None
    secondary_exposures: list[SecondaryExposure] | None = None
    time: int = field(default_factory=now_ms)

    def to_dict(self) -> dict[str, Any]:
        """privateAttributes を除いたワイヤー形式の辞書を返す。"""
        data: dict[str, Any] = {
            "eventName": self.event_name,
            "value": self.value,
            "metadata": self.metadata,
            "time": self.time,
        }
        if self.user is not None:
            user = self.user.to_dict()
            user.pop("privateAttributes", None)
            data["user"] = user
        if self.secondary_exposures is not None:
            data["secondaryExposures"] = self.secondary_exposures
        return data
