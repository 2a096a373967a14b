"""ユーザー・イベントのサイズ制限とトリミング"""

from __future__ import annotations

import dataclasses
import json
from typing import Any, Mapping

import structlog

from .models import EventValue, StatsigUser

MAX_VALUE_SIZE = 64
MAX_OBJ_SIZE = 1024
MAX_USER_SIZE = 2048

DROPPED_METADATA: dict[str, str] = {"error": "not logged due to size too large"}

logger = structlog.stdlib.get_logger(__name__)


def _serialized_length(param: Any) -> int:
    if isinstance(param, StatsigUser):
        param = param.to_dict()
    return len(json.dumps(param, separators=(",", ":"), ensure_ascii=False, default=str))


def should_trim_param(param: Any, size: int) -> bool:
    """param が size を超えるかを判定する。

    文字列は長さ、数値は10進表記の長さ、構造体は JSON シリアライズ後の長さで測る。
    """
    if param is None or isinstance(param, bool):
        return False
    if isinstance(param, str):
        return len(param) > size
    if isinstance(param, (int, float)):
        return len(str(param)) > size
    return _serialized_length(param) > size


def is_user_identifiable(user: StatsigUser | None) -> bool:
    """userID か customIDs のいずれかを持つユーザーかを判定する。"""
    if user is None:
        return False
    user_id = user.user_id
    if isinstance(user_id, bool):
        user_id = None
    if isinstance(user_id, int) or (isinstance(user_id, str) and user_id != ""):
        return True
    return bool(user.custom_ids)


def trim_user(user: StatsigUser | None) -> StatsigUser:
    """サイズ上限を超えるユーザーをコピーしたうえでトリミングする。"""
    if user is None:
        return StatsigUser()
    user = dataclasses.replace(user)
    if user.user_id is not None and should_trim_param(user.user_id, MAX_VALUE_SIZE):
        logger.warning("user id is too large, trimming", max_size=MAX_VALUE_SIZE)
        user.user_id = str(user.user_id)[:MAX_VALUE_SIZE]
    if should_trim_param(user, MAX_USER_SIZE):
        user.custom = {}
        if should_trim_param(user, MAX_USER_SIZE):
            logger.warning("user object is too large, only keeping the user id")
            user = StatsigUser(user_id=user.user_id)
        else:
            logger.warning("user object is too large, dropping the custom property")
    return user


def normalize_user(
    user: StatsigUser | None,
    environment: Mapping[str, str] | None = None,
) -> StatsigUser:
    """トリミングと環境タグ付けを済ませたユーザーのコピーを返す。"""
    normalized = trim_user(user)
    if environment is not None:
        normalized.statsig_environment = dict(environment)
    return normalized


def is_valid_event_value(value: Any) -> bool:
    """value が EventValue として受け付けられる型かを判定する。"""
    if value is None or isinstance(value, str):
        return True
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def sanitize_event(
    event_name: str,
    value: EventValue,
    metadata: Mapping[str, Any] | None,
) -> tuple[str, EventValue, dict[str, Any] | None]:
    """イベント名・値・メタデータをサイズ上限に収める。

    メタデータは上限を超えた場合フィールド単位ではなく丸ごと置き換える。
    """
    if should_trim_param(event_name, MAX_VALUE_SIZE):
        logger.warning("event name is too long, trimming", max_size=MAX_VALUE_SIZE)
        event_name = event_name[:MAX_VALUE_SIZE]

    if isinstance(value, str) and should_trim_param(value, MAX_VALUE_SIZE):
        logger.warning("event value is too long, trimming", max_size=MAX_VALUE_SIZE)
        value = value[:MAX_VALUE_SIZE]

    sanitized: dict[str, Any] | None = None if metadata is None else dict(metadata)
    if should_trim_param(sanitized, MAX_OBJ_SIZE):
        logger.warning("event metadata is too big, dropping the metadata", max_size=MAX_OBJ_SIZE)
        sanitized = dict(DROPPED_METADATA)

    return event_name, value, sanitized
