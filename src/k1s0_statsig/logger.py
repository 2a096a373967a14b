"""SDK 診断ログの structlog 設定"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog

from .lifecycle import SECRET_KEY_PREFIX
from .metadata import get_statsig_metadata
from .options import LogOptions

LOGGER_NAME = "k1s0_statsig"


def add_sdk_metadata(
    logger: Any, method_name: str, event_dict: structlog.types.EventDict
) -> structlog.types.EventDict:
    """SDK 種別・バージョン・セッション ID をログに付与する。"""
    metadata = get_statsig_metadata()
    event_dict.setdefault("sdk_type", metadata["sdkType"])
    event_dict.setdefault("sdk_version", metadata["sdkVersion"])
    event_dict.setdefault("session_id", metadata["sessionID"])
    return event_dict


def redact_secret_keys(
    logger: Any, method_name: str, event_dict: structlog.types.EventDict
) -> structlog.types.EventDict:
    """サーバーシークレットキーらしき文字列値を伏せる。"""
    for key, value in event_dict.items():
        if isinstance(value, str) and SECRET_KEY_PREFIX in value:
            event_dict[key] = _mask(value)
    return event_dict


def _mask(text: str) -> str:
    words = []
    for word in text.split(" "):
        if word.startswith(SECRET_KEY_PREFIX):
            word = SECRET_KEY_PREFIX + "****"
        words.append(word)
    return " ".join(words)


def configure_logging(options: LogOptions | None = None) -> structlog.stdlib.BoundLogger:
    """SDK の診断ログ出力を設定し、SDK 名のロガーを返す。

    Args:
        options: ログ設定。level は "DEBUG" / "INFO" / "WARNING" / "ERROR"、
            format は "json" または "text"

    Returns:
        設定済みの structlog.stdlib.BoundLogger
    """
    options = options or LogOptions()
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, options.level.upper(), logging.INFO),
    )

    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.processors.add_log_level,
        add_sdk_metadata,
        redact_secret_keys,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    if options.format == "json":
        processors += [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        # capture_logs() でテストから差し替えられるようキャッシュしない
        cache_logger_on_first_use=False,
    )

    return structlog.stdlib.get_logger(LOGGER_NAME)
