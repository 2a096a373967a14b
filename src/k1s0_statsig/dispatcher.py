"""ゲート・コンフィグ・レイヤー評価のディスパッチ"""

from __future__ import annotations

from typing import Any, Callable, Mapping

import structlog

from .evaluator import Evaluator
from .exceptions import StatsigError, StatsigErrorCodes
from .exposure import ExposureEmitter
from .models import ConfigEvaluation, DynamicConfig, Layer, StatsigUser
from .remote import RemoteFallbackClient
from .sanitizer import is_user_identifiable, normalize_user

logger = structlog.stdlib.get_logger(__name__)

_DEFAULT_GATE = ConfigEvaluation(value=False)


class EvaluationDispatcher:
    """ローカル評価を優先し、必要な場合のみリモート評価へフォールバックする。

    ローカル評価が確定した場合はネットワークを使わず、結果を返す前に
    エクスポージャーを送出する。リモート失敗時、コンフィグとレイヤーは
    空の結果に縮退するが、ゲートは失敗を呼び出し元へ伝播する。
    """

    def __init__(
        self,
        evaluator: Evaluator,
        remote: RemoteFallbackClient | None,
        emitter: ExposureEmitter,
        is_ready: Callable[[], bool],
        environment: Mapping[str, str] | None = None,
    ) -> None:
        self._evaluator = evaluator
        self._remote = remote
        self._emitter = emitter
        self._is_ready = is_ready
        self._environment = environment

    def validate_inputs(self, user: StatsigUser | None, name: Any, usage: str) -> StatsigUser:
        """評価前の共通検証を行い、正規化済みユーザーを返す。

        Raises:
            StatsigError: 未初期化・名前不正・識別不能ユーザーの場合
        """
        if not self._is_ready():
            raise StatsigError(
                code=StatsigErrorCodes.NOT_INITIALIZED,
                message="Must call initialize() first.",
            )
        if not isinstance(name, str) or len(name) == 0:
            raise StatsigError(
                code=StatsigErrorCodes.INVALID_ARGUMENT,
                message=f"Must pass a valid {usage} to check",
            )
        if not is_user_identifiable(user):
            raise StatsigError(
                code=StatsigErrorCodes.UNIDENTIFIABLE_USER,
                message=(
                    "Must pass a valid user with a userID or customID "
                    "for the server SDK to work."
                ),
            )
        return normalize_user(user, self._environment)

    async def check_gate(self, user: StatsigUser | None, gate_name: str) -> bool:
        normalized = self.validate_inputs(user, gate_name, "gate_name")
        evaluation = self._evaluator.check_gate(normalized, gate_name) or _DEFAULT_GATE
        if not evaluation.fetch_from_server:
            self._emitter.emit_gate_exposure(normalized, gate_name, evaluation)
            return evaluation.value is True

        if self._remote is None:
            raise StatsigError(
                code=StatsigErrorCodes.NETWORK_ERROR,
                message=f"Gate {gate_name} requires remote evaluation, unavailable in local mode",
            )
        result = await self._remote.check_gate(normalized, gate_name)
        return result.get("value") is True

    async def get_config(
        self, user: StatsigUser | None, config_name: str, usage: str = "config_name"
    ) -> DynamicConfig:
        normalized = self.validate_inputs(user, config_name, usage)
        return await self._get_config_value(normalized, config_name)

    async def get_layer(self, user: StatsigUser | None, layer_name: str) -> Layer:
        normalized = self.validate_inputs(user, layer_name, "layer_name")
        evaluation = self._evaluator.get_layer(normalized, layer_name)
        if evaluation is not None and not evaluation.fetch_from_server:
            return Layer(
                layer_name,
                _as_object(evaluation.value),
                evaluation.rule_id,
                exposure_logger=self._emitter.layer_exposure_logger(normalized, evaluation),
            )

        if evaluation is not None and evaluation.config_delegate:
            try:
                config = await self._fetch_config(normalized, evaluation.config_delegate)
            except Exception as e:
                logger.warning(
                    "layer delegate fetch failed",
                    layer_name=layer_name,
                    delegate=evaluation.config_delegate,
                    error=str(e),
                )
                return Layer(layer_name)
            return Layer(layer_name, config.value, config.rule_id)

        return Layer(layer_name)

    async def _get_config_value(self, user: StatsigUser, config_name: str) -> DynamicConfig:
        evaluation = self._evaluator.get_config(user, config_name)
        if evaluation is None or not evaluation.fetch_from_server:
            evaluation = evaluation or ConfigEvaluation(value={})
            config = DynamicConfig(
                config_name,
                _as_object(evaluation.value),
                evaluation.rule_id,
                list(evaluation.secondary_exposures),
            )
            self._emitter.emit_config_exposure(user, config_name, evaluation)
            return config

        return await self._fetch_config(user, config_name)

    async def _fetch_config(self, user: StatsigUser, config_name: str) -> DynamicConfig:
        if self._remote is None:
            logger.warning("remote evaluation unavailable in local mode", config_name=config_name)
            return DynamicConfig(config_name)
        return await self._remote.get_config(user, config_name)


def _as_object(value: Any) -> dict[str, Any]:
    return dict(value) if isinstance(value, Mapping) else {}
