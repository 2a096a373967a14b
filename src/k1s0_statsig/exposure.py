"""エクスポージャーの生成とログキューへの送出"""

from __future__ import annotations

from dataclasses import dataclass

from .log_queue import LogQueue
from .models import ConfigEvaluation, ExposureKind, ExposureRecord, Layer, StatsigUser


class ExposureEmitter:
    """評価結果から ExposureRecord を作りログキューへ渡す。

    ログキューが無い場合（ローカルモード）は何もしない。
    """

    def __init__(self, log_queue: LogQueue | None) -> None:
        self._log_queue = log_queue

    def _emit(self, record: ExposureRecord) -> None:
        if self._log_queue is not None:
            self._log_queue.log_exposure(record)

    def emit_gate_exposure(
        self, user: StatsigUser, gate_name: str, evaluation: ConfigEvaluation
    ) -> None:
        value = evaluation.value is True
        self._emit(
            ExposureRecord(
                kind=ExposureKind.GATE,
                user=user,
                entity_name=gate_name,
                rule_id=evaluation.rule_id,
                value=value,
                secondary_exposures=list(evaluation.secondary_exposures),
                metadata={
                    "gate": gate_name,
                    "gateValue": str(value).lower(),
                    "ruleID": evaluation.rule_id,
                },
            )
        )

    def emit_config_exposure(
        self, user: StatsigUser, config_name: str, evaluation: ConfigEvaluation
    ) -> None:
        self._emit(
            ExposureRecord(
                kind=ExposureKind.CONFIG,
                user=user,
                entity_name=config_name,
                rule_id=evaluation.rule_id,
                secondary_exposures=list(evaluation.secondary_exposures),
                metadata={"config": config_name, "ruleID": evaluation.rule_id},
            )
        )

    def emit_layer_exposure(
        self,
        user: StatsigUser,
        layer: Layer,
        parameter_name: str,
        evaluation: ConfigEvaluation,
    ) -> None:
        """パラメータ読み出し時点のレイヤーエクスポージャーを送出する。

        明示パラメータは割り当て済みエクスペリメントに帰属させ、
        それ以外は委譲前のセカンダリエクスポージャーを使う。
        """
        if parameter_name in evaluation.explicit_parameters:
            allocated_experiment = evaluation.config_delegate or ""
            exposures = evaluation.secondary_exposures
            is_explicit = True
        else:
            allocated_experiment = ""
            exposures = evaluation.undelegated_secondary_exposures
            is_explicit = False
        self._emit(
            ExposureRecord(
                kind=ExposureKind.LAYER,
                user=user,
                entity_name=layer.name,
                rule_id=evaluation.rule_id,
                secondary_exposures=list(exposures),
                metadata={
                    "config": layer.name,
                    "ruleID": evaluation.rule_id,
                    "allocatedExperiment": allocated_experiment,
                    "parameterName": parameter_name,
                    "isExplicitParameter": str(is_explicit).lower(),
                },
            )
        )

    def layer_exposure_logger(
        self, user: StatsigUser, evaluation: ConfigEvaluation
    ) -> LayerExposureLogger:
        """評価結果を束縛した遅延エクスポージャーロガーを返す。"""
        return LayerExposureLogger(self, user, evaluation)


@dataclass(frozen=True)
class LayerExposureLogger:
    """レイヤー生成時の評価結果を保持し、呼び出しごとにエクスポージャーを送出する。"""

    emitter: ExposureEmitter
    user: StatsigUser
    evaluation: ConfigEvaluation

    def __call__(self, layer: Layer, parameter_name: str) -> None:
        self.emitter.emit_layer_exposure(self.user, layer, parameter_name, self.evaluation)
