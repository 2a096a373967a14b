"""ローカル評価エンジンのプロトコルとインメモリ実装"""

from __future__ import annotations

from typing import Any, Protocol

from .models import ConfigEvaluation, StatsigUser, now_ms


class Evaluator(Protocol):
    """ローカル評価エンジンプロトコル。"""

    async def init(self) -> None: ...

    def check_gate(self, user: StatsigUser, gate_name: str) -> ConfigEvaluation | None: ...

    def get_config(self, user: StatsigUser, config_name: str) -> ConfigEvaluation | None: ...

    def get_layer(self, user: StatsigUser, layer_name: str) -> ConfigEvaluation | None: ...

    def override_gate(self, gate_name: str, value: bool, user_id: str | None = "") -> None: ...

    def override_config(
        self, config_name: str, value: dict[str, Any], user_id: str | None = ""
    ) -> None: ...

    def get_client_initialize_response(self, user: StatsigUser) -> dict[str, Any] | None: ...

    async def shutdown(self) -> None: ...


class InMemoryEvaluator:
    """登録済みの評価結果を返すインメモリ評価エンジン。

    ルールの解釈は行わず、set_gate / set_config / set_layer で登録した
    評価結果とオーバーライドだけを使う。
    """

    def __init__(self) -> None:
        self._gates: dict[str, ConfigEvaluation] = {}
        self._configs: dict[str, ConfigEvaluation] = {}
        self._layers: dict[str, ConfigEvaluation] = {}
        self._gate_overrides: dict[str, dict[str, bool]] = {}
        self._config_overrides: dict[str, dict[str, dict[str, Any]]] = {}
        self._initialized = False
        self.init_count = 0

    @property
    def initialized(self) -> bool:
        return self._initialized

    def set_gate(self, gate_name: str, evaluation: ConfigEvaluation) -> None:
        """ゲートの評価結果を登録する。"""
        self._gates[gate_name] = evaluation

    def set_config(self, config_name: str, evaluation: ConfigEvaluation) -> None:
        """コンフィグの評価結果を登録する。"""
        self._configs[config_name] = evaluation

    def set_layer(self, layer_name: str, evaluation: ConfigEvaluation) -> None:
        """レイヤーの評価結果を登録する。"""
        self._layers[layer_name] = evaluation

    async def init(self) -> None:
        self.init_count += 1
        self._initialized = True

    def check_gate(self, user: StatsigUser, gate_name: str) -> ConfigEvaluation | None:
        override = self._lookup_override(self._gate_overrides, gate_name, user)
        if override is not None:
            return ConfigEvaluation(value=override, rule_id="override")
        return self._gates.get(gate_name)

    def get_config(self, user: StatsigUser, config_name: str) -> ConfigEvaluation | None:
        override = self._lookup_override(self._config_overrides, config_name, user)
        if override is not None:
            return ConfigEvaluation(value=dict(override), rule_id="override")
        return self._configs.get(config_name)

    def get_layer(self, user: StatsigUser, layer_name: str) -> ConfigEvaluation | None:
        return self._layers.get(layer_name)

    def override_gate(self, gate_name: str, value: bool, user_id: str | None = "") -> None:
        self._gate_overrides.setdefault(gate_name, {})[user_id or ""] = value

    def override_config(
        self, config_name: str, value: dict[str, Any], user_id: str | None = ""
    ) -> None:
        self._config_overrides.setdefault(config_name, {})[user_id or ""] = value

    def get_client_initialize_response(self, user: StatsigUser) -> dict[str, Any] | None:
        if not self._initialized:
            return None
        gates = {}
        for name in self._gates.keys() | self._gate_overrides.keys():
            evaluation = self.check_gate(user, name)
            if evaluation is not None and not evaluation.fetch_from_server:
                gates[name] = {
                    "name": name,
                    "value": evaluation.value is True,
                    "rule_id": evaluation.rule_id,
                    "secondary_exposures": evaluation.secondary_exposures,
                }
        configs = {}
        for name in self._configs.keys() | self._config_overrides.keys():
            evaluation = self.get_config(user, name)
            if evaluation is not None and not evaluation.fetch_from_server:
                configs[name] = {
                    "name": name,
                    "value": evaluation.value,
                    "rule_id": evaluation.rule_id,
                    "secondary_exposures": evaluation.secondary_exposures,
                }
        layers = {}
        for name, evaluation in self._layers.items():
            if not evaluation.fetch_from_server:
                layers[name] = {
                    "name": name,
                    "value": evaluation.value,
                    "rule_id": evaluation.rule_id,
                    "allocated_experiment_name": evaluation.config_delegate or "",
                    "explicit_parameters": evaluation.explicit_parameters,
                    "secondary_exposures": evaluation.secondary_exposures,
                    "undelegated_secondary_exposures": evaluation.undelegated_secondary_exposures,
                }
        return {
            "feature_gates": gates,
            "dynamic_configs": configs,
            "layer_configs": layers,
            "has_updates": True,
            "time": now_ms(),
        }

    async def shutdown(self) -> None:
        self._initialized = False

    @staticmethod
    def _lookup_override(overrides: dict[str, dict[str, Any]], name: str, user: StatsigUser) -> Any:
        by_user = overrides.get(name)
        if by_user is None:
            return None
        if user.user_id is not None and str(user.user_id) in by_user:
            return by_user[str(user.user_id)]
        return by_user.get("")
