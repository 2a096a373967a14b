"""k1s0 statsig server SDK library."""

from .dispatcher import EvaluationDispatcher
from .evaluator import Evaluator, InMemoryEvaluator
from .exceptions import StatsigError, StatsigErrorCodes
from .exposure import ExposureEmitter, LayerExposureLogger
from .lifecycle import LifecycleManager, LifecycleState
from .log_queue import InMemoryLogQueue, LogQueue
from .logger import configure_logging
from .models import (
    ConfigEvaluation,
    DynamicConfig,
    EventValue,
    ExposureKind,
    ExposureRecord,
    Layer,
    LogEvent,
    StatsigUser,
)
from .options import LogOptions, StatsigOptions, load_options
from .remote import RemoteFallbackClient
from .server import StatsigServer
from .transport import HttpTransport, Transport

__all__ = [
    "ConfigEvaluation",
    "DynamicConfig",
    "EvaluationDispatcher",
    "Evaluator",
    "EventValue",
    "ExposureEmitter",
    "ExposureKind",
    "ExposureRecord",
    "HttpTransport",
    "InMemoryEvaluator",
    "InMemoryLogQueue",
    "Layer",
    "LayerExposureLogger",
    "LifecycleManager",
    "LifecycleState",
    "LogEvent",
    "LogOptions",
    "LogQueue",
    "RemoteFallbackClient",
    "StatsigError",
    "StatsigErrorCodes",
    "StatsigOptions",
    "StatsigServer",
    "StatsigUser",
    "Transport",
    "configure_logging",
    "load_options",
]
