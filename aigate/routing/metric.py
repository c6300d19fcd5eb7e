"""Metric-based selection of the best model among routing targets."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum


class MetricOptimizationDirection(Enum):
    MINIMIZE = "minimize"
    MAXIMIZE = "maximize"


class MetricSelector(str, Enum):
    REQUESTS = "requests"
    LATENCY = "latency"
    TTFT = "ttft"
    TPS = "tps"
    ERROR_RATE = "error_rate"

    @classmethod
    def default(cls) -> "MetricSelector":
        return cls.LATENCY

    def optimization_direction(self) -> MetricOptimizationDirection:
        if self in (MetricSelector.REQUESTS, MetricSelector.TPS):
            return MetricOptimizationDirection.MAXIMIZE
        return MetricOptimizationDirection.MINIMIZE

    def value_of(self, metrics: "Metrics") -> float | None:
        """Return the value this selector reads from a metrics record."""
        return getattr(metrics, self.value)


class MetricsDuration(str, Enum):
    TOTAL = "Total"
    LAST_15_MINUTES = "Last15Minutes"
    LAST_HOUR = "LastHour"


@dataclass
class Metrics:
    requests: float | None = None
    input_tokens: float | None = None
    output_tokens: float | None = None
    total_tokens: float | None = None
    latency: float | None = None
    ttft: float | None = None
    llm_usage: float | None = None
    tps: float | None = None
    error_rate: float | None = None


@dataclass
class TimeMetrics:
    total: Metrics = field(default_factory=Metrics)
    last_15_minutes: Metrics = field(default_factory=Metrics)
    last_hour: Metrics = field(default_factory=Metrics)

    def for_duration(self, duration: MetricsDuration | None) -> Metrics:
        if duration is MetricsDuration.LAST_HOUR:
            return self.last_hour
        if duration is MetricsDuration.LAST_15_MINUTES:
            return self.last_15_minutes
        return self.total


@dataclass
class ModelMetrics:
    metrics: TimeMetrics = field(default_factory=TimeMetrics)


@dataclass
class ProviderMetrics:
    models: dict[str, ModelMetrics] = field(default_factory=dict)


def route(
    models: Sequence[str],
    metrics: Mapping[str, ProviderMetrics],
    metric: MetricSelector,
    metrics_duration: MetricsDuration | None = None,
) -> str:
    """Pick the model with the best value of ``metric``.

    A model written ``provider/name`` is looked up in that provider only; a bare
    name is looked up in every provider and the best provider is chosen. Ties go
    to the earliest candidate. With no usable metrics the first model is
    returned, or an empty string when there are no models.
    """
    maximize = metric.optimization_direction() is MetricOptimizationDirection.MAXIMIZE
    pick = max if maximize else min

    def value(model_metrics: ModelMetrics) -> float | None:
        return metric.value_of(model_metrics.metrics.for_duration(metrics_duration))

    candidates: list[tuple[str, float]] = []
    for model in models:
        provider, sep, model_name = model.partition("/")
        if sep:
            provider_metrics = metrics.get(provider)
            model_metrics = provider_metrics.models.get(model_name) if provider_metrics else None
            found = value(model_metrics) if model_metrics is not None else None
            if found is not None:
                candidates.append((model, found))
        else:
            matches = [
                (f"{name}/{model}", found)
                for name, provider_metrics in sorted(metrics.items())
                if model in provider_metrics.models
                and (found := value(provider_metrics.models[model])) is not None
            ]
            if matches:
                candidates.append(pick(matches, key=lambda item: item[1]))

    if candidates:
        return pick(candidates, key=lambda item: item[1])[0]
    return models[0] if models else ""