"""Routers that choose which model targets serve a chat completion request."""

from __future__ import annotations

import random
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Union

from aigate.routing.metric import (
    MetricSelector,
    MetricsDuration,
    ProviderMetrics,
)
from aigate.routing.metric import route as route_by_metric

Target = dict[str, Any]


class RouterError(Exception):
    """Routing could not produce a target."""


class TargetByIndexNotFoundError(RouterError):
    def __init__(self, index: int) -> None:
        super().__init__(f"Target by index not found: {index}")
        self.index = index


class UnknownMetricError(RouterError):
    def __init__(self, metric: str) -> None:
        super().__init__(f"Unknown metric for routing: {metric}")
        self.metric = metric


@dataclass
class FallbackStrategy:
    """Try every target in order."""

    def to_dict(self) -> dict[str, Any]:
        return {"type": "fallback"}


@dataclass
class PercentageStrategy:
    """Pick one target with probability proportional to its share."""

    targets_percentages: list[float] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"type": "percentage", "targets_percentages": list(self.targets_percentages)}


@dataclass
class RandomStrategy:
    """Pick one target uniformly at random."""

    def to_dict(self) -> dict[str, Any]:
        return {"type": "random"}


@dataclass
class OptimizedStrategy:
    """Pick the target model with the best value of a metric."""

    metric: MetricSelector = MetricSelector.LATENCY

    def to_dict(self) -> dict[str, Any]:
        return {"type": "optimized", "metric": self.metric.value}


RoutingStrategy = Union[FallbackStrategy, PercentageStrategy, RandomStrategy, OptimizedStrategy]


def _parse_metric(value: Any) -> MetricSelector:
    try:
        return MetricSelector(value)
    except ValueError:
        raise UnknownMetricError(str(value)) from None


def strategy_from_dict(data: Mapping[str, Any]) -> RoutingStrategy:
    """Build a strategy from its tagged JSON form."""
    kind = data.get("type")
    match kind:
        case "fallback":
            return FallbackStrategy()
        case "random":
            return RandomStrategy()
        case "percentage" | "a_b_testing":
            if "targets_percentages" not in data:
                raise RouterError("missing field 'targets_percentages'")
            shares = data["targets_percentages"]
            if not isinstance(shares, list) or not all(
                isinstance(s, (int, float)) and not isinstance(s, bool) for s in shares
            ):
                raise RouterError("targets_percentages must be a list of numbers")
            return PercentageStrategy([float(s) for s in shares])
        case "optimized":
            if "metric" not in data:
                raise RouterError("missing field 'metric'")
            return OptimizedStrategy(_parse_metric(data["metric"]))
        case None:
            raise RouterError("missing field 'type'")
        case _:
            raise RouterError(f"unknown routing strategy: {kind!r}")


def _pick_percentage(shares: list[float], draw: float) -> int:
    total = sum(shares)
    point = draw * total
    running = 0.0
    for index, share in enumerate(shares):
        previous, running = running, running + share
        if previous <= point < running:
            return index
    return 0


@dataclass
class LlmRouter:
    name: str
    strategy: RoutingStrategy = field(default_factory=OptimizedStrategy)
    targets: list[Target] = field(default_factory=list)
    metrics_duration: MetricsDuration | None = None

    def route(
        self,
        metrics: Mapping[str, ProviderMetrics] | None = None,
        rng: Any = None,
    ) -> list[Target]:
        """Return the targets to try, in order."""
        rng = random if rng is None else rng
        metrics = {} if metrics is None else metrics
        match self.strategy:
            case FallbackStrategy():
                return [dict(target) for target in self.targets]
            case RandomStrategy():
                if not self.targets:
                    raise RouterError("no targets to choose from")
                return [dict(self.targets[rng.randrange(len(self.targets))])]
            case PercentageStrategy(targets_percentages=shares):
                index = _pick_percentage(shares, rng.random())
                if index >= len(self.targets):
                    raise TargetByIndexNotFoundError(index)
                return [dict(self.targets[index])]
            case OptimizedStrategy(metric=metric):
                models = [
                    target["model"]
                    for target in self.targets
                    if isinstance(target.get("model"), str)
                ]
                model = route_by_metric(models, metrics, metric, self.metrics_duration)
                return [{"model": model}]
        raise RouterError(f"unsupported strategy: {self.strategy!r}")

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"name": self.name, **self.strategy.to_dict()}
        if self.targets:
            data["targets"] = [dict(target) for target in self.targets]
        data["metrics_duration"] = (
            self.metrics_duration.value if self.metrics_duration is not None else None
        )
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "LlmRouter":
        if "name" not in data:
            raise RouterError("missing field 'name'")
        name = data["name"]
        if not isinstance(name, str):
            raise RouterError("name must be a string")
        targets = data.get("targets") or []
        if not isinstance(targets, list) or not all(isinstance(t, dict) for t in targets):
            raise RouterError("targets must be a list of objects")
        duration_value = data.get("metrics_duration")
        duration = None
        if duration_value is not None:
            try:
                duration = MetricsDuration(duration_value)
            except ValueError:
                raise RouterError(f"unknown metrics duration: {duration_value!r}") from None
        return cls(
            name=name,
            strategy=strategy_from_dict(data),
            targets=[dict(t) for t in targets],
            metrics_duration=duration,
        )