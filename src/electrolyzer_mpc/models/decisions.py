"""Outputs of the engine: control decisions, performance records and comparison snapshots."""

import time
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Tuple

from electrolyzer_mpc.models.process import ProcessState
from electrolyzer_mpc.strategies.helper import StrategyHelper


@dataclass(frozen=True)
class ControlDecision:
    """The control value proposed by one strategy for one sampling tick.

    Attributes:
        control_value: Stack current in A, within the safety limits once filtered.
        strategy: The strategy that produced the value, `FALLBACK` on degraded operation.
        reference: The reference supplied by the caller.
        state: The process state the decision was computed from.
        cost: Optimal cost found by a search-based strategy.
        confidence: Confidence reported by the learned predictor.
        computation_time_ms: Wall-clock time spent computing the decision.
        horizon: Prediction horizon used.
        info: Auxiliary values (economic setpoint, discrete option, scenario costs...).
        timestamp: Epoch seconds at which the decision was produced.
    """

    control_value: float
    strategy: StrategyHelper
    reference: float
    state: ProcessState
    cost: float | None = None
    confidence: float | None = None
    computation_time_ms: float = 0.0
    horizon: int | None = None
    info: Mapping[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)

    @property
    def is_fallback(self) -> bool:
        return self.strategy is StrategyHelper.FALLBACK

    @property
    def tracked_reference(self) -> float:
        """The setpoint actually tracked, the economic setpoint when one was computed."""
        return float(self.info.get("economic_setpoint", self.reference))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "control": self.control_value,
            "algorithm": self.strategy.name,
            "reference": self.reference,
            "cost": self.cost,
            "confidence": self.confidence,
            "computation_time_ms": self.computation_time_ms,
            "horizon": self.horizon,
            "info": dict(self.info),
            "state": self.state.to_dict(),
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class PerformanceRecord:
    """Observed performance of one decision."""

    tracking_error: float
    computation_time_ms: float
    control_value: float
    confidence: float | None
    strategy: StrategyHelper
    production: float
    efficiency: float
    operating_cost: float
    constraint_violations: Tuple[str, ...] = ()
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tracking_error": self.tracking_error,
            "computation_time_ms": self.computation_time_ms,
            "control": self.control_value,
            "confidence": self.confidence,
            "algorithm": self.strategy.name,
            "production": self.production,
            "efficiency": self.efficiency,
            "operating_cost": self.operating_cost,
            "constraint_violations": list(self.constraint_violations),
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class ComparisonSnapshot:
    """Metrics and overall scores of the compared strategies at one instant.

    Attributes:
        metrics: Strategy key ('hempc', 'deterministic'...) to its raw metrics
                 (cost, production, efficiency, computation, stability, robustness).
        scores: Strategy key to its overall score on a 0 to 100 scale.
        timestamp: Epoch seconds of the snapshot.
    """

    metrics: Mapping[str, Mapping[str, float]]
    scores: Mapping[str, int]
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "performance": {key: dict(values) for key, values in self.metrics.items()},
            "overall_scores": dict(self.scores),
        }
