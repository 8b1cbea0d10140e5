"""This module defines the PerformanceTracker, which monitors the decisions of the engine.

Every applied decision is paired with the process state observed afterwards to
produce a `PerformanceRecord`. The tracker is responsible for:
- Keeping the most recent records in a bounded buffer.
- Reporting rolling averages over the last 10 and 50 records, overall or per strategy.
- Detecting the degradation of the learned predictor, which triggers its retraining.
- Deriving the per-strategy data consumed by the `StrategyComparator`.
"""

from collections import deque
from typing import Any, Deque, Dict, List, Tuple

import numpy as np

from electrolyzer_mpc.models.decisions import ControlDecision, PerformanceRecord
from electrolyzer_mpc.models.process import ProcessContext, ProcessState
from electrolyzer_mpc.strategies.constraints import check_constraint_violations
from electrolyzer_mpc.strategies.helper import StrategyHelper
from electrolyzer_mpc.util.logging import LoggingUtil

logger = LoggingUtil.get_logger(__name__)

SHORT_WINDOW = 10
LONG_WINDOW = 50

# Thresholds of the tuning hints
TRACKING_ERROR_HINT = 5.0
CONTROL_EFFORT_HINT = 20.0


class PerformanceTracker:
    """Bounded history of performance records with rolling statistics."""

    def __init__(self, capacity: int = 1000, degradation_threshold: float = 5.0) -> None:
        """Initializes the tracker.

        Args:
            capacity: Maximum number of records kept, oldest evicted first.
            degradation_threshold: Rolling-10 tracking error of the learned predictor
                                   above which it needs retraining.
        """
        self._records: Deque[PerformanceRecord] = deque(maxlen=capacity)
        self._degradation_threshold = degradation_threshold

    @property
    def records(self) -> Tuple[PerformanceRecord, ...]:
        return tuple(self._records)

    def record(
        self,
        decision: ControlDecision,
        observed_state: ProcessState,
        context: ProcessContext | None = None,
    ) -> PerformanceRecord:
        """Records the outcome of an applied decision.

        The tracking error compares the hourly production observed after the
        decision with the setpoint the strategy tracked, i.e. its economic
        setpoint when it computed one.

        Args:
            decision: The decision that was applied.
            observed_state: The process state measured after applying it.
            context: The context in effect, for the electricity cost.

        Returns:
            The new record.
        """
        context = context or ProcessContext()
        tracking_error = abs(observed_state.production * 3600 - decision.tracked_reference)
        current = observed_state.current
        efficiency = observed_state.production / current * 1000 if current else 0.0
        operating_cost = observed_state.voltage * current / 1000 * context.electricity_cost

        record = PerformanceRecord(
            tracking_error=tracking_error,
            computation_time_ms=decision.computation_time_ms,
            control_value=decision.control_value,
            confidence=decision.confidence,
            strategy=decision.strategy,
            production=observed_state.production,
            efficiency=efficiency,
            operating_cost=operating_cost,
            constraint_violations=tuple(check_constraint_violations(decision.control_value, observed_state)),
        )
        self._records.append(record)

        if record.constraint_violations:
            logger.warning(
                "%s decision violated operating limits: %s",
                decision.strategy.name,
                ", ".join(record.constraint_violations),
            )
        self._log_tuning_hints(record, decision.state)
        return record

    def _log_tuning_hints(self, record: PerformanceRecord, state: ProcessState) -> None:
        if record.tracking_error > TRACKING_ERROR_HINT:
            logger.info(
                "Tracking error %.2f above %.1f, consider increasing the Q weight",
                record.tracking_error,
                TRACKING_ERROR_HINT,
            )
        control_effort = abs(record.control_value - state.current)
        if control_effort > CONTROL_EFFORT_HINT:
            logger.info(
                "Control effort %.1f A above %.1f A, consider increasing the R weight",
                control_effort,
                CONTROL_EFFORT_HINT,
            )

    def recent(self, count: int, strategy: StrategyHelper | None = None) -> List[PerformanceRecord]:
        """Returns up to `count` of the most recent records, optionally of one strategy."""
        records = [r for r in self._records if strategy is None or r.strategy is strategy]
        return records[-count:] if count > 0 else []

    def averages(self, window: int = SHORT_WINDOW, strategy: StrategyHelper | None = None) -> Dict[str, Any]:
        """Rolling averages over the last `window` records.

        Returns:
            A dictionary with the mean tracking error, computation time, control
            and confidence, and the number of records averaged. Means are None
            when no record is available.
        """
        records = self.recent(window, strategy)
        confidences = [r.confidence for r in records if r.confidence is not None]
        return {
            "tracking_error": _mean([r.tracking_error for r in records]),
            "computation_time_ms": _mean([r.computation_time_ms for r in records]),
            "control": _mean([r.control_value for r in records]),
            "confidence": _mean(confidences),
            "count": len(records),
        }

    def rolling_summary(self, strategy: StrategyHelper | None = None) -> Dict[str, Dict[str, Any]]:
        return {
            "last_10": self.averages(SHORT_WINDOW, strategy),
            "last_50": self.averages(LONG_WINDOW, strategy),
        }

    def needs_retraining(self) -> bool:
        """Whether the rolling-10 tracking error of the learned predictor exceeds the threshold."""
        tracking_error = self.averages(SHORT_WINDOW, StrategyHelper.NEURAL)["tracking_error"]
        if tracking_error is None:
            return False
        if tracking_error > self._degradation_threshold:
            logger.warning(
                "Neural MPC performance degraded (tracking error %.2f > %.2f)",
                tracking_error,
                self._degradation_threshold,
            )
            return True
        return False

    def strategy_metrics(self, strategy: StrategyHelper, window: int = LONG_WINDOW) -> Dict[str, float] | None:
        """Derives the comparator input of one strategy from its recent records.

        Returns:
            A dictionary with the mean operational cost, the mean H2 production,
            the mean efficiency, the mean computation time, the stability (coefficient
            of variation of the control, in %) and the robustness (share of records
            without violation, in %). None if the strategy has no record.
        """
        records = self.recent(window, strategy)
        if not records:
            return None

        controls = np.array([r.control_value for r in records])
        mean_control = float(np.mean(controls))
        stability = float(np.std(controls) / mean_control * 100) if mean_control else 0.0
        robustness = sum(1 for r in records if not r.constraint_violations) / len(records) * 100

        return {
            "operational_cost": float(np.mean([r.operating_cost for r in records])),
            "h2_production": float(np.mean([r.production for r in records])),
            "efficiency": float(np.mean([r.efficiency for r in records])),
            "computation_time": float(np.mean([r.computation_time_ms for r in records])),
            "stability": stability,
            "robustness": robustness,
        }

    def clear(self) -> None:
        self._records.clear()


def _mean(values: List[float]) -> float | None:
    if not values:
        return None
    return float(np.mean(values))
