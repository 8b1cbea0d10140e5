"""This module defines the ControlEngine class, which orchestrates the control strategies.

It serves as the primary interface of the electrolyzer controller. The ControlEngine
is responsible for:
- Validating the request (strategy identifier, process state, MPC parameters)
  before any computation starts.
- Dispatching the request to the selected strategy, fetching the exogenous
  context for the economic strategies.
- Filtering every decision through the safety constraints.
- Recording the observed outcome of the decisions, feeding the learned predictor
  with training samples and retraining it when its performance degrades.
- Building the comparison snapshots of the classical strategies.
"""

import math
import threading
from dataclasses import replace
from numbers import Real
from typing import Any, Dict, List, Mapping, Sequence, Tuple

import numpy as np

from electrolyzer_mpc.models.decisions import ComparisonSnapshot, ControlDecision, PerformanceRecord
from electrolyzer_mpc.models.parameters import MPCParameters
from electrolyzer_mpc.models.process import ProcessContext, ProcessState, TrainingSample
from electrolyzer_mpc.mpc.comparator import StrategyComparator
from electrolyzer_mpc.mpc.performance import LONG_WINDOW, PerformanceTracker
from electrolyzer_mpc.neural.learned_predictor import LearnedPredictor
from electrolyzer_mpc.retrievers.context_provider import ContextProvider, StaticContextProvider
from electrolyzer_mpc.strategies.constraints import apply_constraints
from electrolyzer_mpc.strategies.cost_model import CostModel
from electrolyzer_mpc.strategies.deterministic_mpc import DeterministicMPC
from electrolyzer_mpc.strategies.helper import StrategyHelper
from electrolyzer_mpc.strategies.hierarchical_mpc import HierarchicalEconomicMPC
from electrolyzer_mpc.strategies.hybrid_mpc import HybridMPC
from electrolyzer_mpc.strategies.stochastic_mpc import StochasticMPC
from electrolyzer_mpc.strategies.strategy_mpc import StrategyMPC
from electrolyzer_mpc.util.errors import InvalidStateError
from electrolyzer_mpc.util.logging import LoggingUtil

logger = LoggingUtil.get_logger(__name__)

# Strategies consuming the exogenous context
CONTEXT_STRATEGIES = (StrategyHelper.HEMPC, StrategyHelper.NEURAL)


class ControlEngine:
    """Selects and runs the control strategy of each sampling tick.

    Ticks are serialized by a lock: the engine does not support overlapping
    invocations. The learned predictor protects its own model, so its training
    may run from another thread (e.g. a scheduled job).
    """

    def __init__(
        self,
        predictor: LearnedPredictor | None = None,
        context_provider: ContextProvider | None = None,
        default_parameters: MPCParameters | None = None,
        tracker: PerformanceTracker | None = None,
        comparator: StrategyComparator | None = None,
        cost_model: CostModel | None = None,
        rng: np.random.Generator | None = None,
        retrain_window: int = 200,
        collect_samples: bool = True,
    ) -> None:
        """Initializes the engine and its strategies.

        Args:
            predictor: The learned predictor. An in-memory one is created when omitted.
            context_provider: Source of the exogenous context; the default context is
                              used when omitted.
            default_parameters: Parameters used when a request carries none.
            tracker: Performance history of the applied decisions.
            comparator: Ranking of the classical strategies.
            cost_model: Prediction model and objective shared by the search-based strategies.
            rng: Generator of the stochastic scenarios.
            retrain_window: Number of most recent samples used when the predictor degrades.
            collect_samples: Whether outcomes of the classical strategies are turned
                             into training samples for the predictor.
        """
        self._cost_model = cost_model or CostModel()
        self._predictor = predictor or LearnedPredictor(rng=rng, cost_model=self._cost_model)
        self._context_provider = context_provider or StaticContextProvider()
        self._default_parameters = default_parameters or MPCParameters()
        self._tracker = tracker or PerformanceTracker()
        self._comparator = comparator or StrategyComparator()
        self._retrain_window = retrain_window
        self._collect_samples = collect_samples

        self._strategies: Dict[StrategyHelper, StrategyMPC] = {
            StrategyHelper.HEMPC: HierarchicalEconomicMPC(self._cost_model),
            StrategyHelper.DETERMINISTIC: DeterministicMPC(self._cost_model),
            StrategyHelper.STOCHASTIC: StochasticMPC(self._cost_model, rng),
            StrategyHelper.HYBRID: HybridMPC(self._cost_model),
            StrategyHelper.NEURAL: self._predictor,
        }
        self._lock = threading.Lock()

    @property
    def predictor(self) -> LearnedPredictor:
        return self._predictor

    @property
    def tracker(self) -> PerformanceTracker:
        return self._tracker

    @property
    def comparator(self) -> StrategyComparator:
        return self._comparator

    @property
    def default_parameters(self) -> MPCParameters:
        return self._default_parameters

    def get_strategy(self, strategy_id: StrategyHelper | str) -> StrategyMPC:
        return self._strategies[StrategyHelper.parse(strategy_id)]

    def compute_control(
        self,
        strategy_id: StrategyHelper | str,
        state: ProcessState | Mapping[str, Any],
        reference: float,
        previous_control: float,
        parameters: MPCParameters | Mapping[str, Any] | None = None,
    ) -> ControlDecision:
        """Computes the control of one sampling tick.

        Args:
            strategy_id: The strategy to run: HEMPC, DETERMINISTIC, STOCHASTIC,
                         HYBRID or NEURAL, as a member or a name.
            state: The current process state, or a mapping of its fields.
            reference: The production setpoint.
            previous_control: The control current applied at the previous tick.
            parameters: MPC parameters, a mapping merged over the configured
                        defaults, or None for the defaults.

        Returns:
            The decision, within the safety limits. Its strategy is `FALLBACK`
            when the selected strategy failed.

        Raises:
            ConfigurationError: If the strategy is unknown or the parameters are invalid.
            InvalidStateError: If the state, the reference or the previous control is malformed.
        """
        strategy = StrategyHelper.parse(strategy_id)
        state = state if isinstance(state, ProcessState) else ProcessState.from_dict(state)
        reference = _as_finite_float(reference, "reference")
        previous_control = _as_finite_float(previous_control, "previous_control")
        parameters = self._resolve_parameters(parameters)

        with self._lock:
            context = self._get_context() if strategy in CONTEXT_STRATEGIES else None
            decision = self._strategies[strategy].compute_control(
                state, reference, previous_control, parameters, context
            )

        changes: Dict[str, Any] = {}
        safe_control = apply_constraints(decision.control_value, state)
        if safe_control != decision.control_value:
            changes["control_value"] = safe_control
        if context is not None and "context" not in decision.info:
            changes["info"] = {**decision.info, "context": context.to_dict()}
        if changes:
            decision = replace(decision, **changes)

        logger.info(
            "%s decision: %.1f A (reference %.2f, %.2f ms)",
            decision.strategy.name,
            decision.control_value,
            reference,
            decision.computation_time_ms,
        )
        return decision

    def _resolve_parameters(self, parameters: MPCParameters | Mapping[str, Any] | None) -> MPCParameters:
        if parameters is None:
            return self._default_parameters
        if isinstance(parameters, MPCParameters):
            return parameters
        return MPCParameters.from_dict({**self._default_parameters.to_dict(), **parameters})

    def _get_context(self) -> ProcessContext:
        try:
            return self._context_provider.get_current_context()
        except Exception as ex:
            logger.error("Failed to get the current context, using the default one: %s", ex, exc_info=True)
            return ProcessContext()

    def record_outcome(
        self,
        decision: ControlDecision,
        observed_state: ProcessState | Mapping[str, Any],
    ) -> PerformanceRecord:
        """Records the process state observed after a decision was applied.

        The context of the decision is reused when it carries one, the current
        context is fetched otherwise. When sample collection is enabled, the
        control applied by a classical strategy becomes a training sample of the
        learned predictor.

        Raises:
            InvalidStateError: If the observed state is malformed.
        """
        if not isinstance(observed_state, ProcessState):
            observed_state = ProcessState.from_dict(observed_state)

        if "context" in decision.info:
            context = ProcessContext.from_dict(decision.info["context"])
        else:
            context = self._get_context()

        record = self._tracker.record(decision, observed_state, context)

        if (
            self._collect_samples
            and decision.strategy is not StrategyHelper.NEURAL
            and not decision.is_fallback
        ):
            sample = TrainingSample.from_observation(
                decision.state, decision.reference, decision.control_value, context
            )
            self.add_training_sample(sample)

        return record

    def add_training_sample(self, sample: TrainingSample) -> None:
        self._predictor.add_training_sample(sample)

    def train(self, samples: Sequence[TrainingSample]) -> List[float]:
        """Trains the learned predictor on a batch and returns the per-epoch errors."""
        return self._predictor.train(samples)

    def evaluate_performance(self) -> bool:
        """Evaluation tick: retrains the predictor at most once if its performance degraded.

        Returns:
            True if a retraining was run.
        """
        if not self._tracker.needs_retraining():
            return False

        samples = self._predictor.recent_samples(self._retrain_window)
        if not samples:
            logger.warning("Neural MPC needs retraining but no training sample is available")
            return False

        logger.info("Triggering Neural MPC retraining on %s samples", len(samples))
        history = self._predictor.train(samples)
        return bool(history)

    def compare_strategies(self) -> ComparisonSnapshot:
        """Builds a comparison snapshot from the recorded performance of the classical strategies."""
        data = {}
        for strategy in StrategyHelper.comparable():
            metrics = self._tracker.strategy_metrics(strategy)
            if metrics is not None:
                data[strategy.value] = metrics
        return self._comparator.update_comparison(data)

    def analyze_trends(self) -> Dict[str, Dict[str, Any]]:
        trends = self._comparator.analyze_trends()
        for strategy, trend in trends.items():
            if trend["direction"] == "declining":
                logger.warning("%s performance declining by %s points", strategy, trend["magnitude"])
        return trends

    def neural_metrics(self) -> Dict[str, Any]:
        """Averages over the last 50 decisions of the predictor, with its sample count and state."""
        averages = self._tracker.averages(LONG_WINDOW, StrategyHelper.NEURAL)
        summary = self._predictor.summary()
        return {
            "average_tracking_error": averages["tracking_error"],
            "average_computation_time_ms": averages["computation_time_ms"],
            "average_confidence": averages["confidence"],
            "total_samples": summary["total_samples"],
            "model_trained": summary["model_trained"],
        }

    def performance_records(self) -> Tuple[PerformanceRecord, ...]:
        return self._tracker.records

    def comparison_history(self) -> Tuple[ComparisonSnapshot, ...]:
        return self._comparator.history


def _as_finite_float(value: Any, name: str) -> float:
    if isinstance(value, bool) or not isinstance(value, Real) or not math.isfinite(value):
        raise InvalidStateError(f"{name} must be a finite number, got {value!r}")
    return float(value)
