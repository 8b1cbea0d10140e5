import time
from abc import ABC, abstractmethod
from dataclasses import replace

from electrolyzer_mpc.models.decisions import ControlDecision
from electrolyzer_mpc.models.parameters import MPCParameters
from electrolyzer_mpc.models.process import ProcessContext, ProcessState
from electrolyzer_mpc.strategies.constraints import fallback_control
from electrolyzer_mpc.strategies.cost_model import CostModel
from electrolyzer_mpc.strategies.helper import StrategyHelper
from electrolyzer_mpc.util.logging import LoggingUtil

logger = LoggingUtil.get_logger(__name__)


class StrategyMPC(ABC):
    """Abstract base class for a control strategy selectable by the engine.

    This class defines the interface that every strategy must implement to be
    dispatched by the `ControlEngine`. Subclasses implement `solve`, which may
    raise on numerical failure; `compute_control` is the strategy boundary that
    times the computation and turns any failure into a fallback decision, so a
    caller always receives a valid control.
    """

    strategy: StrategyHelper

    def __init__(self, cost_model: CostModel | None = None) -> None:
        """Initializes the strategy.

        Args:
            cost_model: The prediction model and objective shared by the
                        grid-search strategies. A default `CostModel` is used when omitted.
        """
        self._cost_model = cost_model or CostModel()

    @property
    def cost_model(self) -> CostModel:
        return self._cost_model

    def compute_control(
        self,
        state: ProcessState,
        reference: float,
        previous_control: float,
        parameters: MPCParameters,
        context: ProcessContext | None = None,
    ) -> ControlDecision:
        """Computes a control decision, falling back to proportional control on failure.

        Args:
            state: The current process state.
            reference: The production setpoint to track.
            previous_control: The control current applied at the previous tick.
            parameters: Validated MPC parameters.
            context: Exogenous context, used by the economic strategies.

        Returns:
            The decision of the strategy, or a `FALLBACK` decision if it failed.
        """
        start_time = time.perf_counter()
        try:
            decision = self.solve(state, reference, previous_control, parameters, context)
        except Exception as ex:
            logger.error("%s computation error: %s", self.strategy.name, ex, exc_info=True)
            decision = build_fallback_decision(state, reference, previous_control, reason=str(ex))
        execution_time = (time.perf_counter() - start_time) * 1000
        return replace(decision, computation_time_ms=execution_time)

    @abstractmethod
    def solve(
        self,
        state: ProcessState,
        reference: float,
        previous_control: float,
        parameters: MPCParameters,
        context: ProcessContext | None = None,
    ) -> ControlDecision:
        """Solves the control problem of the strategy.

        Implementations return a decision whose control value already went through
        the safety constraints, and raise `StrategyError` when no valid control
        can be computed.
        """


def build_fallback_decision(
    state: ProcessState,
    reference: float,
    previous_control: float,
    reason: str,
) -> ControlDecision:
    """Builds the decision returned in place of a failed strategy.

    Args:
        state: The current process state.
        reference: The reference supplied by the caller.
        previous_control: The control current applied at the previous tick.
        reason: Description of the failure, reported in the decision info.
    """
    logger.warning("Using fallback control: %s", reason)
    control = fallback_control(state, reference, previous_control)
    info = {
        "fallback_reason": reason,
        "fallback_source": StrategyHelper.FALLBACK.name,
    }
    return ControlDecision(
        control_value=control,
        strategy=StrategyHelper.FALLBACK,
        reference=reference,
        state=state,
        info=info,
    )
