from datetime import datetime
from typing import Callable, Tuple

from electrolyzer_mpc.models.decisions import ControlDecision
from electrolyzer_mpc.models.parameters import MPCParameters
from electrolyzer_mpc.models.process import ProcessContext, ProcessState
from electrolyzer_mpc.strategies.cost_model import CostModel
from electrolyzer_mpc.strategies.deterministic_mpc import DeterministicMPC
from electrolyzer_mpc.strategies.helper import StrategyHelper
from electrolyzer_mpc.strategies.strategy_mpc import StrategyMPC
from electrolyzer_mpc.util.logging import LoggingUtil

logger = LoggingUtil.get_logger(__name__)

MAX_SETPOINT = 100.0


class HierarchicalEconomicMPC(StrategyMPC):
    """Hierarchical Economic MPC (HE-MPC).

    The problem is split in two layers executed strictly in order:

    1.  Upper layer (economic): the reference is adjusted by a factor built from
        the time of day and the process state, then clamped to [0, 100]. An
        oxygen demand emergency forces the setpoint to 100.

        ..  math::
            setpoint = clamp(ref * (1 + adjustment), 0, 100)

    2.  Lower layer (tracking): the deterministic MPC tracks the economic setpoint
        with half the horizon (at least one step) and twice the tracking weight.
    """

    strategy = StrategyHelper.HEMPC

    # Hour windows of the economic layer, [start, stop)
    LOW_COST_HOURS = (0, 6)
    PEAK_HOURS = (18, 24)

    def __init__(
        self,
        cost_model: CostModel | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        """Initializes the hierarchical strategy.

        Args:
            cost_model: The shared prediction model and objective.
            clock: Source of the local time, used when no context is supplied.
        """
        super().__init__(cost_model)
        self._deterministic = DeterministicMPC(self._cost_model)
        self._clock = clock

    def solve(
        self,
        state: ProcessState,
        reference: float,
        previous_control: float,
        parameters: MPCParameters,
        context: ProcessContext | None = None,
    ) -> ControlDecision:
        # Upper layer: Economic optimization
        economic_setpoint, adjustment = self.upper_layer_economic_optimization(state, reference, context)

        # Lower layer: Tracking control
        tracking = self.lower_layer_tracking_mpc(state, economic_setpoint, previous_control, parameters)

        logger.debug(
            "HE-MPC economic setpoint %.2f (adjustment %+.2f), control %.1f A",
            economic_setpoint,
            adjustment,
            tracking.control_value,
        )

        return ControlDecision(
            control_value=tracking.control_value,
            strategy=self.strategy,
            reference=reference,
            state=state,
            cost=tracking.cost,
            horizon=parameters.horizon,
            info={
                "economic_setpoint": economic_setpoint,
                "economic_adjustment": adjustment,
                "tracking_horizon": tracking.horizon,
            },
        )

    def upper_layer_economic_optimization(
        self,
        state: ProcessState,
        reference: float,
        context: ProcessContext | None = None,
    ) -> Tuple[float, float]:
        """Computes the economic setpoint.

        Night hours (lower electricity cost) raise the setpoint by 10 %, evening
        peak hours lower it by 10 %. A temperature above 75 °C removes 5 % and an
        oxygen purity below 99.3 % removes 10 %.

        Args:
            state: The current process state.
            reference: The reference supplied by the caller.
            context: Exogenous context; its hour of day and emergency flag are used
                     when supplied, the local clock otherwise.

        Returns:
            A tuple with the economic setpoint and the adjustment factor.
        """
        time_of_day = context.hour_of_day if context is not None else self._clock().hour
        economic_adjustment = 0.0

        if self.LOW_COST_HOURS[0] <= time_of_day < self.LOW_COST_HOURS[1]:
            economic_adjustment = 0.1
        elif self.PEAK_HOURS[0] <= time_of_day < self.PEAK_HOURS[1]:
            economic_adjustment = -0.1

        if state.temperature > 75:
            economic_adjustment -= 0.05
        if state.purity < 99.3:
            economic_adjustment -= 0.1

        if context is not None and context.is_emergency:
            logger.info("Oxygen demand emergency, economic setpoint forced to %.0f", MAX_SETPOINT)
            return MAX_SETPOINT, economic_adjustment

        economic_setpoint = reference * (1 + economic_adjustment)
        return max(0.0, min(MAX_SETPOINT, economic_setpoint)), economic_adjustment

    def lower_layer_tracking_mpc(
        self,
        state: ProcessState,
        economic_setpoint: float,
        previous_control: float,
        parameters: MPCParameters,
    ) -> ControlDecision:
        """Tracks the economic setpoint with a shorter horizon and a doubled tracking weight."""
        tracking_parameters = parameters.with_changes(
            horizon=max(1, parameters.horizon // 2),
            q_weight=parameters.q_weight * 2,
        )
        return self._deterministic.solve(state, economic_setpoint, previous_control, tracking_parameters)
