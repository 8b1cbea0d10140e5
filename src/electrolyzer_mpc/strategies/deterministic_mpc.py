import math
from typing import List, Tuple

from electrolyzer_mpc.models.decisions import ControlDecision
from electrolyzer_mpc.models.parameters import MPCParameters
from electrolyzer_mpc.models.process import ProcessContext, ProcessState
from electrolyzer_mpc.strategies.constraints import MAX_CURRENT, MIN_CURRENT, apply_constraints
from electrolyzer_mpc.strategies.helper import StrategyHelper
from electrolyzer_mpc.strategies.strategy_mpc import StrategyMPC
from electrolyzer_mpc.util.errors import StrategyError
from electrolyzer_mpc.util.logging import LoggingUtil

logger = LoggingUtil.get_logger(__name__)


class DeterministicMPC(StrategyMPC):
    """Deterministic receding-horizon MPC solved by grid search.

    The stack current is searched on a uniform grid over [MIN_CURRENT, MAX_CURRENT]
    and held constant over the horizon; the current with the lowest `CostModel`
    cost is applied. Only the first action is used, the search is repeated at
    every tick with the latest measurement.
    """

    strategy = StrategyHelper.DETERMINISTIC
    GRID_STEPS = 20

    def solve(
        self,
        state: ProcessState,
        reference: float,
        previous_control: float,
        parameters: MPCParameters,
        context: ProcessContext | None = None,
    ) -> ControlDecision:
        """Searches the grid and applies the safety constraints to the optimum.

        Raises:
            StrategyError: If no grid point has a finite cost.
        """
        optimal_control, min_cost = self.optimize(state.production, reference, parameters)
        constrained_control = apply_constraints(optimal_control, state)
        logger.debug(
            "Deterministic optimum %.1f A (cost %.4g), constrained to %.1f A",
            optimal_control,
            min_cost,
            constrained_control,
        )

        return ControlDecision(
            control_value=constrained_control,
            strategy=self.strategy,
            reference=reference,
            state=state,
            cost=min_cost,
            horizon=parameters.horizon,
            info={"unconstrained_control": optimal_control},
        )

    def control_grid(self) -> List[float]:
        """Returns the evaluated currents, both limits included, in ascending order."""
        step_size = (MAX_CURRENT - MIN_CURRENT) / self.GRID_STEPS
        return [MIN_CURRENT + i * step_size for i in range(self.GRID_STEPS + 1)]

    def optimize(
        self, production: float, reference: float, parameters: MPCParameters
    ) -> Tuple[float, float]:
        """Finds the grid current with the lowest cost.

        Ties keep the first minimum encountered, i.e. the lowest current.

        Returns:
            A tuple with the optimal current and its cost.

        Raises:
            StrategyError: If no grid point has a finite cost.
        """
        optimal_control = None
        min_cost = math.inf

        for control in self.control_grid():
            cost = self._cost_model.evaluate_cost(
                production,
                control,
                reference,
                parameters.horizon,
                parameters.q_weight,
                parameters.r_weight,
                parameters.s_weight,
            )
            if cost < min_cost:
                min_cost = cost
                optimal_control = control

        if optimal_control is None:
            raise StrategyError(
                f"no finite cost on the control grid (production={production}, reference={reference})"
            )

        return optimal_control, min_cost
