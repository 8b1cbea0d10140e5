import math
from typing import List

from electrolyzer_mpc.models.decisions import ControlDecision
from electrolyzer_mpc.models.parameters import MPCParameters
from electrolyzer_mpc.models.process import ProcessContext, ProcessState
from electrolyzer_mpc.strategies.constraints import MAX_CURRENT, MIN_CURRENT, apply_constraints
from electrolyzer_mpc.strategies.helper import StrategyHelper
from electrolyzer_mpc.strategies.strategy_mpc import StrategyMPC
from electrolyzer_mpc.util.errors import StrategyError
from electrolyzer_mpc.util.logging import LoggingUtil

logger = LoggingUtil.get_logger(__name__)


class HybridMPC(StrategyMPC):
    """Hybrid MPC combining a discrete operating point with a continuous refinement.

    Each discrete operating point is refined by a local grid search of ±20 A in
    steps of 5 A, clipped to the stack limits. The global minimum over all points
    and offsets is applied; ties keep the first minimum in ascending point order,
    then ascending current.
    """

    strategy = StrategyHelper.HYBRID
    CONTINUOUS_RANGE = 20.0
    STEP_SIZE = 5.0

    def solve(
        self,
        state: ProcessState,
        reference: float,
        previous_control: float,
        parameters: MPCParameters,
        context: ProcessContext | None = None,
    ) -> ControlDecision:
        """Searches the neighborhood of every discrete point.

        Raises:
            StrategyError: If no evaluated current has a finite cost.
        """
        best_control = None
        best_discrete_option = None
        min_cost = math.inf

        for discrete_option in sorted(parameters.discrete_options):
            for control in self.local_grid(discrete_option):
                cost = self._cost_model.evaluate_cost(
                    state.production,
                    control,
                    reference,
                    parameters.horizon,
                    parameters.q_weight,
                    parameters.r_weight,
                    parameters.s_weight,
                )
                if cost < min_cost:
                    min_cost = cost
                    best_control = control
                    best_discrete_option = discrete_option

        if best_control is None:
            raise StrategyError("no finite cost around the discrete operating points")

        logger.debug("Hybrid optimum %.1f A around operating point %.1f A", best_control, best_discrete_option)

        return ControlDecision(
            control_value=apply_constraints(best_control, state),
            strategy=self.strategy,
            reference=reference,
            state=state,
            cost=min_cost,
            horizon=parameters.horizon,
            info={"discrete_option": best_discrete_option, "unconstrained_control": best_control},
        )

    def local_grid(self, discrete_option: float) -> List[float]:
        """Returns the currents evaluated around one operating point, in ascending order."""
        start = max(MIN_CURRENT, discrete_option - self.CONTINUOUS_RANGE)
        end = min(MAX_CURRENT, discrete_option + self.CONTINUOUS_RANGE)
        if end < start:
            return []
        steps = int(math.floor((end - start) / self.STEP_SIZE + 1e-9))
        return [start + i * self.STEP_SIZE for i in range(steps + 1)]
