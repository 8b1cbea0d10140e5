from typing import List

import numpy as np

from electrolyzer_mpc.models.decisions import ControlDecision
from electrolyzer_mpc.models.parameters import MPCParameters
from electrolyzer_mpc.models.process import ProcessContext, ProcessState
from electrolyzer_mpc.strategies.constraints import apply_constraints, apply_robustness_margin
from electrolyzer_mpc.strategies.cost_model import CostModel
from electrolyzer_mpc.strategies.deterministic_mpc import DeterministicMPC
from electrolyzer_mpc.strategies.helper import StrategyHelper
from electrolyzer_mpc.strategies.strategy_mpc import StrategyMPC
from electrolyzer_mpc.util.logging import LoggingUtil

logger = LoggingUtil.get_logger(__name__)


class StochasticMPC(StrategyMPC):
    """Scenario-based stochastic MPC.

    The production and temperature measurements are perturbed independently for
    each scenario, the deterministic problem is solved per scenario and the
    scenario controls are averaged. A robustness margin then backs the averaged
    control off under adverse operating conditions.
    """

    strategy = StrategyHelper.STOCHASTIC

    def __init__(
        self,
        cost_model: CostModel | None = None,
        rng: np.random.Generator | None = None,
    ) -> None:
        """Initializes the stochastic strategy.

        Args:
            cost_model: The shared prediction model and objective.
            rng: Generator used to sample the scenarios. Inject a seeded generator
                 for reproducible results.
        """
        super().__init__(cost_model)
        self._deterministic = DeterministicMPC(self._cost_model)
        self._rng = rng if rng is not None else np.random.default_rng()

    def solve(
        self,
        state: ProcessState,
        reference: float,
        previous_control: float,
        parameters: MPCParameters,
        context: ProcessContext | None = None,
    ) -> ControlDecision:
        scenario_controls: List[float] = []
        scenario_costs: List[float] = []

        for _ in range(parameters.scenarios):
            uncertain_state = self.add_uncertainty(state, parameters.uncertainty_level)
            result = self._deterministic.solve(uncertain_state, reference, previous_control, parameters)
            scenario_controls.append(result.control_value)
            scenario_costs.append(result.cost)

        robust_control = sum(scenario_controls) / len(scenario_controls)
        final_control = apply_constraints(apply_robustness_margin(robust_control, state), state)
        logger.debug(
            "Stochastic control %.1f A from %s scenarios (mean %.1f A)",
            final_control,
            parameters.scenarios,
            robust_control,
        )

        return ControlDecision(
            control_value=final_control,
            strategy=self.strategy,
            reference=reference,
            state=state,
            cost=sum(scenario_costs) / len(scenario_costs),
            horizon=parameters.horizon,
            info={
                "scenarios": parameters.scenarios,
                "scenario_controls": scenario_controls,
                "scenario_costs": scenario_costs,
                "robust_control": robust_control,
            },
        )

    def add_uncertainty(self, state: ProcessState, uncertainty_level: float) -> ProcessState:
        """Samples one scenario by scaling production and temperature by `1 ± uncertainty_level`."""
        if uncertainty_level == 0:
            return state
        production_factor, temperature_factor = 1 + self._rng.uniform(
            -uncertainty_level, uncertainty_level, size=2
        )
        return state.with_changes(
            production=state.production * float(production_factor),
            temperature=state.temperature * float(temperature_factor),
        )
