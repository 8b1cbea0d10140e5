import math
from datetime import datetime

import numpy as np
import pytest

from electrolyzer_mpc.models.parameters import MPCParameters
from electrolyzer_mpc.models.process import ProcessContext
from electrolyzer_mpc.strategies.constraints import MAX_CURRENT, MIN_CURRENT
from electrolyzer_mpc.strategies.cost_model import CostModel
from electrolyzer_mpc.strategies.deterministic_mpc import DeterministicMPC
from electrolyzer_mpc.strategies.helper import StrategyHelper
from electrolyzer_mpc.strategies.hierarchical_mpc import HierarchicalEconomicMPC
from electrolyzer_mpc.strategies.hybrid_mpc import HybridMPC
from electrolyzer_mpc.strategies.stochastic_mpc import StochasticMPC
from electrolyzer_mpc.util.errors import StrategyError


class NanCostModel(CostModel):
    def evaluate_cost(self, *args, **kwargs):
        return math.nan


class FailingMPC(DeterministicMPC):
    def solve(self, state, reference, previous_control, parameters, context=None):
        raise StrategyError("solver diverged")


def test_deterministic_cost_is_minimal_over_grid(nominal_state):
    strategy = DeterministicMPC()
    for horizon, q_weight, r_weight in [(1, 1.0, 0.1), (10, 10.0, 1.0), (50, 0.5, 5.0)]:
        parameters = MPCParameters(horizon=horizon, q_weight=q_weight, r_weight=r_weight)
        decision = strategy.compute_control(nominal_state, 120.0, 150.0, parameters)
        grid_costs = [
            strategy.cost_model.evaluate_cost(0.03, control, 120.0, horizon, q_weight, r_weight, 100.0)
            for control in strategy.control_grid()
        ]
        assert decision.cost <= min(grid_costs) + 1e-9


def test_deterministic_grid():
    grid = DeterministicMPC().control_grid()
    assert len(grid) == 21
    assert grid[0] == MIN_CURRENT
    assert grid[-1] == MAX_CURRENT


def test_deterministic_temperature_cap(hot_state, parameters):
    decision = DeterministicMPC().compute_control(hot_state, 50.0, 150.0, parameters)

    assert decision.strategy is StrategyHelper.DETERMINISTIC
    assert decision.control_value <= 150.0
    assert decision.horizon == parameters.horizon
    assert decision.computation_time_ms >= 0


def test_stochastic_without_uncertainty_matches_deterministic(nominal_state, rng):
    parameters = MPCParameters(uncertainty_level=0.0)
    deterministic = DeterministicMPC().compute_control(nominal_state, 130.0, 150.0, parameters)
    stochastic = StochasticMPC(rng=rng).compute_control(nominal_state, 130.0, 150.0, parameters)

    assert stochastic.control_value == deterministic.control_value
    assert stochastic.cost == pytest.approx(deterministic.cost)
    assert stochastic.info["scenario_controls"] == [deterministic.control_value] * parameters.scenarios


def test_stochastic_is_reproducible_with_seeded_generator(nominal_state, parameters):
    first = StochasticMPC(rng=np.random.default_rng(7)).compute_control(nominal_state, 130.0, 150.0, parameters)
    second = StochasticMPC(rng=np.random.default_rng(7)).compute_control(nominal_state, 130.0, 150.0, parameters)

    assert first.control_value == second.control_value
    assert len(first.info["scenario_costs"]) == parameters.scenarios


def test_stochastic_applies_robustness_margin(hot_state, rng):
    parameters = MPCParameters(uncertainty_level=0.0)
    decision = StochasticMPC(rng=rng).compute_control(hot_state, 50.0, 150.0, parameters)

    assert decision.control_value == pytest.approx(max(MIN_CURRENT, decision.info["robust_control"] - 10.0))


def test_hybrid_never_worse_than_its_neighborhoods(nominal_state):
    strategy = HybridMPC()
    parameters = MPCParameters(discrete_options=(120.0, 180.0))
    decision = strategy.compute_control(nominal_state, 140.0, 150.0, parameters)

    neighborhood_costs = [
        strategy.cost_model.evaluate_cost(0.03, control, 140.0, 10, 10.0, 1.0, 100.0)
        for option in parameters.discrete_options
        for control in strategy.local_grid(option)
    ]
    assert decision.cost <= min(neighborhood_costs) + 1e-9
    assert decision.info["discrete_option"] in parameters.discrete_options


def test_hybrid_local_grid_is_clipped():
    grid = HybridMPC().local_grid(100.0)
    assert grid == [100.0, 105.0, 110.0, 115.0, 120.0]


def test_hempc_emergency_forces_maximum_setpoint(nominal_state, parameters):
    context = ProcessContext(hour_of_day=20, is_emergency=True)
    decision = HierarchicalEconomicMPC().compute_control(nominal_state, 100.0, 150.0, parameters, context)

    assert decision.info["economic_setpoint"] == 100.0
    assert decision.tracked_reference == 100.0


@pytest.mark.parametrize("hour, expected", [(3, 55.0), (12, 50.0), (20, 45.0)])
def test_hempc_time_of_day_adjustment(nominal_state, parameters, hour, expected):
    context = ProcessContext(hour_of_day=hour)
    decision = HierarchicalEconomicMPC().compute_control(nominal_state, 50.0, 150.0, parameters, context)

    assert decision.info["economic_setpoint"] == pytest.approx(expected)
    assert decision.info["tracking_horizon"] == 5


def test_hempc_uses_clock_without_context(nominal_state, parameters):
    strategy = HierarchicalEconomicMPC(clock=lambda: datetime(2025, 1, 1, 2, 0))
    setpoint, adjustment = strategy.upper_layer_economic_optimization(nominal_state, 50.0)

    assert adjustment == pytest.approx(0.1)
    assert setpoint == pytest.approx(55.0)


def test_hempc_state_penalties_and_clamp(nominal_state):
    state = nominal_state.with_changes(temperature=76.0, purity=99.0)
    setpoint, adjustment = HierarchicalEconomicMPC().upper_layer_economic_optimization(
        state, 200.0, ProcessContext(hour_of_day=3)
    )

    assert adjustment == pytest.approx(-0.05)
    assert setpoint == 100.0


@pytest.mark.parametrize("strategy_class", [DeterministicMPC, StochasticMPC, HybridMPC, HierarchicalEconomicMPC])
def test_numerical_failure_yields_fallback(nominal_state, parameters, strategy_class):
    strategy = strategy_class(NanCostModel())
    decision = strategy.compute_control(nominal_state, 50.0, 150.0, parameters, ProcessContext())

    assert decision.strategy is StrategyHelper.FALLBACK
    assert decision.is_fallback
    assert MIN_CURRENT <= decision.control_value <= MAX_CURRENT
    assert "fallback_reason" in decision.info


def test_raising_strategy_yields_fallback(nominal_state, parameters):
    decision = FailingMPC().compute_control(nominal_state, 10.03, 150.0, parameters)

    assert decision.strategy is StrategyHelper.FALLBACK
    assert decision.control_value == pytest.approx(155.0)
    assert decision.info["fallback_reason"] == "solver diverged"
