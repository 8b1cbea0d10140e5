import itertools

import pytest

from electrolyzer_mpc.models.process import ProcessState
from electrolyzer_mpc.strategies.constraints import (
    MAX_CURRENT,
    MIN_CURRENT,
    apply_constraints,
    apply_robustness_margin,
    check_constraint_violations,
    fallback_control,
)
from electrolyzer_mpc.strategies.cost_model import CostModel


def test_constraints_keep_control_within_limits():
    temperatures = [20.0, 75.0, 76.0, 79.0, 95.0]
    voltages = [30.0, 42.0, 43.0]
    purities = [98.0, 99.2, 99.3, 99.9]
    controls = [-500.0, 0.0, 99.9, 100.0, 145.0, 175.0, 200.0, 1e6]

    for temperature, voltage, purity, control in itertools.product(temperatures, voltages, purities, controls):
        state = ProcessState(production=0.03, temperature=temperature, voltage=voltage, current=150.0, purity=purity)
        assert MIN_CURRENT <= apply_constraints(control, state) <= MAX_CURRENT


@pytest.mark.parametrize(
    "changes, expected",
    [
        ({}, 200.0),
        ({"temperature": 76.0}, 150.0),
        ({"temperature": 79.0}, 120.0),
        ({"voltage": 43.0}, 160.0),
        ({"purity": 99.2}, 140.0),
        ({"temperature": 76.0, "purity": 99.2}, 140.0),
    ],
)
def test_constraints_cap_the_current(nominal_state, changes, expected):
    state = nominal_state.with_changes(**changes)
    assert apply_constraints(200.0, state) == expected


def test_robustness_margin_accumulates(nominal_state):
    assert apply_robustness_margin(150.0, nominal_state) == 150.0

    adverse = nominal_state.with_changes(temperature=76.0, purity=99.0, voltage=43.0)
    assert apply_robustness_margin(150.0, adverse) == 127.0
    assert apply_robustness_margin(105.0, adverse) == MIN_CURRENT


def test_fallback_control_is_proportional(nominal_state):
    # 150 + 0.5 * (10.03 - 0.03)
    assert fallback_control(nominal_state, 10.03, 150.0) == pytest.approx(155.0)
    assert fallback_control(nominal_state, -1000.0, 150.0) == MIN_CURRENT


def test_constraint_violations(nominal_state):
    assert check_constraint_violations(150.0, nominal_state) == []

    state = nominal_state.with_changes(temperature=81.0, purity=98.5)
    assert check_constraint_violations(250.0, state) == ["MAX_CURRENT", "MAX_TEMPERATURE", "MIN_O2_PURITY"]


def test_cost_model_terminal_weight():
    model = CostModel()
    # One step: x1 = 0.95 * 0 + 0.8 * 10 = 8, error 3
    assert model.evaluate_cost(0.0, 10.0, 5.0, 1, 1.0, 1.0, 0.0) == pytest.approx(9.0)
    assert model.evaluate_cost(0.0, 10.0, 5.0, 1, 1.0, 1.0, 100.0) == pytest.approx(909.0)


def test_cost_model_control_effort_skips_first_step():
    model = CostModel(a_matrix=0.0, b_matrix=0.0)
    # States stay at 0 with the reference: only the control effort of steps 1 and 2 counts
    assert model.evaluate_cost(0.0, 2.0, 0.0, 3, 1.0, 1.0, 1.0) == pytest.approx(8.0)
