"""Operational safety limits of the electrolyzer stack.

`apply_constraints` is the single safety backstop of the engine: every strategy,
the learned predictor and the fallback pass their output through it before a
decision leaves the engine. It is pure arithmetic and cannot fail.
"""

from typing import List

from electrolyzer_mpc.models.process import ProcessState

MIN_CURRENT = 100.0
MAX_CURRENT = 200.0

# Operating limits checked by the performance tracker
MAX_TEMPERATURE = 80.0
MIN_O2_PURITY = 99.0

FALLBACK_GAIN = 0.5


def clamp_current(control: float) -> float:
    """Clamps a current to the absolute stack limits."""
    return max(MIN_CURRENT, min(MAX_CURRENT, control))


def apply_constraints(control: float, state: ProcessState) -> float:
    """Applies the operational safety limits to a proposed control current.

    The rules are applied in order and each one can only tighten the bound:

    1. Temperature above 75 °C caps the current at 150 A, above 78 °C at 120 A.
    2. Voltage above 42 V caps the current at 160 A.
    3. Oxygen purity below 99.3 % caps the current at 140 A.
    4. The result is clamped to [MIN_CURRENT, MAX_CURRENT].

    Args:
        control: The proposed stack current in A.
        state: The process state the control will be applied to.

    Returns:
        The safe stack current in A.
    """
    constrained_control = control

    if state.temperature > 75:
        constrained_control = min(constrained_control, 150.0)
    if state.temperature > 78:
        constrained_control = min(constrained_control, 120.0)

    if state.voltage > 42:
        constrained_control = min(constrained_control, 160.0)

    if state.purity < 99.3:
        constrained_control = min(constrained_control, 140.0)

    return clamp_current(constrained_control)


def apply_robustness_margin(control: float, state: ProcessState) -> float:
    """Backs a scenario-averaged control off under adverse conditions.

    High temperature removes 10 A, low purity 5 A and high voltage 8 A; the
    result is clamped to the absolute stack limits.
    """
    margin = 0.0

    if state.temperature > 75:
        margin -= 10.0
    if state.purity < 99.3:
        margin -= 5.0
    if state.voltage > 42:
        margin -= 8.0

    return clamp_current(control + margin)


def fallback_control(state: ProcessState, reference: float, previous_control: float) -> float:
    """Proportional correction of the previous control, used when a strategy fails.

    Returns:
        `previous_control + 0.5 * (reference - production)` after the safety limits.
    """
    error = reference - state.production
    return apply_constraints(previous_control + FALLBACK_GAIN * error, state)


def check_constraint_violations(control: float, state: ProcessState) -> List[str]:
    """Lists the operating limits violated by a control and the observed state."""
    violations = []

    if control > MAX_CURRENT:
        violations.append("MAX_CURRENT")
    if control < MIN_CURRENT:
        violations.append("MIN_CURRENT")
    if state.temperature > MAX_TEMPERATURE:
        violations.append("MAX_TEMPERATURE")
    if state.purity < MIN_O2_PURITY:
        violations.append("MIN_O2_PURITY")

    return violations
