"""Prediction model and objective shared by the search-based strategies."""

class CostModel:
    """Scalar linear model of the hydrogen production and the quadratic MPC objective.

    The production evolves as `x[k+1] = A * x[k] + B * u` with the stack current
    `u` held constant over the horizon. The objective is shared by every
    grid-search strategy so that their costs are comparable.

    1.  Objective:
        ..  math::
            J = sum_{k=0}^{N-1} q (x[k+1] - ref)^2 + sum_{k=1}^{N-1} r u^2 + s (x[N] - ref)^2
    """

    A_MATRIX = 0.95
    B_MATRIX = 0.8

    def __init__(self, a_matrix: float = A_MATRIX, b_matrix: float = B_MATRIX) -> None:
        self.a_matrix = a_matrix
        self.b_matrix = b_matrix

    def predict_next_state(self, state_value: float, control: float) -> float:
        """Predicts the production one step ahead."""
        return self.a_matrix * state_value + self.b_matrix * control

    def evaluate_cost(
        self,
        production: float,
        control: float,
        reference: float,
        horizon: int,
        q_weight: float,
        r_weight: float,
        s_weight: float,
    ) -> float:
        """Rolls the model forward over the horizon and accumulates the objective.

        Args:
            production: Current production, the initial state of the prediction.
            control: Constant stack current applied over the horizon.
            reference: Production setpoint to track.
            horizon: Number of prediction steps.
            q_weight: Weight of the squared tracking error, applied at every step.
            r_weight: Weight of the squared control, applied from the second step on.
            s_weight: Weight of the squared terminal error.

        Returns:
            The accumulated cost.
        """
        total_cost = 0.0
        state = production

        for k in range(horizon):
            state = self.predict_next_state(state, control)

            tracking_error = state - reference
            total_cost += q_weight * tracking_error * tracking_error

            # Control effort cost (except first step)
            if k > 0:
                total_cost += r_weight * control * control

        terminal_error = state - reference
        total_cost += s_weight * terminal_error * terminal_error

        return total_cost
