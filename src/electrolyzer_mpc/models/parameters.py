"""Tuning parameters shared by the search-based MPC strategies."""

from dataclasses import asdict, dataclass, fields
from typing import Any, Dict, List, Mapping, Tuple

from electrolyzer_mpc.util.errors import ConfigurationError

MIN_HORIZON = 1
MAX_HORIZON = 50

# camelCase names sent by the dashboard
_CAMEL_CASE_KEYS = {
    "sampleTime": "sample_time",
    "qWeight": "q_weight",
    "rWeight": "r_weight",
    "sWeight": "s_weight",
    "economicWeight": "economic_weight",
    "uncertaintyLevel": "uncertainty_level",
    "discreteOptions": "discrete_options",
}


@dataclass(frozen=True)
class MPCParameters:
    """Validated MPC tuning parameters.

    Attributes:
        horizon: Number of prediction steps, 1 to 50.
        sample_time: Sampling period in seconds, strictly positive.
        q_weight: Tracking error weight, strictly positive.
        r_weight: Control effort weight, strictly positive.
        s_weight: Terminal error weight, non-negative.
        economic_weight: Weight of the economic layer, between 0 and 1.
        scenarios: Number of sampled scenarios of the stochastic strategy.
        uncertainty_level: Relative half-width of the scenario perturbation.
        discrete_options: Operating points evaluated by the hybrid strategy.
    """

    horizon: int = 10
    sample_time: float = 0.1
    q_weight: float = 10.0
    r_weight: float = 1.0
    s_weight: float = 100.0
    economic_weight: float = 0.5
    scenarios: int = 5
    uncertainty_level: float = 0.1
    discrete_options: Tuple[float, ...] = (100.0, 150.0, 200.0)

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        """Checks every parameter rule.

        Raises:
            ConfigurationError: Listing all the rules that are violated.
        """
        errors: List[str] = []

        if (
            isinstance(self.horizon, bool)
            or not isinstance(self.horizon, int)
            or not MIN_HORIZON <= self.horizon <= MAX_HORIZON
        ):
            errors.append(f"Horizon must be an integer between {MIN_HORIZON} and {MAX_HORIZON}")
        if not self.sample_time > 0:
            errors.append("Sample time must be positive")
        if not self.q_weight > 0:
            errors.append("Q weight must be positive")
        if not self.r_weight > 0:
            errors.append("R weight must be positive")
        if not self.s_weight >= 0:
            errors.append("S weight must be non-negative")
        if not 0 <= self.economic_weight <= 1:
            errors.append("Economic weight must be between 0 and 1")
        if isinstance(self.scenarios, bool) or not isinstance(self.scenarios, int) or self.scenarios < 1:
            errors.append("Scenarios must be a positive integer")
        if not self.uncertainty_level >= 0:
            errors.append("Uncertainty level must be non-negative")
        if len(self.discrete_options) == 0:
            errors.append("Discrete options must not be empty")

        if errors:
            raise ConfigurationError(errors)

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any] | None) -> "MPCParameters":
        """Builds parameters from a mapping, filling the missing keys with defaults.

        Both snake_case and the dashboard's camelCase keys are accepted; unknown
        keys are ignored.

        Raises:
            ConfigurationError: If a value is not numeric or violates a parameter rule.
        """
        if not payload:
            return cls()

        known = {f.name for f in fields(cls)}
        values: Dict[str, Any] = {}
        for key, value in payload.items():
            name = _CAMEL_CASE_KEYS.get(key, key)
            if name in known:
                values[name] = value

        try:
            if "horizon" in values and isinstance(values["horizon"], float) and values["horizon"].is_integer():
                values["horizon"] = int(values["horizon"])
            for name in ("sample_time", "q_weight", "r_weight", "s_weight", "economic_weight", "uncertainty_level"):
                if name in values:
                    values[name] = float(values[name])
            if "discrete_options" in values:
                values["discrete_options"] = tuple(float(option) for option in values["discrete_options"])
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"invalid MPC parameter value: {e}") from e

        return cls(**values)

    def with_changes(self, **changes: Any) -> "MPCParameters":
        """Returns a validated copy with some parameters replaced."""
        values = asdict(self)
        values.update(changes)
        return MPCParameters(**values)

    def to_dict(self) -> Dict[str, Any]:
        values = asdict(self)
        values["discrete_options"] = list(self.discrete_options)
        return values
