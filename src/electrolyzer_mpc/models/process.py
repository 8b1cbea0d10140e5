"""Process measurements and exogenous context consumed by the control engine."""

import math
import numbers
import time
from dataclasses import asdict, dataclass, field, replace
from typing import Any, Dict, Mapping

from electrolyzer_mpc.util.errors import InvalidStateError

PROCESS_FIELDS = ("production", "temperature", "voltage", "current", "purity")


def _as_finite_float(value: Any, name: str) -> float:
    if value is None:
        raise InvalidStateError(f"process state is missing required field '{name}'")
    # bool is an int subclass but never a measurement
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        raise InvalidStateError(f"process state field '{name}' must be numeric, got {value!r}")
    if not math.isfinite(value):
        raise InvalidStateError(f"process state field '{name}' must be finite, got {value!r}")
    return float(value)


@dataclass(frozen=True)
class ProcessState:
    """Snapshot of the electrolyzer stack at one sampling tick.

    Attributes:
        production: Hydrogen production rate in L/s.
        temperature: Cell temperature in degrees Celsius.
        voltage: Stack voltage in V.
        current: Stack current in A.
        purity: Oxygen purity in percent.
        timestamp: Epoch seconds at which the snapshot was taken.
    """

    production: float
    temperature: float
    voltage: float
    current: float
    purity: float
    timestamp: float = field(default_factory=time.time)

    def __post_init__(self) -> None:
        """Coerces every field to float.

        Raises:
            InvalidStateError: If a field is missing, non-numeric or not finite.
        """
        for name in PROCESS_FIELDS + ("timestamp",):
            object.__setattr__(self, name, _as_finite_float(getattr(self, name), name))

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "ProcessState":
        """Builds a state from a transport payload.

        Raises:
            InvalidStateError: If a required field is missing, non-numeric or not finite.
        """
        if not isinstance(payload, Mapping):
            raise InvalidStateError(f"process state must be a mapping, got {type(payload).__name__}")
        values = {name: payload.get(name) for name in PROCESS_FIELDS}
        if payload.get("timestamp") is not None:
            values["timestamp"] = payload["timestamp"]
        return cls(**values)

    def with_changes(self, **changes: float) -> "ProcessState":
        """Returns a copy of the state with some fields replaced."""
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


@dataclass(frozen=True)
class ProcessContext:
    """Exogenous economic and environmental context of one control decision.

    Attributes:
        electricity_cost: Current electricity tariff in KSh/kWh.
        solar_irradiance: Current solar irradiance in W/m2.
        o2_demand: Current oxygen demand in L/min.
        hour_of_day: Local hour, 0 to 23.
        is_emergency: Whether the oxygen demand is in an emergency surge.
        tariff_type: One of 'offPeak', 'standard' or 'peak'.
    """

    electricity_cost: float = 12.5
    solar_irradiance: float = 0.0
    o2_demand: float = 120.0
    hour_of_day: int = 12
    is_emergency: bool = False
    tariff_type: str = "standard"

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "ProcessContext":
        """Builds a context from a mapping, accepting camelCase keys as well."""
        default = cls()

        def pick(snake: str, camel: str) -> Any:
            return payload.get(snake, payload.get(camel, getattr(default, snake)))

        return cls(
            electricity_cost=float(pick("electricity_cost", "electricityCost")),
            solar_irradiance=float(pick("solar_irradiance", "solarIrradiance")),
            o2_demand=float(pick("o2_demand", "o2Demand")),
            hour_of_day=int(pick("hour_of_day", "hourOfDay")),
            is_emergency=bool(pick("is_emergency", "isEmergency")),
            tariff_type=str(pick("tariff_type", "tariffType")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class TrainingSample:
    """One supervised example for the learned predictor.

    Attributes:
        input_features: Raw process values plus the reference, keyed by
                        production, temperature, voltage, current, purity and reference.
        target_control: The control current that should have been predicted.
        context: The context that was in effect when the sample was taken.
        timestamp: Epoch seconds of the observation.
    """

    input_features: Dict[str, float]
    target_control: float
    context: ProcessContext = field(default_factory=ProcessContext)
    timestamp: float = field(default_factory=time.time)

    @classmethod
    def from_observation(
        cls,
        state: ProcessState,
        reference: float,
        applied_control: float,
        context: ProcessContext | None = None,
    ) -> "TrainingSample":
        """Derives a sample from a state, its reference and the control that was applied."""
        features = {name: getattr(state, name) for name in PROCESS_FIELDS}
        features["reference"] = float(reference)
        return cls(
            input_features=features,
            target_control=float(applied_control),
            context=context or ProcessContext(),
            timestamp=state.timestamp,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "input_features": dict(self.input_features),
            "target_control": self.target_control,
            "context": self.context.to_dict(),
            "timestamp": self.timestamp,
        }
