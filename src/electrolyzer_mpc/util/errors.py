"""Exception hierarchy of the control engine.

Only `ConfigurationError` and `InvalidStateError` ever reach a caller of the
engine. `StrategyError` (and its `PredictionError` subclass) are converted to a
fallback decision at the strategy boundary, and `PersistenceError` is logged and
answered with a freshly initialized model.
"""


class ElectrolyzerMPCError(Exception):
    """Base class for all errors raised by the electrolyzer control engine."""


class ConfigurationError(ElectrolyzerMPCError, ValueError):
    """Raised when MPC parameters or a strategy identifier are invalid."""

    def __init__(self, errors: list[str] | str) -> None:
        if isinstance(errors, str):
            errors = [errors]
        self.errors = list(errors)
        super().__init__("; ".join(self.errors))


class InvalidStateError(ElectrolyzerMPCError, ValueError):
    """Raised when a process state is missing required numeric fields."""


class StrategyError(ElectrolyzerMPCError):
    """Raised on a numerical failure inside a control strategy."""


class PredictionError(StrategyError):
    """Raised when the learned predictor cannot produce a control value."""


class PersistenceError(ElectrolyzerMPCError):
    """Raised when the network model cannot be saved or loaded."""
