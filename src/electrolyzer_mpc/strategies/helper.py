from enum import Enum
from typing import List

from electrolyzer_mpc.util.errors import ConfigurationError


class StrategyHelper(Enum):
    """An enumeration that defines the control strategies and provides helper utilities.

    This class serves two purposes:
    1. It is the dispatch tag of the engine: every control decision carries the
       member of the strategy that produced it, and `FALLBACK` marks degraded
       operation after a strategy failure.
    2. It offers static helpers to parse identifiers received from the transport
       layer and to describe each strategy for the presentation layer.
    """

    HEMPC = "hempc"
    DETERMINISTIC = "deterministic"
    STOCHASTIC = "stochastic"
    HYBRID = "hybrid"
    NEURAL = "neural"
    FALLBACK = "fallback"

    @staticmethod
    def parse(strategy_id: "StrategyHelper | str") -> "StrategyHelper":
        """Resolves a strategy identifier that a caller may select.

        Args:
            strategy_id: A `StrategyHelper` member, its name (e.g. 'HEMPC') or its
                         value (e.g. 'hempc'), case-insensitive. 'NEURAL_MPC' is
                         accepted as an alias of 'NEURAL'.

        Returns:
            The matching member.

        Raises:
            ConfigurationError: If the identifier is unknown or designates `FALLBACK`,
                                which is never selected by a caller.
        """
        if isinstance(strategy_id, StrategyHelper):
            strategy = strategy_id
        else:
            key = str(strategy_id).strip().upper()
            if key == "NEURAL_MPC":
                key = "NEURAL"
            try:
                strategy = StrategyHelper[key]
            except KeyError:
                raise ConfigurationError(f"Unknown strategy '{strategy_id}'") from None

        if strategy is StrategyHelper.FALLBACK:
            raise ConfigurationError("The fallback strategy cannot be selected directly")
        return strategy

    @staticmethod
    def selectable() -> List["StrategyHelper"]:
        """Returns the strategies a caller may select, in declaration order."""
        return [s for s in StrategyHelper if s is not StrategyHelper.FALLBACK]

    @staticmethod
    def comparable() -> List["StrategyHelper"]:
        """Returns the classical strategies ranked by the comparator, in tie-break order."""
        return [
            StrategyHelper.HEMPC,
            StrategyHelper.DETERMINISTIC,
            StrategyHelper.STOCHASTIC,
            StrategyHelper.HYBRID,
        ]

    def describe(self) -> str:
        """Returns a one-paragraph description of the strategy."""
        return _DESCRIPTIONS[self]


_DESCRIPTIONS = {
    StrategyHelper.HEMPC: (
        "Hierarchical Economic MPC: Separates economic optimization from fast tracking control. "
        "Suitable for multi-time-scale objectives."
    ),
    StrategyHelper.DETERMINISTIC: (
        "Deterministic Receding-Horizon MPC: Standard MPC with perfect forecast assumption. "
        "Computationally efficient but sensitive to uncertainties."
    ),
    StrategyHelper.STOCHASTIC: (
        "Stochastic MPC: Explicitly handles uncertainties through scenario-based optimization. "
        "More robust but computationally intensive."
    ),
    StrategyHelper.HYBRID: (
        "Hybrid MPC: Combines continuous control with discrete decisions. "
        "Suitable for systems with both continuous and discrete actuators."
    ),
    StrategyHelper.NEURAL: (
        "Neural MPC: Feed-forward network trained online on observed controls, "
        "enhanced with electricity tariff, solar and oxygen demand context."
    ),
    StrategyHelper.FALLBACK: (
        "Fallback control: Proportional correction of the previous control, "
        "used whenever a strategy fails."
    ),
}
