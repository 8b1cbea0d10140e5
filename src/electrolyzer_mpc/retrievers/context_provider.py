from abc import ABC, abstractmethod

from electrolyzer_mpc.models.process import ProcessContext
from electrolyzer_mpc.util.logging import LoggingUtil

logger = LoggingUtil.get_logger(__name__)


class ContextProvider(ABC):
    """Abstract source of the exogenous context of a control decision.

    The engine asks its provider for the current context once per control request
    of the economic strategies (HE-MPC and Neural MPC). Subclasses define where the
    tariff, solar irradiance and oxygen demand come from: a fixed value, a local
    tariff and demand schedule or the Core API.
    """

    @abstractmethod
    def get_current_context(self) -> ProcessContext:
        """Returns the context valid at the time of the call.

        Raises:
            Exception: Any failure of the underlying source. The engine logs it and
                       uses the default context instead.
        """
        pass


class StaticContextProvider(ContextProvider):
    """Always returns the same context, the default one when none is supplied."""

    def __init__(self, context: ProcessContext | None = None) -> None:
        self._context = context or ProcessContext()

    def get_current_context(self) -> ProcessContext:
        return self._context
