import os
from typing import Any, Dict

import requests

from electrolyzer_mpc.models.process import ProcessContext
from electrolyzer_mpc.retrievers.context_provider import ContextProvider
from electrolyzer_mpc.util.logging import LoggingUtil

# Configure and start the logger
logger = LoggingUtil.get_logger(__name__)


def get_context() -> Dict[str, Any]:
    """Retrieves the current process context from the Core API.

    This function sends a GET request to the /context endpoint of the Core API,
    which returns the electricity cost, solar irradiance, oxygen demand, hour of
    day, emergency flag and tariff type.

    Returns:
        A dictionary with the context fields, in snake_case or camelCase.

    Raises:
        requests.exceptions.HTTPError: If the API call fails (e.g., 4xx or 5xx status code).
    """
    api_url = f"{os.getenv('CORE_API_URL')}/context"

    response = requests.get(api_url, timeout=30)
    response.raise_for_status()  # Raise an error for bad responses (4xx, 5xx)
    context = response.json()
    logger.debug("Context retrieved from API: %s", context)
    return context


class CoreApiContextProvider(ContextProvider):
    """Fetches the context from the Core API on every call."""

    def get_current_context(self) -> ProcessContext:
        return ProcessContext.from_dict(get_context())
