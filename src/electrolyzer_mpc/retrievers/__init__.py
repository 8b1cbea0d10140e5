"""
The `retrievers` module provides the exogenous context of the economic
strategies: electricity tariff, solar irradiance, oxygen demand and hour of day.

- [`context_provider.py`](src/electrolyzer_mpc/retrievers/context_provider.py): The abstract
  `ContextProvider` interface and a `StaticContextProvider` returning a fixed context.

- [`tariff_schedule.py`](src/electrolyzer_mpc/retrievers/tariff_schedule.py): The
  `TariffScheduleContextProvider`, which builds the context from the time-of-use
  tariff, the monthly solar resource and the hospital oxygen demand profile.

- [`api_calls.py`](src/electrolyzer_mpc/retrievers/api_calls.py): The API client
  fetching the context from the Core API, and the `CoreApiContextProvider` using it.
"""
