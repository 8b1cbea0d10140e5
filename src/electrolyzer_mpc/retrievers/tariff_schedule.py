"""Context provider built from the local electricity tariff, the solar resource and
the hospital oxygen demand profile.

The tables reproduce the Kenya Power time-of-use tariff, the monthly mean solar
irradiation of Nairobi and a typical hospital oxygen consumption pattern. The
demand includes random surges, so the provider accepts a seeded generator for
reproducible runs.
"""

from datetime import datetime
from typing import Callable, Dict, Tuple

import numpy as np

from electrolyzer_mpc.models.process import ProcessContext
from electrolyzer_mpc.retrievers.context_provider import ContextProvider
from electrolyzer_mpc.util.logging import LoggingUtil

logger = LoggingUtil.get_logger(__name__)

# KES per kWh
OFF_PEAK_HOURS = (0, 1, 2, 3, 4, 5, 22, 23)
PEAK_HOURS = (10, 11, 12, 13, 14, 15)
OFF_PEAK_RATE = 8.50
PEAK_RATE = 21.68
STANDARD_RATE = 12.50

# kWh/m²/day, January first
MONTHLY_SOLAR_IRRADIATION = (6.2, 6.5, 6.3, 5.8, 5.2, 5.1, 5.0, 5.3, 5.8, 5.9, 5.7, 5.9)

# m³/h
BASELINE_O2_DEMAND = 120.0
# Percentage of the baseline, keyed by [start, stop) hour
DAILY_DEMAND_PATTERN: Dict[Tuple[int, int], float] = {
    (0, 6): 80.0,
    (6, 12): 150.0,
    (12, 18): 140.0,
    (18, 24): 100.0,
}
# Monday first
WEEKLY_DEMAND_FACTORS = (1.1, 1.0, 1.0, 1.0, 0.9, 0.8, 0.7)
SURGE_PROBABILITY = 0.1
SURGE_FACTOR = 2.5
EMERGENCY_THRESHOLD = 1.5


def get_tariff(hour: int) -> Tuple[float, str]:
    """Returns the electricity rate and the tariff type of an hour of the day."""
    if hour in OFF_PEAK_HOURS:
        return OFF_PEAK_RATE, "offPeak"
    if hour in PEAK_HOURS:
        return PEAK_RATE, "peak"
    return STANDARD_RATE, "standard"


def get_solar_irradiance(timestamp: datetime) -> float:
    """Estimates the solar irradiance (W/m²) from the monthly mean and a daylight profile.

    The profile peaks at noon and is zero before 06:00 and after 18:00.
    """
    hour = timestamp.hour
    if not 6 <= hour <= 18:
        return 0.0
    daylight_factor = max(0.0, 1 - abs(hour - 12) / 6)
    return MONTHLY_SOLAR_IRRADIATION[timestamp.month - 1] * daylight_factor * 1000


class TariffScheduleContextProvider(ContextProvider):
    """Builds the context from the tariff, solar and demand tables."""

    def __init__(
        self,
        clock: Callable[[], datetime] = datetime.now,
        rng: np.random.Generator | None = None,
    ) -> None:
        """Initializes the provider.

        Args:
            clock: Source of the local time.
            rng: Generator of the random demand surges.
        """
        self._clock = clock
        self._rng = rng if rng is not None else np.random.default_rng()

    def get_o2_demand(self, timestamp: datetime) -> Tuple[float, bool]:
        """Returns the oxygen demand (m³/h) and whether it is an emergency."""
        hour = timestamp.hour
        hourly_factor = next(
            factor for (start, stop), factor in DAILY_DEMAND_PATTERN.items() if start <= hour < stop
        )
        demand = BASELINE_O2_DEMAND * hourly_factor / 100 * WEEKLY_DEMAND_FACTORS[timestamp.weekday()]

        if self._rng.random() < SURGE_PROBABILITY:
            demand *= SURGE_FACTOR
            logger.info("Oxygen demand surge: %.0f m³/h", demand)

        return float(round(demand)), demand > BASELINE_O2_DEMAND * EMERGENCY_THRESHOLD

    def get_current_context(self) -> ProcessContext:
        now = self._clock()
        electricity_cost, tariff_type = get_tariff(now.hour)
        o2_demand, is_emergency = self.get_o2_demand(now)

        context = ProcessContext(
            electricity_cost=electricity_cost,
            solar_irradiance=get_solar_irradiance(now),
            o2_demand=o2_demand,
            hour_of_day=now.hour,
            is_emergency=is_emergency,
            tariff_type=tariff_type,
        )
        logger.debug("Context at %s: %s", now.isoformat(), context)
        return context
