from datetime import datetime

import pytest
import requests

from electrolyzer_mpc.models.process import ProcessContext
from electrolyzer_mpc.retrievers import api_calls
from electrolyzer_mpc.retrievers.api_calls import CoreApiContextProvider
from electrolyzer_mpc.retrievers.context_provider import StaticContextProvider
from electrolyzer_mpc.retrievers.tariff_schedule import (
    TariffScheduleContextProvider,
    get_solar_irradiance,
    get_tariff,
)


class FixedDraw:
    """Generator stub returning the same uniform draw."""

    def __init__(self, value: float) -> None:
        self.value = value

    def random(self) -> float:
        return self.value


class FakeResponse:
    def __init__(self, payload, status_code=200):
        self.payload = payload
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f"{self.status_code} error")

    def json(self):
        return self.payload


@pytest.mark.parametrize(
    "hour, expected",
    [
        (0, (8.50, "offPeak")),
        (5, (8.50, "offPeak")),
        (6, (12.50, "standard")),
        (10, (21.68, "peak")),
        (15, (21.68, "peak")),
        (16, (12.50, "standard")),
        (22, (8.50, "offPeak")),
    ],
)
def test_tariff(hour, expected):
    assert get_tariff(hour) == expected


def test_solar_irradiance_follows_daylight():
    assert get_solar_irradiance(datetime(2025, 1, 15, 12)) == pytest.approx(6200.0)
    assert get_solar_irradiance(datetime(2025, 7, 15, 9)) == pytest.approx(2500.0)
    assert get_solar_irradiance(datetime(2025, 7, 15, 5)) == 0.0
    assert get_solar_irradiance(datetime(2025, 7, 15, 18)) == 0.0


def test_schedule_context_without_surge():
    # Tuesday 20:00
    provider = TariffScheduleContextProvider(clock=lambda: datetime(2025, 3, 4, 20), rng=FixedDraw(0.5))
    context = provider.get_current_context()

    assert context == ProcessContext(
        electricity_cost=12.50,
        solar_irradiance=0.0,
        o2_demand=120.0,
        hour_of_day=20,
        is_emergency=False,
        tariff_type="standard",
    )


def test_schedule_context_demand_surge_is_an_emergency():
    # Sunday 03:00: 120 * 0.8 * 0.7 = 67.2, surged to 168
    provider = TariffScheduleContextProvider(clock=lambda: datetime(2025, 3, 9, 3), rng=FixedDraw(0.05))
    context = provider.get_current_context()

    assert context.o2_demand == 168.0
    assert not context.is_emergency
    assert context.tariff_type == "offPeak"

    # Monday 08:00: 120 * 1.5 * 1.1 = 198
    provider = TariffScheduleContextProvider(clock=lambda: datetime(2025, 3, 10, 8), rng=FixedDraw(0.5))
    context = provider.get_current_context()
    assert context.o2_demand == 198.0
    assert context.is_emergency


def test_static_context_provider():
    assert StaticContextProvider().get_current_context() == ProcessContext()


def test_core_api_context(monkeypatch):
    calls = []

    def fake_get(url, timeout):
        calls.append((url, timeout))
        return FakeResponse({"electricityCost": 21.68, "tariffType": "peak", "hourOfDay": 11, "isEmergency": True})

    monkeypatch.setenv("CORE_API_URL", "http://core")
    monkeypatch.setattr(api_calls.requests, "get", fake_get)

    context = CoreApiContextProvider().get_current_context()

    assert calls == [("http://core/context", 30)]
    assert context.electricity_cost == 21.68
    assert context.tariff_type == "peak"
    assert context.is_emergency
    assert context.o2_demand == 120.0


def test_core_api_error_is_raised(monkeypatch):
    monkeypatch.setenv("CORE_API_URL", "http://core")
    monkeypatch.setattr(api_calls.requests, "get", lambda url, timeout: FakeResponse({}, status_code=503))

    with pytest.raises(requests.exceptions.HTTPError):
        CoreApiContextProvider().get_current_context()
