import numpy as np
import pytest

from electrolyzer_mpc.models.parameters import MPCParameters
from electrolyzer_mpc.models.process import ProcessContext, ProcessState
from electrolyzer_mpc.neural.learned_predictor import LearnedPredictor
from electrolyzer_mpc.neural.model_store import ModelStore
from electrolyzer_mpc.neural.network import NetworkConfig
from electrolyzer_mpc.retrievers.context_provider import StaticContextProvider


@pytest.fixture
def nominal_state() -> ProcessState:
    """Stack state within every safety limit."""
    return ProcessState(production=0.03, temperature=65.0, voltage=38.0, current=150.0, purity=99.5, timestamp=1000.0)


@pytest.fixture
def hot_state() -> ProcessState:
    return ProcessState(production=0.03, temperature=76.0, voltage=38.0, current=150.0, purity=99.5, timestamp=1000.0)


@pytest.fixture
def parameters() -> MPCParameters:
    return MPCParameters()


@pytest.fixture
def context() -> ProcessContext:
    return ProcessContext(
        electricity_cost=12.5,
        solar_irradiance=0.0,
        o2_demand=120.0,
        hour_of_day=12,
        is_emergency=False,
        tariff_type="standard",
    )


@pytest.fixture
def context_provider(context) -> StaticContextProvider:
    return StaticContextProvider(context)


@pytest.fixture
def rng() -> np.random.Generator:
    return np.random.default_rng(42)


@pytest.fixture
def model_store(tmp_path) -> ModelStore:
    return ModelStore(tmp_path / "models")


@pytest.fixture
def small_config() -> NetworkConfig:
    return NetworkConfig(hidden_layers=(8,), learning_rate=0.01, epochs=20)


@pytest.fixture
def predictor(small_config, model_store, rng) -> LearnedPredictor:
    return LearnedPredictor(config=small_config, model_store=model_store, rng=rng, auto_train_every=0)
