import logging

import pytest

from electrolyzer_mpc.util.config import load_config, merge_config
from electrolyzer_mpc.util.errors import ConfigurationError
from electrolyzer_mpc.util.logging import LoggingUtil


def test_default_config(monkeypatch):
    monkeypatch.delenv("MPC_CONFIG_PATH", raising=False)
    monkeypatch.delenv("MODEL_SAVE_DIR", raising=False)

    config = load_config()

    assert config["mpc_parameters"]["horizon"] == 10
    assert config["neural_network"]["hidden_layers"] == [64, 32]
    assert config["training"]["buffer_capacity"] == 2000
    assert config["model_store"]["directory"] == "/app/data/neural_models"


def test_override_file_is_merged(tmp_path, monkeypatch):
    override = tmp_path / "override.yaml"
    override.write_text("mpc_parameters:\n  horizon: 20\nmonitoring:\n  trend_interval: 60\n")
    monkeypatch.setenv("MPC_CONFIG_PATH", str(override))
    monkeypatch.setenv("MODEL_SAVE_DIR", str(tmp_path / "models"))

    config = load_config()

    assert config["mpc_parameters"]["horizon"] == 20
    assert config["mpc_parameters"]["q_weight"] == 10.0
    assert config["monitoring"] == {"evaluation_interval": 30, "trend_interval": 60}
    assert config["model_store"]["directory"] == str(tmp_path / "models")


def test_invalid_override_file(tmp_path):
    with pytest.raises(ConfigurationError):
        load_config(tmp_path / "missing.yaml")

    not_a_mapping = tmp_path / "list.yaml"
    not_a_mapping.write_text("- 1\n- 2\n")
    with pytest.raises(ConfigurationError):
        load_config(not_a_mapping)


def test_merge_config_does_not_mutate_base():
    base = {"a": {"b": 1, "c": 2}}
    merged = merge_config(base, {"a": {"b": 3}, "d": 4})

    assert merged == {"a": {"b": 3, "c": 2}, "d": 4}
    assert base == {"a": {"b": 1, "c": 2}}


@pytest.mark.parametrize(
    "level_name, expected",
    [
        ("debug", logging.DEBUG),
        ("WARNING", logging.WARNING),
        ("loud", logging.INFO),
    ],
)
def test_log_level_from_environment(monkeypatch, level_name, expected):
    monkeypatch.setenv("LOGLEVEL", level_name)

    logger = LoggingUtil.get_logger(f"electrolyzer_mpc.tests.{level_name}")

    assert logger.level == expected


def test_handlers_are_not_duplicated():
    logger = LoggingUtil.get_logger("electrolyzer_mpc.tests.handlers")
    LoggingUtil.get_logger("electrolyzer_mpc.tests.handlers")

    assert len(logger.handlers) == 1
