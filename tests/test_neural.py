import json

import numpy as np
import pytest

from electrolyzer_mpc.models.process import ProcessContext, TrainingSample
from electrolyzer_mpc.neural.learned_predictor import (
    LearnedPredictor,
    calculate_confidence,
    calculate_economic_setpoint,
    enhance_input_with_context,
)
from electrolyzer_mpc.neural.model_store import ModelStore
from electrolyzer_mpc.neural.network import NetworkConfig, NetworkModel
from electrolyzer_mpc.strategies.constraints import MAX_CURRENT, MIN_CURRENT
from electrolyzer_mpc.strategies.helper import StrategyHelper
from electrolyzer_mpc.util.errors import ConfigurationError, PersistenceError, PredictionError


def make_batch(state, context):
    return [
        TrainingSample.from_observation(state.with_changes(production=production), reference, target, context)
        for production, reference, target in [
            (0.01, 30.0, 120.0),
            (0.02, 50.0, 140.0),
            (0.03, 70.0, 160.0),
            (0.04, 90.0, 180.0),
        ]
    ]


def test_features_are_normalized(nominal_state):
    features = {
        "production": 0.03,
        "temperature": 65.0,
        "voltage": 38.0,
        "current": 150.0,
        "purity": 99.5,
        "reference": 50.0,
    }
    context = ProcessContext(electricity_cost=50.0, solar_irradiance=500.0, o2_demand=100.0, hour_of_day=6)

    vector = enhance_input_with_context(features, context)

    assert vector.shape == (10,)
    assert np.all((vector >= 0) & (vector <= 1))
    np.testing.assert_allclose(vector, [0.6, 0.25, 0.3, 0.5, 0.5, 0.5, 1.0, 0.5, 0.5, 0.25])


@pytest.mark.parametrize(
    "reference, context, expected",
    [
        (40.0, ProcessContext(tariff_type="peak"), 20.0),
        (60.0, ProcessContext(tariff_type="offPeak"), 80.0),
        (40.0, ProcessContext(tariff_type="standard", solar_irradiance=800.0), 60.0),
        (60.0, ProcessContext(tariff_type="offPeak", solar_irradiance=800.0), 95.0),
        (40.0, ProcessContext(tariff_type="peak", is_emergency=True), 100.0),
    ],
)
def test_economic_setpoint(reference, context, expected):
    assert calculate_economic_setpoint(reference, context) == expected


def test_confidence_is_bounded():
    assert calculate_confidence(0.2) == pytest.approx(0.4)
    assert calculate_confidence(-3.0) == 1.0


def test_network_config_validation():
    with pytest.raises(ConfigurationError) as excinfo:
        NetworkConfig(hidden_layers=(), learning_rate=0.0, activation="tanh")
    assert len(excinfo.value.errors) == 3

    config = NetworkConfig.from_dict({"hidden_layers": [16, 8], "update_rule": "perturbation"})
    assert config.layer_shapes() == [(16, 10), (8, 16), (1, 8)]


def test_serialization_round_trip_keeps_predictions(small_config, rng):
    model = NetworkModel.initialize(small_config, rng)
    payload = json.loads(json.dumps(model.to_dict()))
    restored = NetworkModel.from_dict(payload, small_config)

    for features in rng.random((5, 10)):
        assert restored.forward(features) == model.forward(features)


def test_deserialization_rejects_other_shapes(small_config, rng):
    payload = NetworkModel.initialize(NetworkConfig(hidden_layers=(4,)), rng).to_dict()
    with pytest.raises(ValueError):
        NetworkModel.from_dict(payload, small_config)


def test_training_reduces_error(predictor, nominal_state, context):
    batch = make_batch(nominal_state, context)
    error_before = predictor.mean_squared_error(batch)

    history = predictor.train(batch)

    assert len(history) == predictor.config.epochs
    assert predictor.mean_squared_error(batch) < error_before
    assert predictor.model.trained


def test_training_reduces_error_in_most_runs(small_config, nominal_state, context):
    batch = make_batch(nominal_state, context)
    improvements = 0
    for seed in range(10):
        predictor = LearnedPredictor(config=small_config, rng=np.random.default_rng(seed), auto_train_every=0)
        error_before = predictor.mean_squared_error(batch)
        predictor.train(batch)
        if predictor.mean_squared_error(batch) <= error_before:
            improvements += 1
    assert improvements > 5


def test_empty_training_is_a_no_op(predictor):
    assert predictor.train([]) == []
    assert not predictor.model.trained


def test_training_is_skipped_while_another_runs(predictor, nominal_state, context):
    predictor._training_lock.acquire()
    try:
        assert predictor.train(make_batch(nominal_state, context)) == []
    finally:
        predictor._training_lock.release()


def test_adapt_returns_prediction_error(predictor, nominal_state, context):
    sample = make_batch(nominal_state, context)[0]
    features = enhance_input_with_context(sample.input_features, context)
    predicted = 100 + predictor.model.forward(features) * 100

    error = predictor.adapt(sample)

    assert error == pytest.approx(sample.target_control - predicted)


def test_perturbation_rule_moves_weights(nominal_state, context, rng):
    config = NetworkConfig(hidden_layers=(8,), update_rule="perturbation", epochs=1)
    predictor = LearnedPredictor(config=config, rng=rng, auto_train_every=0)
    weights_before = [w.copy() for w in predictor.model.weights]

    predictor.adapt(make_batch(nominal_state, context)[3])

    assert any(not np.array_equal(before, after) for before, after in zip(weights_before, predictor.model.weights))


def test_perturbation_step_scales_with_error(small_config):
    base = NetworkModel.initialize(small_config, np.random.default_rng(0))
    displacements = {}
    for error in (0.0, 10.0, 20.0):
        model = base.copy()
        model.perturbation_step(error, 0.01, np.random.default_rng(1))
        displacements[error] = sum(
            float(np.abs(after - before).sum()) for before, after in zip(base.weights, model.weights)
        )

    assert displacements[0.0] == 0.0
    assert displacements[20.0] == pytest.approx(2 * displacements[10.0])
    assert displacements[10.0] > 0.0


def test_adapt_replaces_the_model_instead_of_mutating_it(predictor, nominal_state, context):
    held = predictor.model
    weights_before = [w.copy() for w in held.weights]
    biases_before = [b.copy() for b in held.biases]

    predictor.adapt(make_batch(nominal_state, context)[0])

    assert predictor.model is not held
    assert all(np.array_equal(before, after) for before, after in zip(weights_before, held.weights))
    assert all(np.array_equal(before, after) for before, after in zip(biases_before, held.biases))


def test_prediction_decision(predictor, nominal_state, parameters, context):
    decision = predictor.compute_control(nominal_state, 50.0, 150.0, parameters, context)

    assert decision.strategy is StrategyHelper.NEURAL
    assert MIN_CURRENT <= decision.control_value <= MAX_CURRENT
    assert 0 <= decision.confidence <= 1
    assert decision.info["economic_setpoint"] == 50.0
    assert decision.info["context"] == context.to_dict()


def test_emergency_setpoint_in_decision(predictor, nominal_state, parameters):
    context = ProcessContext(is_emergency=True, tariff_type="peak")
    decision = predictor.compute_control(nominal_state, 100.0, 150.0, parameters, context)

    assert decision.info["economic_setpoint"] == 100.0


def test_prediction_failure_falls_back_to_deterministic(predictor, hot_state, parameters, context, monkeypatch):
    def fail(*args, **kwargs):
        raise PredictionError("network output is not finite: nan")

    monkeypatch.setattr(predictor, "predict", fail)
    decision = predictor.compute_control(hot_state, 50.0, 150.0, parameters, context)

    assert decision.strategy is StrategyHelper.FALLBACK
    assert decision.info["fallback_source"] == "DETERMINISTIC"
    assert decision.reference == 50.0
    assert decision.control_value <= 150.0


def test_unsupported_input_size_is_rejected():
    with pytest.raises(ConfigurationError):
        LearnedPredictor(config=NetworkConfig(input_size=12))


def test_training_buffer_is_bounded(small_config, nominal_state, context, rng):
    predictor = LearnedPredictor(config=small_config, rng=rng, buffer_capacity=3, auto_train_every=0)
    batch = make_batch(nominal_state, context)
    for sample in batch:
        predictor.add_training_sample(sample)

    assert predictor.training_data == tuple(batch[1:])
    assert predictor.recent_samples(2) == batch[2:]
    assert predictor.recent_samples(0) == []


def test_automatic_training(small_config, nominal_state, context, rng):
    predictor = LearnedPredictor(config=small_config, rng=rng, auto_train_every=4, auto_train_window=2)
    batch = make_batch(nominal_state, context)
    for sample in batch[:3]:
        predictor.add_training_sample(sample)
    assert not predictor.model.trained

    predictor.add_training_sample(batch[3])
    assert predictor.model.trained
    assert predictor.model.metadata["training_samples"] == 2


def test_trained_model_is_persisted_and_reloaded(predictor, small_config, model_store, nominal_state, context, rng):
    batch = make_batch(nominal_state, context)
    predictor.train(batch)

    assert model_store.path.exists()
    reloaded = LearnedPredictor(config=small_config, model_store=model_store, rng=rng)

    assert reloaded.model.trained
    for sample in batch:
        features = enhance_input_with_context(sample.input_features, sample.context)
        assert reloaded.model.forward(features) == pytest.approx(predictor.model.forward(features))


def test_missing_model_starts_fresh(small_config, tmp_path, rng):
    predictor = LearnedPredictor(config=small_config, model_store=ModelStore(tmp_path / "empty"), rng=rng)

    assert not predictor.model.trained
    assert predictor.model.shapes == small_config.layer_shapes()


def test_corrupt_model_starts_fresh(small_config, model_store, rng):
    model_store.directory.mkdir(parents=True)
    model_store.path.write_text("{not json")

    predictor = LearnedPredictor(config=small_config, model_store=model_store, rng=rng)

    assert not predictor.model.trained


@pytest.mark.parametrize(
    "field, value",
    [
        ("metadata", 5),
        ("metadata", [1, 2]),
        ("layers", [1, 2]),
        ("layers", 5),
    ],
)
def test_model_with_malformed_fields_starts_fresh(small_config, model_store, rng, field, value):
    payload = NetworkModel.initialize(small_config, rng).to_dict()
    payload["trained"] = True
    model_store.save(payload)
    stored = json.loads(model_store.path.read_text())
    stored[field] = value
    model_store.path.write_text(json.dumps(stored))

    predictor = LearnedPredictor(config=small_config, model_store=model_store, rng=rng)

    assert not predictor.model.trained
    assert predictor.model.shapes == small_config.layer_shapes()


def test_model_with_other_shapes_starts_fresh(small_config, model_store, rng):
    model_store.save(NetworkModel.initialize(NetworkConfig(hidden_layers=(4,)), rng).to_dict())

    predictor = LearnedPredictor(config=small_config, model_store=model_store, rng=rng)

    assert predictor.model.shapes == small_config.layer_shapes()


def test_store_errors(model_store):
    assert model_store.load() is None

    model_store.save({"layers": []})
    assert "saved_date" in model_store.load()

    model_store.path.write_text("[1, 2]")
    with pytest.raises(PersistenceError):
        model_store.load()

    model_store.delete()
    model_store.delete()
    assert not model_store.path.exists()


def test_reset(predictor, nominal_state, context):
    batch = make_batch(nominal_state, context)
    for sample in batch:
        predictor.add_training_sample(sample)
    predictor.train(batch)

    predictor.reset()

    assert predictor.training_data == ()
    assert not predictor.model.trained


def test_summary_and_export(predictor, nominal_state, context):
    predictor.add_training_sample(make_batch(nominal_state, context)[0])

    summary = predictor.summary()
    export = predictor.export_model()

    assert summary["total_samples"] == 1
    assert summary["layer_shapes"] == [[8, 10], [1, 8]]
    assert export["config"]["hidden_layers"] == [8]
    assert export["training_data"][0]["target_control"] == 120.0
