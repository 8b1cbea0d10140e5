"""This module defines the LearnedPredictor, the neural strategy of the engine.

The predictor maps the process state, the economic reference and the exogenous
context (tariff, solar irradiance, oxygen demand, hour of day) to a stack
current through a small feed-forward network. It is responsible for:
- Enhancing the process features with the context and normalizing them.
- Predicting a control value and a (weak) confidence signal.
- Adapting the network online from observed controls, and retraining it on
  batches of the bounded training buffer.
- Saving and loading the network through the `ModelStore`, falling back to a
  fresh model whenever the stored one is missing or unusable.

Training works on a copy of the network that is swapped in once complete, so a
prediction never reads a half-updated model.
"""

import math
import threading
import time
from collections import deque
from dataclasses import replace
from datetime import datetime
from typing import Any, Deque, Dict, List, Mapping, Sequence, Tuple

import numpy as np

from electrolyzer_mpc.models.decisions import ControlDecision
from electrolyzer_mpc.models.parameters import MPCParameters
from electrolyzer_mpc.models.process import PROCESS_FIELDS, ProcessContext, ProcessState, TrainingSample
from electrolyzer_mpc.neural.model_store import ModelStore
from electrolyzer_mpc.neural.network import NetworkConfig, NetworkModel
from electrolyzer_mpc.strategies.constraints import apply_constraints
from electrolyzer_mpc.strategies.cost_model import CostModel
from electrolyzer_mpc.strategies.deterministic_mpc import DeterministicMPC
from electrolyzer_mpc.strategies.helper import StrategyHelper
from electrolyzer_mpc.strategies.strategy_mpc import StrategyMPC
from electrolyzer_mpc.util.errors import ConfigurationError, PersistenceError, PredictionError
from electrolyzer_mpc.util.logging import LoggingUtil

logger = LoggingUtil.get_logger(__name__)

FEATURE_COUNT = 10
OUTPUT_OFFSET = 100.0
OUTPUT_SCALE = 100.0


def enhance_input_with_context(input_features: Mapping[str, float], context: ProcessContext) -> np.ndarray:
    """Builds the normalized feature vector of the network.

    Args:
        input_features: Process values keyed by production, temperature, voltage,
                        current, purity and reference.
        context: The exogenous context of the decision.

    Returns:
        The 10 features, each clamped to [0, 1].
    """
    features = np.array(
        [
            input_features["production"] / 0.05,
            (input_features["temperature"] - 60) / 20,
            (input_features["voltage"] - 35) / 10,
            (input_features["current"] - 100) / 100,
            (input_features["purity"] - 99) / 1,
            input_features["reference"] / 100,
            context.electricity_cost / 25,
            context.solar_irradiance / 1000,
            context.o2_demand / 200,
            context.hour_of_day / 24,
        ],
        dtype=float,
    )
    return np.clip(features, 0.0, 1.0)


def calculate_economic_setpoint(reference: float, context: ProcessContext) -> float:
    """Adjusts the reference to the tariff, the solar availability and the oxygen demand.

    Peak tariff lowers the reference by 30 (not below 20), off-peak tariff raises
    it by 30 (not above 80), strong solar irradiance adds 20 (not above 95) and an
    oxygen demand emergency forces the maximum production.
    """
    economic_setpoint = reference

    if context.tariff_type == "peak":
        economic_setpoint = max(20.0, reference - 30)
    elif context.tariff_type == "offPeak":
        economic_setpoint = min(80.0, reference + 30)

    if context.solar_irradiance > 500:
        economic_setpoint = min(95.0, economic_setpoint + 20)

    if context.is_emergency:
        economic_setpoint = 100.0

    return float(economic_setpoint)


def denormalize_output(raw_output: float) -> float:
    return OUTPUT_OFFSET + raw_output * OUTPUT_SCALE


def calculate_confidence(raw_output: float) -> float:
    """Crude confidence proxy, `min(1, 2 * |raw|)`; not a calibrated probability."""
    return min(1.0, abs(raw_output) * 2)


class LearnedPredictor(StrategyMPC):
    """Neural MPC: a feed-forward network trained online to predict the stack current."""

    strategy = StrategyHelper.NEURAL

    def __init__(
        self,
        config: NetworkConfig | None = None,
        model_store: ModelStore | None = None,
        rng: np.random.Generator | None = None,
        buffer_capacity: int = 2000,
        auto_train_every: int = 50,
        auto_train_window: int = 100,
        cost_model: CostModel | None = None,
    ) -> None:
        """Initializes the predictor and loads the stored model.

        Args:
            config: Network architecture and training settings.
            model_store: Store of the serialized model. Without a store the model
                         lives in memory only.
            rng: Generator for weight initialization and perturbation noise.
            buffer_capacity: Capacity of the training buffer, oldest samples evicted first.
            auto_train_every: Retrain after this many added samples, 0 disables it.
            auto_train_window: Number of most recent samples used by the automatic retraining.
            cost_model: Cost model of the deterministic strategy used as fallback.
        """
        super().__init__(cost_model)
        self._config = config or NetworkConfig()
        if self._config.input_size != FEATURE_COUNT:
            raise ConfigurationError(
                f"the predictor uses {FEATURE_COUNT} features, got input size {self._config.input_size}"
            )
        self._model_store = model_store
        self._rng = rng if rng is not None else np.random.default_rng()
        self._deterministic = DeterministicMPC(self._cost_model)

        self._training_data: Deque[TrainingSample] = deque(maxlen=buffer_capacity)
        self._samples_added = 0
        self._auto_train_every = auto_train_every
        self._auto_train_window = auto_train_window

        self._model_lock = threading.Lock()
        self._training_lock = threading.Lock()
        self._model = self.load_model()

    @property
    def config(self) -> NetworkConfig:
        return self._config

    @property
    def model(self) -> NetworkModel:
        """The current model. It is replaced on update, never modified in place."""
        with self._model_lock:
            return self._model

    @property
    def training_data(self) -> Tuple[TrainingSample, ...]:
        return tuple(self._training_data)

    # region Control interface

    def compute_control(
        self,
        state: ProcessState,
        reference: float,
        previous_control: float,
        parameters: MPCParameters,
        context: ProcessContext | None = None,
    ) -> ControlDecision:
        """Predicts the control, falling back to the deterministic MPC on failure.

        A fallback decision is tagged `FALLBACK`, with the deterministic strategy
        reported as `fallback_source` in its info.
        """
        start_time = time.perf_counter()
        try:
            decision = self.solve(state, reference, previous_control, parameters, context)
        except Exception as ex:
            logger.error("Neural MPC control computation failed: %s", ex, exc_info=True)
            decision = self._fallback_to_deterministic(state, reference, previous_control, parameters, str(ex))
        execution_time = (time.perf_counter() - start_time) * 1000
        return replace(decision, computation_time_ms=execution_time)

    def solve(
        self,
        state: ProcessState,
        reference: float,
        previous_control: float,
        parameters: MPCParameters,
        context: ProcessContext | None = None,
    ) -> ControlDecision:
        if context is None:
            context = ProcessContext(hour_of_day=datetime.now().hour)

        # Economic optimization based on real-world factors
        economic_reference = calculate_economic_setpoint(reference, context)

        input_features = {name: getattr(state, name) for name in PROCESS_FIELDS}
        input_features["reference"] = economic_reference
        control, confidence = self.predict(input_features, context)

        return ControlDecision(
            control_value=apply_constraints(control, state),
            strategy=self.strategy,
            reference=reference,
            state=state,
            confidence=confidence,
            info={
                "economic_setpoint": economic_reference,
                "predicted_control": control,
                "context": context.to_dict(),
                "factors": {
                    "electricity_cost": context.electricity_cost,
                    "solar_availability": context.solar_irradiance,
                    "emergency": context.is_emergency,
                },
            },
        )

    def predict(self, input_features: Mapping[str, float], context: ProcessContext) -> Tuple[float, float]:
        """Predicts the unconstrained control current and its confidence.

        Raises:
            PredictionError: If the network output is not finite.
        """
        features = enhance_input_with_context(input_features, context)
        raw_output = self.model.forward(features)
        if not math.isfinite(raw_output):
            raise PredictionError(f"network output is not finite: {raw_output}")
        return denormalize_output(raw_output), calculate_confidence(raw_output)

    def _fallback_to_deterministic(
        self,
        state: ProcessState,
        reference: float,
        previous_control: float,
        parameters: MPCParameters,
        reason: str,
    ) -> ControlDecision:
        decision = self._deterministic.compute_control(state, reference, previous_control, parameters)
        if decision.is_fallback:
            return decision
        info = dict(decision.info)
        info["fallback_reason"] = reason
        info["fallback_source"] = StrategyHelper.DETERMINISTIC.name
        return replace(decision, strategy=StrategyHelper.FALLBACK, info=info)

    # endregion

    # region Training

    def add_training_sample(self, sample: TrainingSample) -> None:
        """Appends a sample to the bounded buffer and retrains periodically."""
        self._training_data.append(sample)
        self._samples_added += 1

        if self._auto_train_every and self._samples_added % self._auto_train_every == 0:
            logger.info("%s samples collected, retraining on the most recent ones", self._samples_added)
            self.train(self.recent_samples(self._auto_train_window))

    def recent_samples(self, count: int) -> List[TrainingSample]:
        """Returns up to `count` of the most recent samples, oldest first."""
        if count <= 0:
            return []
        return list(self._training_data)[-count:]

    def adapt(self, sample: TrainingSample) -> float:
        """Adapts the model to one sample.

        The update is applied to a copy which then replaces the current model,
        so a model already handed to a reader never changes.

        Returns:
            The prediction error `target - predicted control` before the update.
        """
        features = enhance_input_with_context(sample.input_features, sample.context)
        with self._model_lock:
            model = self._model.copy()
            error = self._adapt(model, features, sample.target_control)
            if model.is_finite():
                self._model = model
            else:
                logger.error("Adaptation diverged, keeping the previous model")
        return error

    def train(self, samples: Sequence[TrainingSample]) -> List[float]:
        """Trains the model on a batch for the configured number of epochs.

        The batch is learned on a copy of the model which replaces the current
        one when training succeeds; the new model is then saved. A call made
        while another training is running is skipped.

        Args:
            samples: The training batch.

        Returns:
            The mean squared error (in A²) of every epoch, empty when nothing was trained.
        """
        samples = list(samples)
        if not samples:
            return []

        if not self._training_lock.acquire(blocking=False):
            logger.warning("Training already in progress, skipping this request")
            return []

        try:
            logger.info("Training neural MPC with %s context-aware samples...", len(samples))
            with self._model_lock:
                model = self._model.copy()

            batch = [
                (enhance_input_with_context(sample.input_features, sample.context), sample.target_control)
                for sample in samples
            ]
            history = []
            for epoch in range(self._config.epochs):
                total_error = 0.0
                for features, target in batch:
                    error = self._adapt(model, features, target)
                    total_error += error * error
                history.append(total_error / len(batch))

                if epoch % 20 == 0:
                    logger.info("Epoch %s, Average Error: %.4f", epoch, history[-1])

            if not model.is_finite():
                logger.error("Training diverged, keeping the previous model")
                return history

            model.trained = True
            model.metadata["trained_date"] = datetime.now().astimezone().isoformat()
            model.metadata["training_samples"] = len(samples)
            with self._model_lock:
                self._model = model
            self.save_model()
            logger.info("Neural MPC training completed with real-world context")
            return history
        finally:
            self._training_lock.release()

    def mean_squared_error(self, samples: Sequence[TrainingSample]) -> float:
        """Mean squared error (in A²) of the current model over a batch."""
        samples = list(samples)
        if not samples:
            return 0.0
        model = self.model
        errors = [
            sample.target_control
            - denormalize_output(model.forward(enhance_input_with_context(sample.input_features, sample.context)))
            for sample in samples
        ]
        return float(np.mean(np.square(errors)))

    def _adapt(self, model: NetworkModel, features: np.ndarray, target_control: float) -> float:
        if self._config.update_rule == "gradient":
            target_raw = (target_control - OUTPUT_OFFSET) / OUTPUT_SCALE
            raw_error = model.gradient_step(features, target_raw, self._config.learning_rate)
            return raw_error * OUTPUT_SCALE

        error = target_control - denormalize_output(model.forward(features))
        model.perturbation_step(error, self._config.learning_rate, self._rng)
        return error

    # endregion

    # region Persistence

    def load_model(self) -> NetworkModel:
        """Loads the stored model, or initializes a fresh one if it is missing or unusable."""
        if self._model_store is not None:
            try:
                payload = self._model_store.load()
                if payload is not None:
                    model = NetworkModel.from_dict(payload, self._config)
                    logger.info("Loaded neural MPC model from %s", self._model_store.path)
                    return model
            except (PersistenceError, ValueError) as e:
                logger.warning("Failed to load neural MPC model: %s. Starting from a fresh model.", e)

        logger.info("Initialized new neural MPC model")
        return NetworkModel.initialize(self._config, self._rng)

    def save_model(self) -> bool:
        """Saves the current model. Failures are logged and reported as False."""
        if self._model_store is None:
            return False
        try:
            self._model_store.save(self.model.to_dict())
            return True
        except PersistenceError as e:
            logger.error("Failed to save neural MPC model: %s", e)
            return False

    def reset(self) -> None:
        """Clears the training buffer and replaces the model with a fresh one."""
        with self._model_lock:
            self._model = NetworkModel.initialize(self._config, self._rng)
        self._training_data.clear()
        self._samples_added = 0
        self.save_model()
        logger.info("Neural MPC reset")

    # endregion

    def summary(self) -> Dict[str, Any]:
        """Describes the model and the training buffer."""
        model = self.model
        return {
            "total_samples": len(self._training_data),
            "model_trained": model.trained,
            "activation": model.activation,
            "update_rule": self._config.update_rule,
            "layer_shapes": [list(shape) for shape in model.shapes],
            "context_aware": True,
        }

    def export_model(self, sample_count: int = 100) -> Dict[str, Any]:
        """Exports the model, its configuration and the most recent training samples."""
        return {
            "model": self.model.to_dict(),
            "config": self._config.to_dict(),
            "training_data": [sample.to_dict() for sample in self.recent_samples(sample_count)],
        }
