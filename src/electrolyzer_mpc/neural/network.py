"""Feed-forward network used by the learned predictor.

The network maps the 10 normalized features to a single raw output; hidden
layers use ReLU or sigmoid activations and the output layer is linear. Layer
shapes are fixed at construction: a model is replaced wholesale on reset and
only its values change during training.
"""

import copy
import math
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Mapping, Tuple

import numpy as np

from electrolyzer_mpc.util.errors import ConfigurationError

ACTIVATIONS = ("relu", "sigmoid")
UPDATE_RULES = ("gradient", "perturbation")
INITIAL_BIAS = 0.1


@dataclass(frozen=True)
class NetworkConfig:
    """Architecture and training settings of the predictor network.

    The `gradient` rule takes one backpropagation step on the squared error and
    reduces the training error in expectation. The `perturbation` rule moves every
    weight by a random amount scaled by the error; it is error-driven but carries
    no such guarantee.
    """

    input_size: int = 10
    hidden_layers: Tuple[int, ...] = (64, 32)
    output_size: int = 1
    learning_rate: float = 0.001
    epochs: int = 100
    activation: str = "relu"
    update_rule: str = "gradient"

    def __post_init__(self) -> None:
        errors = []
        if self.input_size < 1 or self.output_size < 1:
            errors.append("Input and output sizes must be positive")
        if not self.hidden_layers or any(size < 1 for size in self.hidden_layers):
            errors.append("Hidden layers must be a non-empty list of positive sizes")
        if not self.learning_rate > 0:
            errors.append("Learning rate must be positive")
        if self.epochs < 1:
            errors.append("Epochs must be positive")
        if self.activation not in ACTIVATIONS:
            errors.append(f"Activation must be one of {ACTIVATIONS}")
        if self.update_rule not in UPDATE_RULES:
            errors.append(f"Update rule must be one of {UPDATE_RULES}")
        if errors:
            raise ConfigurationError(errors)

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any] | None) -> "NetworkConfig":
        values = dict(payload or {})
        if "hidden_layers" in values:
            values["hidden_layers"] = tuple(int(size) for size in values["hidden_layers"])
        return cls(**values)

    def layer_shapes(self) -> List[Tuple[int, int]]:
        """Returns the (rows, cols) shape of every weight matrix, input layer first."""
        sizes = [self.input_size, *self.hidden_layers, self.output_size]
        return [(sizes[i + 1], sizes[i]) for i in range(len(sizes) - 1)]

    def to_dict(self) -> Dict[str, Any]:
        values = asdict(self)
        values["hidden_layers"] = list(self.hidden_layers)
        return values


def _activate(z: np.ndarray, activation: str) -> np.ndarray:
    if activation == "relu":
        return np.maximum(0.0, z)
    return 1.0 / (1.0 + np.exp(-z))


def _activation_derivative(z: np.ndarray, a: np.ndarray, activation: str) -> np.ndarray:
    if activation == "relu":
        return (z > 0).astype(float)
    return a * (1.0 - a)


@dataclass
class NetworkModel:
    """Weights, biases and state of the predictor network.

    Attributes:
        weights: One matrix per layer, shape (outputs, inputs).
        biases: One vector per layer.
        activation: Activation of the hidden layers, 'relu' or 'sigmoid'.
        trained: Whether the model has completed at least one training run.
    """

    weights: List[np.ndarray]
    biases: List[np.ndarray]
    activation: str = "relu"
    trained: bool = False
    metadata: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def initialize(cls, config: NetworkConfig, rng: np.random.Generator) -> "NetworkModel":
        """Creates a fresh model: weights uniform in ±1/sqrt(fan_in), biases at 0.1."""
        weights = [
            (rng.random((rows, cols)) - 0.5) * 2 / math.sqrt(cols)
            for rows, cols in config.layer_shapes()
        ]
        biases = [np.full(rows, INITIAL_BIAS) for rows, _ in config.layer_shapes()]
        return cls(weights=weights, biases=biases, activation=config.activation)

    @property
    def shapes(self) -> List[Tuple[int, int]]:
        return [tuple(w.shape) for w in self.weights]

    def forward(self, features: np.ndarray) -> float:
        """Runs the forward pass and returns the raw (normalized) output."""
        activations, _ = self._forward_trace(features)
        return float(activations[-1][0])

    def _forward_trace(self, features: np.ndarray) -> Tuple[List[np.ndarray], List[np.ndarray]]:
        activations = [np.asarray(features, dtype=float)]
        pre_activations = []
        last_layer = len(self.weights) - 1
        for i, (weights, biases) in enumerate(zip(self.weights, self.biases)):
            z = weights @ activations[-1] + biases
            pre_activations.append(z)
            activations.append(z if i == last_layer else _activate(z, self.activation))
        return activations, pre_activations

    def gradient_step(self, features: np.ndarray, target: float, learning_rate: float) -> float:
        """Applies one backpropagation step on `0.5 * (target - output)**2`.

        Args:
            features: The normalized input vector.
            target: The desired raw output.
            learning_rate: Step size of the update.

        Returns:
            The raw error `target - output` measured before the update.
        """
        activations, pre_activations = self._forward_trace(features)
        error = target - float(activations[-1][0])

        # Output layer is linear: dL/dz = -(target - output)
        delta = np.array([-error])
        weight_gradients: List[np.ndarray] = [np.empty(0)] * len(self.weights)
        bias_gradients: List[np.ndarray] = [np.empty(0)] * len(self.weights)
        for layer in range(len(self.weights) - 1, -1, -1):
            weight_gradients[layer] = np.outer(delta, activations[layer])
            bias_gradients[layer] = delta
            if layer > 0:
                delta = (self.weights[layer].T @ delta) * _activation_derivative(
                    pre_activations[layer - 1], activations[layer], self.activation
                )

        for layer in range(len(self.weights)):
            self.weights[layer] -= learning_rate * weight_gradients[layer]
            self.biases[layer] -= learning_rate * bias_gradients[layer]

        return error

    def perturbation_step(self, error: float, learning_rate: float, rng: np.random.Generator) -> None:
        """Moves every weight by `learning_rate * error * noise`, noise uniform in ±0.5."""
        for layer, weights in enumerate(self.weights):
            noise = rng.random(weights.shape) - 0.5
            self.weights[layer] = weights + learning_rate * error * noise

    def is_finite(self) -> bool:
        return all(np.all(np.isfinite(w)) for w in self.weights) and all(
            np.all(np.isfinite(b)) for b in self.biases
        )

    def copy(self) -> "NetworkModel":
        return NetworkModel(
            weights=[w.copy() for w in self.weights],
            biases=[b.copy() for b in self.biases],
            activation=self.activation,
            trained=self.trained,
            metadata=copy.deepcopy(self.metadata),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serializes the model into JSON-compatible values."""
        return {
            "layers": [
                {"weights": w.tolist(), "biases": b.tolist()}
                for w, b in zip(self.weights, self.biases)
            ],
            "activation": self.activation,
            "trained": self.trained,
            "metadata": dict(self.metadata),
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any], config: NetworkConfig) -> "NetworkModel":
        """Rebuilds a model serialized by `to_dict`.

        Raises:
            ValueError: If the payload is malformed or its layer shapes differ
                        from the configured architecture.
        """
        try:
            layers = payload["layers"]
            weights = [np.array(layer["weights"], dtype=float) for layer in layers]
            biases = [np.array(layer["biases"], dtype=float) for layer in layers]
            activation = payload.get("activation", config.activation)
            metadata = payload.get("metadata", {})
            if not isinstance(metadata, Mapping):
                raise TypeError(f"metadata must be a mapping, got {type(metadata).__name__}")
            trained = bool(payload.get("trained", False))
        except (AttributeError, KeyError, TypeError) as e:
            raise ValueError(f"malformed network model: {e}") from e

        shapes = [tuple(w.shape) for w in weights]
        if shapes != config.layer_shapes():
            raise ValueError(f"layer shapes {shapes} do not match the configured {config.layer_shapes()}")
        if [b.shape for b in biases] != [(rows,) for rows, _ in config.layer_shapes()]:
            raise ValueError("bias shapes do not match the configured architecture")
        if activation not in ACTIVATIONS:
            raise ValueError(f"unknown activation '{activation}'")

        model = cls(
            weights=weights,
            biases=biases,
            activation=activation,
            trained=trained,
            metadata=dict(metadata),
        )
        if not model.is_finite():
            raise ValueError("network model contains non-finite values")
        return model
