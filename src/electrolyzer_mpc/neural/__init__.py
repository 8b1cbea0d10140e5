"""This package implements the Neural MPC strategy.

- `network.py`: The feed-forward `NetworkModel` and its `NetworkConfig`.
- `model_store.py`: The `ModelStore` persisting the trained model as a JSON record.
- `learned_predictor.py`: The `LearnedPredictor`, which predicts the control from
  the process state and the economic context and learns from observed controls.
"""
