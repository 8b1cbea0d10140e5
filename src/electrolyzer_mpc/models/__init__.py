"""This package contains the immutable data model of the control engine.

The key modules within this package include:
- `process.py`: Defines the `ProcessState` measured at every sampling tick, the
  exogenous `ProcessContext` and the `TrainingSample` of the learned predictor.
- `parameters.py`: Defines the validated `MPCParameters` shared by the strategies.
- `decisions.py`: Defines the outputs of the engine: the `ControlDecision`, the
  `PerformanceRecord` and the `ComparisonSnapshot`.
"""
