"""This package contains the modules orchestrating the control strategies.

The key modules within this package include:
- `executor.py`: Defines the `ControlEngine` class, which validates the requests,
  dispatches them to the selected strategy and filters the decisions through the
  safety constraints.
- `performance.py`: Defines the `PerformanceTracker`, which records the outcome of
  the decisions and detects the degradation of the learned predictor.
- `comparator.py`: Defines the `StrategyComparator`, which scores and ranks the
  classical strategies.
- `interpreter.py`: Defines the `Interpreter` class, which turns the output streams
  of the engine into Pandas DataFrames and export documents.
- `rpc.py`: Handles Remote Procedure Call (RPC) communication, setting up a
  Redis-based router for the control requests and the process observations.
"""
