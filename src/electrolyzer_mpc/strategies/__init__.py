"""This package defines the classical control strategies of the electrolyzer.

The key modules within this package include:
- `constraints.py`: The operational safety limits, the robustness margin and the
  proportional fallback control.
- `cost_model.py`: The first-order production model and the quadratic objective
  shared by the search-based strategies.
- `helper.py`: The `StrategyHelper` enumeration used as dispatch tag.
- `strategy_mpc.py`: The abstract base class `StrategyMPC`, which turns any failure
  of a strategy into a fallback decision.
- `deterministic_mpc.py`, `stochastic_mpc.py`, `hybrid_mpc.py` and
  `hierarchical_mpc.py`: The four MPC strategies.
"""
