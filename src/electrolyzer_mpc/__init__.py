"""
The `electrolyzer_mpc` package computes the stack current of a PEM electrolyzer
producing hydrogen and oxygen with a selection of Model Predictive Control (MPC)
strategies.

Its primary purpose is to track a production setpoint while keeping the stack
within its operational safety limits, and to trade production against the
electricity tariff, the solar resource and the oxygen demand of a hospital. The
caller selects a strategy at every sampling tick; every decision goes through the
same safety constraints, and a failing strategy degrades gracefully to a
proportional fallback control.

The strategies are:
1.  **Deterministic MPC:** grid search over the stack current with a first-order
    production model.
2.  **Stochastic MPC:** scenario-based variant averaging the deterministic solution
    over perturbed measurements, with a robustness margin.
3.  **Hybrid MPC:** continuous refinement around discrete operating points.
4.  **Hierarchical Economic MPC:** an economic layer adjusting the setpoint to the
    time of day over a tracking layer.
5.  **Neural MPC:** a feed-forward network trained online on the observed controls
    and enhanced with the economic context.

Sub-packages:
-------------
- `models`:
  The immutable data model: process states, contexts, MPC parameters, training
  samples, decisions, performance records and comparison snapshots.

- `strategies`:
  The safety constraints, the cost model and the classical MPC strategies behind
  the common `StrategyMPC` interface.

- `neural`:
  The learned predictor, its network and the persistence of the trained model.

- `mpc`:
  The control engine dispatching between the strategies, the performance tracker,
  the strategy comparator, the presentation snapshots and the RPC adapter.

- `retrievers`:
  The providers of the exogenous context (tariff, solar irradiance, oxygen demand).

- `util`:
  Logging, configuration loading and the exception hierarchy.
"""
