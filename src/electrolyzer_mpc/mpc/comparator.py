"""This module defines the StrategyComparator, which ranks the classical MPC strategies.

The comparator turns raw performance data of each strategy into six metrics
(cost, production, efficiency, computation, stability, robustness), scores them
on a 0 to 100 scale and keeps a bounded history of comparison snapshots, from
which it derives trends, the best performing strategy and a recommendation.
"""

import math
from collections import deque
from datetime import datetime
from typing import Any, Deque, Dict, Mapping, Tuple

from electrolyzer_mpc.models.decisions import ComparisonSnapshot
from electrolyzer_mpc.strategies.helper import StrategyHelper
from electrolyzer_mpc.util.logging import LoggingUtil

logger = LoggingUtil.get_logger(__name__)

SCORE_WEIGHTS = {
    "cost": 0.25,
    "production": 0.25,
    "efficiency": 0.20,
    "computation": 0.15,
    "stability": 0.10,
    "robustness": 0.05,
}
TREND_WINDOW = 5


def normalize_metric(metric: str, value: float) -> float:
    """Maps a raw metric to a 0 to 100 scale, higher being better."""
    if metric == "cost":
        return max(0.0, 100 - value / 15 * 100)
    if metric == "production":
        return min(100.0, value / 40 * 100)
    if metric == "computation":
        return max(0.0, 100 - value)
    if metric == "stability":
        return max(0.0, 100 - value * 10)
    # Efficiency and robustness are already percentages
    return value


def calculate_overall_score(metrics: Mapping[str, float]) -> int | None:
    """Weighted score of the metrics present, renormalized by their total weight.

    Returns:
        The score rounded half-up, or None if no scored metric is present.
    """
    score = 0.0
    total_weight = 0.0
    for metric, weight in SCORE_WEIGHTS.items():
        if metrics.get(metric) is None:
            continue
        score += normalize_metric(metric, metrics[metric]) * weight
        total_weight += weight

    if total_weight == 0:
        return None
    return int(math.floor(score / total_weight + 0.5))


def calculate_performance_metrics(data: Mapping[str, Any]) -> Dict[str, float]:
    """Derives the comparison metrics from the raw data of one strategy.

    Args:
        data: Raw values, in snake_case or camelCase: operational cost, H2 production
              (L/s), current (A), efficiency, computation time (ms), stability (%)
              and robustness (%).

    Returns:
        The metrics that could be derived; missing ones are left out.
    """

    def pick(snake: str, camel: str) -> float | None:
        value = data.get(snake, data.get(camel))
        return None if value is None else float(value)

    current = pick("current", "current")
    h2_production = pick("h2_production", "h2Production")
    metrics: Dict[str, float] = {}

    cost = pick("operational_cost", "operationalCost")
    if cost is None and current and h2_production:
        cost = current * 0.1 / (h2_production + 0.001)
    if cost is not None:
        metrics["cost"] = cost

    if h2_production is not None:
        metrics["production"] = h2_production * 3600  # L/h

    efficiency = pick("efficiency", "efficiency")
    if efficiency is None and current and h2_production:
        efficiency = h2_production / (current + 0.001) * 1000
    if efficiency is not None:
        metrics["efficiency"] = efficiency

    for metric, snake, camel in (
        ("computation", "computation_time", "computationTime"),
        ("stability", "stability", "stability"),
        ("robustness", "robustness", "robustness"),
    ):
        value = pick(snake, camel)
        if value is not None:
            metrics[metric] = value

    return metrics


class StrategyComparator:
    """Scores the HE-MPC, deterministic, stochastic and hybrid strategies."""

    def __init__(self, history_capacity: int = 100) -> None:
        self._comparison_data: Dict[str, Dict[str, Any]] = {}
        self._performance_metrics: Dict[str, Dict[str, float]] = {}
        self._history: Deque[ComparisonSnapshot] = deque(maxlen=history_capacity)

    @property
    def history(self) -> Tuple[ComparisonSnapshot, ...]:
        return tuple(self._history)

    @property
    def performance_metrics(self) -> Dict[str, Dict[str, float]]:
        return {key: dict(metrics) for key, metrics in self._performance_metrics.items()}

    def update_comparison(self, data: Mapping[str, Mapping[str, Any] | None]) -> ComparisonSnapshot:
        """Updates the raw data of the strategies and stores a new snapshot.

        Args:
            data: Strategy key ('hempc', 'deterministic', 'stochastic', 'hybrid') to
                  its raw performance data. Other keys are ignored.

        Returns:
            The stored snapshot.
        """
        for strategy in StrategyHelper.comparable():
            if data.get(strategy.value) is not None:
                self._comparison_data[strategy.value] = dict(data[strategy.value])

        metrics = {}
        for strategy in StrategyHelper.comparable():
            strategy_data = self._comparison_data.get(strategy.value)
            if strategy_data is None:
                continue
            strategy_metrics = calculate_performance_metrics(strategy_data)
            if strategy_metrics:
                metrics[strategy.value] = strategy_metrics
        self._performance_metrics = metrics

        snapshot = ComparisonSnapshot(metrics=self.performance_metrics, scores=self.calculate_overall_scores())
        self._history.append(snapshot)
        logger.debug("Comparison snapshot stored with scores %s", snapshot.scores)
        return snapshot

    def calculate_overall_scores(self) -> Dict[str, int]:
        scores = {}
        for key, metrics in self._performance_metrics.items():
            score = calculate_overall_score(metrics)
            if score is not None:
                scores[key] = score
        return scores

    def get_best_performing_strategy(self) -> Dict[str, Any]:
        """Returns the strategy with the highest score.

        Ties keep the first strategy in the order hempc, deterministic, stochastic,
        hybrid. Without any score, the strategy is None and the score -1.
        """
        scores = self.calculate_overall_scores()
        best_strategy = None
        best_score = -1
        for strategy in StrategyHelper.comparable():
            score = scores.get(strategy.value)
            if score is not None and score > best_score:
                best_strategy = strategy.value
                best_score = score

        return {
            "strategy": best_strategy,
            "score": best_score,
            "metrics": self._performance_metrics.get(best_strategy) if best_strategy else None,
        }

    def analyze_trends(self) -> Dict[str, Dict[str, Any]]:
        """Classifies the score trend of every strategy over the last snapshots.

        A strategy missing from a snapshot counts as a score of 0. At least two
        snapshots are needed, otherwise no trend is reported.
        """
        if len(self._history) < 2:
            return {}

        recent_snapshots = list(self._history)[-TREND_WINDOW:]
        trends = {}
        for strategy in StrategyHelper.comparable():
            scores = [snapshot.scores.get(strategy.value, 0) for snapshot in recent_snapshots]
            trend = scores[-1] - scores[0]
            if trend > 0:
                direction = "improving"
            elif trend < 0:
                direction = "declining"
            else:
                direction = "stable"
            trends[strategy.value] = {"direction": direction, "magnitude": abs(trend)}

        logger.debug("Performance trends: %s", trends)
        return trends

    def generate_report(self) -> Dict[str, Any]:
        best = self.get_best_performing_strategy()
        return {
            "timestamp": datetime.now().astimezone().isoformat(),
            "best_performing_strategy": best["strategy"],
            "best_score": best["score"],
            "performance_metrics": self.performance_metrics,
            "overall_scores": self.calculate_overall_scores(),
            "recommendation": generate_recommendation(best["strategy"], best["score"]),
        }

    def export(self) -> Dict[str, Any]:
        return {
            "comparison_data": {key: dict(values) for key, values in self._comparison_data.items()},
            "performance_metrics": self.performance_metrics,
            "comparison_history": [snapshot.to_dict() for snapshot in self._history],
            "report": self.generate_report(),
            "export_time": datetime.now().astimezone().isoformat(),
        }

    def reset(self) -> None:
        self._comparison_data.clear()
        self._performance_metrics = {}
        self._history.clear()
        logger.info("Strategy comparison reset")


def generate_recommendation(strategy: str | None, score: int) -> str:
    if strategy is None:
        return "No performance data available yet."
    if score >= 80:
        return f"Strong recommendation: Continue using {strategy}. Excellent performance across all metrics."
    if score >= 60:
        return (
            f"Good performance: {strategy} is working well. "
            "Consider fine-tuning parameters for better results."
        )
    return (
        f"Needs improvement: {strategy} shows suboptimal performance. "
        "Consider switching strategies or reconfiguring parameters."
    )
