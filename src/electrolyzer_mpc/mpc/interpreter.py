"""This module defines the Interpreter class, which prepares read-only snapshots of the engine.

It converts the performance records and the comparison history of the engine into
Pandas DataFrames indexed by timestamp, for the presentation layer, and builds the
export document of the learned predictor.
"""

from datetime import datetime
from typing import Any, Dict

import pandas as pd

from electrolyzer_mpc.mpc.executor import ControlEngine
from electrolyzer_mpc.util.logging import LoggingUtil

logger = LoggingUtil.get_logger(__name__)

EXPORT_SIZE = 100


class Interpreter:
    """Interprets the output streams of a `ControlEngine`."""

    def __init__(self, engine: ControlEngine) -> None:
        self.engine = engine

    def performance_frame(self) -> pd.DataFrame:
        """Returns the performance records, one row per decision.

        The index holds the record timestamps; the constraint violations are
        joined into a single comma-separated column.
        """
        rows = []
        for record in self.engine.performance_records():
            row = record.to_dict()
            row["constraint_violations"] = ",".join(row["constraint_violations"])
            rows.append(row)

        df = pd.DataFrame(rows)
        if df.empty:
            return df
        df["timestamp"] = pd.to_datetime(df["timestamp"], unit="s", utc=True)
        return df.set_index("timestamp")

    def comparison_frame(self) -> pd.DataFrame:
        """Returns the overall score of each compared strategy over time.

        The index holds the snapshot timestamps and there is one column per
        strategy key; a strategy missing from a snapshot is NaN.
        """
        rows = [
            {"timestamp": snapshot.timestamp, **snapshot.scores}
            for snapshot in self.engine.comparison_history()
        ]

        df = pd.DataFrame(rows)
        if df.empty:
            return df
        df["timestamp"] = pd.to_datetime(df["timestamp"], unit="s", utc=True)
        return df.set_index("timestamp")

    def rolling_tracking_error(self, window: int = 10) -> pd.Series:
        """Rolling mean of the tracking error over the last `window` records."""
        df = self.performance_frame()
        if df.empty:
            return pd.Series(dtype=float)
        return df["tracking_error"].rolling(window, min_periods=1).mean()

    def export(self) -> Dict[str, Any]:
        """Builds the export document of the predictor and the monitoring data."""
        predictor = self.engine.predictor
        model_export = predictor.export_model(EXPORT_SIZE)
        records = self.engine.performance_records()[-EXPORT_SIZE:]

        logger.info(
            "Exporting %s training samples and %s performance records",
            len(model_export["training_data"]),
            len(records),
        )
        return {
            "model_summary": predictor.summary(),
            "training_data": model_export["training_data"],
            "performance_history": [record.to_dict() for record in records],
            "network_config": model_export["config"],
            "comparison_report": self.engine.comparator.generate_report(),
            "export_time": datetime.now().astimezone().isoformat(),
        }
