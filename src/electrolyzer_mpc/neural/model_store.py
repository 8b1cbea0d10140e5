"""Persistence of the predictor network as a single named JSON record.

The record lives in `<directory>/<key>.json`. It is written to a temporary file
first and then moved into place, so a reader never sees a half-written model.
Every failure is reported as a `PersistenceError`; the predictor treats it as
"no model yet" and starts from a fresh one.
"""

import json
import os
from datetime import datetime
from pathlib import Path
from typing import Any, Dict

from electrolyzer_mpc.util.errors import PersistenceError
from electrolyzer_mpc.util.logging import LoggingUtil

logger = LoggingUtil.get_logger(__name__)

MODEL_SAVE_DIR = "/app/data/neural_models"
MODEL_KEY = "neural_mpc_model"


class ModelStore:
    """Durable key/value record holding the serialized network model."""

    def __init__(self, directory: str | Path = MODEL_SAVE_DIR, key: str = MODEL_KEY) -> None:
        """Initializes the store.

        Args:
            directory: Directory of the record, created on the first save.
            key: Fixed identifier of the record.
        """
        self.directory = Path(directory)
        self.key = key

    @property
    def path(self) -> Path:
        return self.directory / f"{self.key}.json"

    def save(self, payload: Dict[str, Any]) -> None:
        """Writes the record, stamping it with the save date.

        Raises:
            PersistenceError: If the directory or the file cannot be written.
        """
        record = dict(payload)
        record["saved_date"] = datetime.now().astimezone().isoformat()
        temporary_path = self.path.with_suffix(".json.tmp")
        try:
            os.makedirs(self.directory, exist_ok=True)
            with open(temporary_path, "w") as f:
                json.dump(record, f)
            os.replace(temporary_path, self.path)
        except (OSError, TypeError, ValueError) as e:
            raise PersistenceError(f"failed to save model to {self.path}: {e}") from e
        logger.debug("Model saved to %s", self.path)

    def load(self) -> Dict[str, Any] | None:
        """Reads the record.

        Returns:
            The stored dictionary, or None if no record exists.

        Raises:
            PersistenceError: If the record exists but cannot be read or parsed.
        """
        try:
            with open(self.path, "r") as f:
                record = json.load(f)
        except FileNotFoundError:
            logger.info("No saved model found at %s", self.path)
            return None
        except (OSError, ValueError) as e:
            raise PersistenceError(f"failed to load model from {self.path}: {e}") from e

        if not isinstance(record, dict):
            raise PersistenceError(f"model record {self.path} is not a mapping")
        return record

    def delete(self) -> None:
        """Removes the record if it exists."""
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            raise PersistenceError(f"failed to delete model {self.path}: {e}") from e
