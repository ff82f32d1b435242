"""Structured output writer for gas predictions.

This module writes JSONL records that can later be ingested into relational
or analytical databases for backtesting the predictor.
"""

from pathlib import Path
from typing import Dict
import json
import threading
from datetime import datetime

from .logging import get_logger

logger = get_logger(__name__)


DEFAULT_PREDICTIONS_FILENAME = "predictions.jsonl"
DEFAULT_HEADS_FILENAME = "chain_heads.jsonl"


class StructuredOutputWriter:
    """Write structured JSONL records for future database rollups.

    Two record types are written:
    - predictions: every published fast/median/low snapshot with its inputs
    - chain_heads: per-block transaction counts and the rolling average
    """

    def __init__(
        self,
        base_dir: str,
        predictions_filename: str = DEFAULT_PREDICTIONS_FILENAME,
        heads_filename: str = DEFAULT_HEADS_FILENAME,
    ) -> None:
        self.base_path = Path(base_dir)
        self.base_path.mkdir(parents=True, exist_ok=True)

        self.predictions_path = self.base_path / predictions_filename
        self.heads_path = self.base_path / heads_filename
        self._lock = threading.Lock()

    def _append_line(self, path: Path, record: Dict) -> None:
        """Append a single JSON record to the given file as one line."""
        try:
            if "timestamp" not in record:
                record["timestamp"] = datetime.utcnow().isoformat() + "Z"

            with self._lock, path.open("a", encoding="utf-8") as f:
                f.write(json.dumps(record, ensure_ascii=False) + "\n")
        except OSError as exc:
            # Output failures never stop the update loop
            logger.error("Failed to append structured record to %s: %s", path, exc, exc_info=True)

    def record_prediction(self, payload: Dict) -> None:
        """Record a published prediction.

        Typical fields are the three tiers, pending count, floor price and
        rolling average used to compute them.
        """
        self._append_line(self.predictions_path, payload)

    def record_chain_head(self, payload: Dict) -> None:
        """Record a new chain head and the resulting rolling average."""
        self._append_line(self.heads_path, payload)
