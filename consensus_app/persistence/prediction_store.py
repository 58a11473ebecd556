"""Prediction history persistence for accuracy tracking."""

import json
import sqlite3
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import structlog

from ..data.models import Side
from ..errors import PersistenceError
from ..state.models import WindowLock
from ..utils.time import format_market_time


@dataclass
class StoredPrediction:
    """Committed prediction with its eventual outcome."""
    window_id: str
    window_start: str
    direction: str
    confidence: int
    committed_at_offset: float
    reference_price: Optional[float]
    prediction_data: dict
    created_at: str
    outcome: Optional[str] = None
    resolved_at: Optional[str] = None

    @property
    def correct(self) -> Optional[bool]:
        """Whether the prediction matched the outcome, None while unresolved."""
        if self.outcome is None:
            return None
        expected = Side.YES.value if self.direction == "UP" else Side.NO.value
        return self.outcome == expected


class PredictionStore:
    """SQLite-based store of one committed prediction per window."""

    def __init__(self, db_path: str = "predictions.db"):
        self.db_path = Path(db_path)
        self.logger = structlog.get_logger("prediction.store")
        self._lock = threading.Lock()

        self._init_database()

    def _init_database(self) -> None:
        """Initialize database schema."""
        with self._get_connection() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS predictions (
                    window_id TEXT PRIMARY KEY,
                    window_start TEXT NOT NULL,
                    direction TEXT NOT NULL,
                    confidence INTEGER NOT NULL,
                    committed_at_offset REAL NOT NULL,
                    reference_price REAL,
                    prediction_data TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    outcome TEXT,
                    resolved_at TEXT
                )
            """)

            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_predictions_window_start ON predictions(window_start)
            """)

            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_predictions_outcome ON predictions(outcome)
            """)

            conn.commit()

    @contextmanager
    def _get_connection(self):
        """Get database connection, wrapping sqlite errors."""
        conn = None
        try:
            conn = sqlite3.connect(self.db_path, timeout=30.0)
            conn.row_factory = sqlite3.Row
            yield conn
        except sqlite3.Error as e:
            if conn:
                conn.rollback()
            self.logger.error("Database error", error=str(e), db_path=str(self.db_path))
            raise PersistenceError(str(e), operation="sqlite", target=str(self.db_path))
        finally:
            if conn:
                conn.close()

    def record_commit(self, lock: WindowLock) -> bool:
        """
        Store a committed window lock.

        Returns:
            True if stored, False if the lock is not committed or the window
            already has a stored prediction (existing rows are never replaced)
        """
        if not lock.committed or lock.committed_prediction is None:
            return False

        prediction = lock.committed_prediction
        with self._lock:
            with self._get_connection() as conn:
                cursor = conn.execute("""
                    INSERT OR IGNORE INTO predictions (
                        window_id, window_start, direction, confidence,
                        committed_at_offset, reference_price, prediction_data, created_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """, (
                    lock.window_id,
                    format_market_time(lock.window_start),
                    prediction.direction.value,
                    prediction.confidence,
                    lock.committed_at_offset,
                    lock.reference_price,
                    json.dumps(prediction.to_dict()),
                    datetime.now(timezone.utc).isoformat(),
                ))
                conn.commit()
                stored = cursor.rowcount > 0

        if stored:
            self.logger.info(
                "Prediction stored",
                window_id=lock.window_id,
                direction=prediction.direction.value,
                confidence=prediction.confidence
            )
        else:
            self.logger.debug("Prediction already stored", window_id=lock.window_id)
        return stored

    def record_outcome(self, window_id: str, outcome: Side) -> bool:
        """Attach the resolved outcome to a stored prediction."""
        with self._lock:
            with self._get_connection() as conn:
                cursor = conn.execute("""
                    UPDATE predictions SET outcome = ?, resolved_at = ?
                    WHERE window_id = ? AND outcome IS NULL
                """, (outcome.value, datetime.now(timezone.utc).isoformat(), window_id))
                conn.commit()
                return cursor.rowcount > 0

    def get_prediction(self, window_id: str) -> Optional[StoredPrediction]:
        """Get the stored prediction for a window."""
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT * FROM predictions WHERE window_id = ?", (window_id,)
            ).fetchone()
        return self._row_to_prediction(row) if row else None

    def get_recent(self, limit: int = 24) -> list[StoredPrediction]:
        """Most recent predictions, newest first."""
        with self._get_connection() as conn:
            rows = conn.execute(
                "SELECT * FROM predictions ORDER BY window_start DESC LIMIT ?", (limit,)
            ).fetchall()
        return [self._row_to_prediction(row) for row in rows]

    def get_unresolved(self, limit: int = 24) -> list[StoredPrediction]:
        """Predictions still waiting for an outcome, oldest first."""
        with self._get_connection() as conn:
            rows = conn.execute(
                "SELECT * FROM predictions WHERE outcome IS NULL ORDER BY window_start ASC LIMIT ?",
                (limit,)
            ).fetchall()
        return [self._row_to_prediction(row) for row in rows]

    def accuracy(self) -> dict:
        """Hit rate over resolved predictions."""
        resolved = [p for p in self._all_resolved() if p.correct is not None]
        correct = sum(1 for p in resolved if p.correct)
        return {
            "resolved": len(resolved),
            "correct": correct,
            "accuracy": correct / len(resolved) if resolved else None,
        }

    def _all_resolved(self) -> list[StoredPrediction]:
        with self._get_connection() as conn:
            rows = conn.execute(
                "SELECT * FROM predictions WHERE outcome IS NOT NULL"
            ).fetchall()
        return [self._row_to_prediction(row) for row in rows]

    def _row_to_prediction(self, row: sqlite3.Row) -> StoredPrediction:
        return StoredPrediction(
            window_id=row["window_id"],
            window_start=row["window_start"],
            direction=row["direction"],
            confidence=row["confidence"],
            committed_at_offset=row["committed_at_offset"],
            reference_price=row["reference_price"],
            prediction_data=json.loads(row["prediction_data"]),
            created_at=row["created_at"],
            outcome=row["outcome"],
            resolved_at=row["resolved_at"],
        )
