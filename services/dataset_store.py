from __future__ import annotations

import json
import logging
import sqlite3
from pathlib import Path
from typing import Iterable, List

from models.structured_record import StructuredRecord

LOGGER = logging.getLogger(__name__)


class DatasetStore:
    """SQLite-backed named tables of structured records."""

    def __init__(self, db_path: Path):
        self._db_path = db_path
        self._ensure_schema()

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self._db_path)

    def _ensure_schema(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS dataset_rows (
                    dataset TEXT NOT NULL,
                    seq INTEGER PRIMARY KEY AUTOINCREMENT,
                    payload TEXT NOT NULL
                )
                """
            )
            conn.execute(
                """
                CREATE INDEX IF NOT EXISTS idx_dataset_rows_dataset
                ON dataset_rows(dataset, seq)
                """
            )

    def write(self, dataset: str, records: Iterable[StructuredRecord]) -> int:
        rows = [(dataset, json.dumps(record.to_dict())) for record in records]
        if not rows:
            return 0
        with self._connect() as conn:
            conn.executemany("INSERT INTO dataset_rows(dataset, payload) VALUES (?, ?)", rows)
        LOGGER.debug("Wrote %d record(s) to dataset %s", len(rows), dataset)
        return len(rows)

    def read(self, dataset: str) -> List[StructuredRecord]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT payload FROM dataset_rows WHERE dataset=? ORDER BY seq",
                (dataset,),
            ).fetchall()
        return [StructuredRecord.from_dict(json.loads(row[0])) for row in rows]

    def truncate(self, dataset: str) -> None:
        with self._connect() as conn:
            conn.execute("DELETE FROM dataset_rows WHERE dataset=?", (dataset,))
        LOGGER.debug("Truncated dataset %s", dataset)

    def datasets(self) -> List[str]:
        with self._connect() as conn:
            rows = conn.execute("SELECT DISTINCT dataset FROM dataset_rows ORDER BY dataset").fetchall()
        return [row[0] for row in rows]
