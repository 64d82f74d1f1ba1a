from __future__ import annotations

import json
import logging
from collections import Counter
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Mapping

LOGGER = logging.getLogger(__name__)


class StatisticsService:
    """Very small JSON-backed store of workflow run statistics."""

    def __init__(self, stats_file: Path):
        self._stats_file = stats_file
        self._stats_file.parent.mkdir(parents=True, exist_ok=True)
        self._stats_file.touch(exist_ok=True)
        if not self._stats_file.read_text(encoding="utf-8").strip():
            self._stats_file.write_text(json.dumps({}), encoding="utf-8")

    def _read(self) -> Dict:
        try:
            return json.loads(self._stats_file.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            LOGGER.warning("Stats file was corrupt, resetting %s", self._stats_file)
            self._stats_file.write_text(json.dumps({}), encoding="utf-8")
            return {}

    def _write(self, payload: Dict) -> None:
        self._stats_file.write_text(json.dumps(payload, indent=2), encoding="utf-8")

    def record_run(self, app_name: str, status: str, stage_counts: Mapping[str, int]) -> None:
        stats = self._read()
        stats["runs"] = stats.get("runs", 0) + 1
        statuses = Counter(stats.get("statuses", {}))
        statuses[status] += 1
        stats["statuses"] = dict(statuses)

        bucket = self._app_bucket(stats, app_name)
        bucket["runs"] = bucket.get("runs", 0) + 1
        bucket_statuses = Counter(bucket.get("statuses", {}))
        bucket_statuses[status] += 1
        bucket["statuses"] = dict(bucket_statuses)
        bucket["last_run"] = {
            "status": status,
            "finished_at": datetime.now(timezone.utc).isoformat(),
            "records_out": dict(stage_counts),
        }

        self._write(stats)

    def snapshot(self) -> Dict:
        return self._read()

    def _app_bucket(self, stats: Dict, app_name: str) -> Dict:
        apps = stats.setdefault("apps", {})
        return apps.setdefault(app_name, {})
