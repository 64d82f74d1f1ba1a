from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv


PROJECT_ROOT = Path(__file__).resolve().parent.parent
DEFAULT_WORKFLOW_TIMEOUT_SECONDS = 300


@dataclass(slots=True)
class AppConfig:
    data_dir: Path
    log_dir: Path
    log_level: str
    db_path: Path
    model_dir: Path
    stats_file: Path
    workflow_timeout: int


def _resolve_path(value: str | None, fallback: str) -> Path:
    candidate = Path(value or fallback)
    if not candidate.is_absolute():
        candidate = PROJECT_ROOT / candidate
    return candidate


def _positive_int(name: str, raw: str) -> int:
    try:
        value = int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got '{raw}'") from exc
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {value}")
    return value


def load_config(env_file: str | os.PathLike[str] | None = None) -> AppConfig:
    """Load configuration values from a .env file and environment variables."""

    if env_file:
        load_dotenv(env_file, override=False)
    else:
        load_dotenv(override=False)

    data_dir = _resolve_path(os.getenv("DATA_DIR"), "data")
    log_dir = _resolve_path(os.getenv("LOG_DIR"), "logs")
    db_path = _resolve_path(os.getenv("DB_PATH"), str(data_dir / "datasets.db"))
    model_dir = _resolve_path(os.getenv("MODEL_DIR"), str(data_dir / "models"))
    stats_file = _resolve_path(os.getenv("STATS_FILE"), str(data_dir / "stats.json"))

    data_dir.mkdir(parents=True, exist_ok=True)
    log_dir.mkdir(parents=True, exist_ok=True)
    db_path.parent.mkdir(parents=True, exist_ok=True)
    model_dir.mkdir(parents=True, exist_ok=True)
    stats_file.parent.mkdir(parents=True, exist_ok=True)

    workflow_timeout = _positive_int(
        "WORKFLOW_TIMEOUT_SECONDS",
        os.getenv("WORKFLOW_TIMEOUT_SECONDS", str(DEFAULT_WORKFLOW_TIMEOUT_SECONDS)),
    )

    return AppConfig(
        data_dir=data_dir,
        log_dir=log_dir,
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        db_path=db_path,
        model_dir=model_dir,
        stats_file=stats_file,
        workflow_timeout=workflow_timeout,
    )
