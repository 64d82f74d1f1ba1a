from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict

import joblib

LOGGER = logging.getLogger(__name__)
MODEL_FILE_NAME = "model.joblib"


class ModelStore:
    """Directory of file sets holding trained model artifacts."""

    def __init__(self, root: Path):
        self._root = root.resolve()
        self._root.mkdir(parents=True, exist_ok=True)

    def _model_file(self, file_set: str, path: str) -> Path:
        if not file_set:
            raise ValueError("A file set name is required")
        target = (self._root / file_set / (path or "")).resolve()
        if target != self._root and self._root not in target.parents:
            raise ValueError(f"Model location {file_set}/{path} escapes the model directory")
        return target / MODEL_FILE_NAME

    def exists(self, file_set: str, path: str) -> bool:
        return self._model_file(file_set, path).exists()

    def save(self, file_set: str, path: str, artifact: Dict[str, Any]) -> Path:
        model_file = self._model_file(file_set, path)
        model_file.parent.mkdir(parents=True, exist_ok=True)
        joblib.dump(artifact, model_file)
        LOGGER.info("Saved model artifact to %s", model_file)
        return model_file

    def load(self, file_set: str, path: str) -> Dict[str, Any]:
        model_file = self._model_file(file_set, path)
        if not model_file.exists():
            raise FileNotFoundError(f"No model found in file set '{file_set}' at path '{path}'")
        artifact = joblib.load(model_file)
        LOGGER.info("Loaded model artifact from %s", model_file)
        return artifact
