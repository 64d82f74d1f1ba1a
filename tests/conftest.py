"""
Pytest fixtures shared across all test modules.
"""
from __future__ import annotations

import pytest

from services.dataset_store import DatasetStore
from services.model_store import ModelStore
from services.pipeline_service import PipelineService
from services.plugins import default_registry
from services.statistics_service import StatisticsService


@pytest.fixture
def datasets(tmp_path):
    return DatasetStore(tmp_path / "datasets.db")


@pytest.fixture
def models(tmp_path):
    return ModelStore(tmp_path / "models")


@pytest.fixture
def stats(tmp_path):
    return StatisticsService(tmp_path / "stats.json")


@pytest.fixture
def pipelines(datasets, models, stats):
    return PipelineService(datasets, models, default_registry(), stats)
