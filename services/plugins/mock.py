from __future__ import annotations

import json
import logging
from typing import Iterable, List, Optional

from models.pipeline_config import ETLPlugin
from models.structured_record import Schema, StructuredRecord
from services.dataset_store import DatasetStore
from utils.errors import PipelineConfigError

from .base import BatchSink, BatchSource, StageContext

LOGGER = logging.getLogger(__name__)


class MockSource(BatchSource):
    """Source that emits whatever was written to a named dataset."""

    PLUGIN_NAME = "Mock"

    @staticmethod
    def get_plugin(table_name: str, schema: Schema) -> ETLPlugin:
        return ETLPlugin(
            MockSource.PLUGIN_NAME,
            MockSource.PLUGIN_TYPE,
            {"tableName": table_name, "schema": json.dumps(schema.to_dict())},
        )

    @staticmethod
    def write_input(datasets: DatasetStore, table_name: str, records: Iterable[StructuredRecord]) -> int:
        return datasets.write(table_name, records)

    def configure(self, input_schema: Optional[Schema]) -> Optional[Schema]:
        self._required("tableName")
        raw = self._required("schema")
        try:
            return Schema.from_dict(json.loads(raw))
        except (ValueError, KeyError, TypeError) as exc:
            raise PipelineConfigError(f"{self.PLUGIN_NAME}: invalid schema: {exc}") from exc

    def read(self, context: StageContext) -> List[StructuredRecord]:
        table_name = self._required("tableName")
        records = context.datasets.read(table_name)
        LOGGER.debug("Stage %s read %d record(s) from %s", context.stage_name, len(records), table_name)
        return records


class MockSink(BatchSink):
    """Sink that appends every record it receives to a named dataset."""

    PLUGIN_NAME = "Mock"

    @staticmethod
    def get_plugin(table_name: str) -> ETLPlugin:
        return ETLPlugin(MockSink.PLUGIN_NAME, MockSink.PLUGIN_TYPE, {"tableName": table_name})

    @staticmethod
    def read_output(datasets: DatasetStore, table_name: str) -> List[StructuredRecord]:
        return datasets.read(table_name)

    def configure(self, input_schema: Optional[Schema]) -> Optional[Schema]:
        self._required("tableName")
        return None

    def write(self, context: StageContext, records: List[StructuredRecord]) -> None:
        context.datasets.write(self._required("tableName"), records)
