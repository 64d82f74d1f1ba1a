from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, ClassVar, Dict, List, Mapping, Optional

from models.structured_record import Schema, StructuredRecord
from utils.errors import PipelineConfigError

if TYPE_CHECKING:
    from services.dataset_store import DatasetStore
    from services.model_store import ModelStore

BATCH_SOURCE = "batchsource"
BATCH_SINK = "batchsink"
SPARK_COMPUTE = "sparkcompute"
SPARK_SINK = "sparksink"


@dataclass(slots=True)
class StageContext:
    """Runtime view handed to a stage while a workflow executes."""

    stage_name: str
    datasets: "DatasetStore"
    models: "ModelStore"
    input_schema: Optional[Schema] = None


class PipelinePlugin(ABC):
    """Common base for every stage plugin."""

    PLUGIN_NAME: ClassVar[str]
    PLUGIN_TYPE: ClassVar[str]

    def __init__(self, properties: Mapping[str, str] | None = None):
        self.properties: Dict[str, str] = dict(properties or {})

    def configure(self, input_schema: Optional[Schema]) -> Optional[Schema]:
        """Validate properties against the input schema and return the output schema."""
        return input_schema

    def _required(self, key: str) -> str:
        value = (self.properties.get(key) or "").strip()
        if not value:
            raise PipelineConfigError(f"{self.PLUGIN_NAME}: property '{key}' is required")
        return value

    def _optional(self, key: str) -> Optional[str]:
        value = (self.properties.get(key) or "").strip()
        return value or None

    def _int(self, key: str, default: int) -> int:
        raw = self._optional(key)
        if raw is None:
            return default
        try:
            return int(raw)
        except ValueError as exc:
            raise PipelineConfigError(f"{self.PLUGIN_NAME}: property '{key}' must be an integer, got '{raw}'") from exc


class BatchSource(PipelinePlugin):
    PLUGIN_TYPE = BATCH_SOURCE

    @abstractmethod
    def read(self, context: StageContext) -> List[StructuredRecord]:
        """Return every record the source emits for this run."""
        raise NotImplementedError


class SparkCompute(PipelinePlugin):
    PLUGIN_TYPE = SPARK_COMPUTE

    @abstractmethod
    def transform(self, context: StageContext, records: List[StructuredRecord]) -> List[StructuredRecord]:
        raise NotImplementedError


class SparkSink(PipelinePlugin):
    PLUGIN_TYPE = SPARK_SINK

    def configure(self, input_schema: Optional[Schema]) -> Optional[Schema]:
        return None

    @abstractmethod
    def run(self, context: StageContext, records: List[StructuredRecord]) -> None:
        raise NotImplementedError


class BatchSink(PipelinePlugin):
    PLUGIN_TYPE = BATCH_SINK

    def configure(self, input_schema: Optional[Schema]) -> Optional[Schema]:
        return None

    @abstractmethod
    def write(self, context: StageContext, records: List[StructuredRecord]) -> None:
        raise NotImplementedError
