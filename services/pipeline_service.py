from __future__ import annotations

import concurrent.futures
import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional

from models.pipeline_config import ETLBatchConfig
from models.structured_record import Schema, StructuredRecord
from services.dataset_store import DatasetStore
from services.model_store import ModelStore
from services.plugins import (
    BatchSink,
    BatchSource,
    PipelinePlugin,
    PluginRegistry,
    SparkCompute,
    SparkSink,
    StageContext,
)
from services.statistics_service import StatisticsService
from utils.errors import PipelineConfigError, WorkflowFailedError

LOGGER = logging.getLogger(__name__)
SMART_WORKFLOW = "DataPipelineWorkflow"
DEFAULT_TIMEOUT_SECONDS = 300


class RunStatus(str, Enum):
    PENDING = "PENDING"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


@dataclass(slots=True)
class DeployedStage:
    name: str
    plugin: PipelinePlugin
    input_schema: Optional[Schema]
    output_schema: Optional[Schema]


class PipelineService:
    """Deploy batch pipelines and run them in-process."""

    def __init__(
        self,
        datasets: DatasetStore,
        models: ModelStore,
        registry: PluginRegistry,
        stats: Optional[StatisticsService] = None,
    ):
        self.datasets = datasets
        self.models = models
        self.registry = registry
        self.stats = stats
        self._apps: Dict[str, ApplicationManager] = {}

    def deploy(self, app_name: str, config: ETLBatchConfig) -> "ApplicationManager":
        stages: Dict[str, DeployedStage] = {}
        for name in config.topological_order():
            stage = config.stage(name)
            plugin = self.registry.create(stage.plugin)
            upstream = config.inputs_of(name)
            if isinstance(plugin, BatchSource) and upstream:
                raise PipelineConfigError(f"Source stage '{name}' cannot have inputs")
            if isinstance(plugin, (BatchSink, SparkSink)) and config.outputs_of(name):
                raise PipelineConfigError(f"Sink stage '{name}' cannot have outputs")
            if not isinstance(plugin, BatchSource) and not upstream:
                raise PipelineConfigError(f"Stage '{name}' has no inputs")

            input_schema = self._input_schema(name, [stages[item].output_schema for item in upstream])
            try:
                output_schema = plugin.configure(input_schema)
            except PipelineConfigError as exc:
                raise PipelineConfigError(f"Stage '{name}': {exc}") from exc
            stages[name] = DeployedStage(name, plugin, input_schema, output_schema)

        if app_name in self._apps:
            LOGGER.info("Redeploying application %s", app_name)
        app = ApplicationManager(app_name, config, stages, self)
        self._apps[app_name] = app
        LOGGER.info("Deployed application %s with stages %s", app_name, list(stages))
        return app

    def application(self, app_name: str) -> "ApplicationManager":
        if app_name not in self._apps:
            raise KeyError(f"Unknown application '{app_name}'")
        return self._apps[app_name]

    def _input_schema(self, name: str, schemas: List[Optional[Schema]]) -> Optional[Schema]:
        known = [schema for schema in schemas if schema is not None]
        if not known:
            return None
        if any(schema != known[0] for schema in known[1:]):
            raise PipelineConfigError(f"Stage '{name}' receives inputs with different schemas")
        return known[0]

    def _execute(self, app: "ApplicationManager") -> Dict[str, int]:
        outputs: Dict[str, List[StructuredRecord]] = {}
        counts: Dict[str, int] = {}
        for name in app.config.topological_order():
            stage = app.stages[name]
            records = [record for upstream in app.config.inputs_of(name) for record in outputs[upstream]]
            context = StageContext(name, self.datasets, self.models, stage.input_schema)
            LOGGER.debug("Running stage %s with %d input record(s)", name, len(records))
            try:
                outputs[name] = self._run_stage(stage.plugin, context, records)
            except Exception as exc:
                LOGGER.error("Stage %s of %s failed: %s", name, app.name, exc)
                self._record(app.name, RunStatus.FAILED, counts)
                raise WorkflowFailedError(app.name, name, exc) from exc
            counts[name] = len(outputs[name])
        self._record(app.name, RunStatus.COMPLETED, counts)
        LOGGER.info("Workflow for %s completed: %s", app.name, counts)
        return counts

    def _run_stage(
        self,
        plugin: PipelinePlugin,
        context: StageContext,
        records: List[StructuredRecord],
    ) -> List[StructuredRecord]:
        if isinstance(plugin, BatchSource):
            return plugin.read(context)
        if isinstance(plugin, SparkCompute):
            return plugin.transform(context, records)
        if isinstance(plugin, SparkSink):
            plugin.run(context, records)
            return []
        if isinstance(plugin, BatchSink):
            plugin.write(context, records)
            return []
        raise TypeError(f"Unsupported plugin type {type(plugin).__name__}")

    def _record(self, app_name: str, status: RunStatus, counts: Dict[str, int]) -> None:
        if self.stats is not None:
            self.stats.record_run(app_name, status.value, counts)


class ApplicationManager:
    def __init__(
        self,
        name: str,
        config: ETLBatchConfig,
        stages: Dict[str, DeployedStage],
        service: PipelineService,
    ):
        self.name = name
        self.config = config
        self.stages = stages
        self._service = service
        self._workflow = WorkflowManager(self)

    def get_workflow_manager(self, workflow_name: str = SMART_WORKFLOW) -> "WorkflowManager":
        if workflow_name != SMART_WORKFLOW:
            raise KeyError(f"Application '{self.name}' has no workflow named '{workflow_name}'")
        return self._workflow

    def execute(self) -> Dict[str, int]:
        return self._service._execute(self)


class WorkflowManager:
    """Start a pipeline run on a background worker and wait for it."""

    def __init__(self, app: ApplicationManager):
        self._app = app
        self._lock = threading.Lock()
        self._future: Optional[concurrent.futures.Future] = None
        self._executor: Optional[concurrent.futures.ThreadPoolExecutor] = None

    @property
    def status(self) -> RunStatus:
        future = self._future
        if future is None:
            return RunStatus.PENDING
        if not future.done():
            return RunStatus.RUNNING
        return RunStatus.FAILED if future.exception() is not None else RunStatus.COMPLETED

    def start(self) -> None:
        with self._lock:
            if self._future is not None and not self._future.done():
                raise RuntimeError(f"Workflow for '{self._app.name}' is already running")
            if self._executor is not None:
                self._executor.shutdown(wait=False)
            self._executor = concurrent.futures.ThreadPoolExecutor(
                max_workers=1, thread_name_prefix=f"workflow-{self._app.name}"
            )
            self._future = self._executor.submit(self._app.execute)
        LOGGER.info("Started workflow %s for %s", SMART_WORKFLOW, self._app.name)

    def wait_for_finish(self, timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS) -> Dict[str, int]:
        """Block until the current run finishes and return records emitted per stage."""

        if self._future is None:
            raise RuntimeError(f"Workflow for '{self._app.name}' was never started")
        try:
            return self._future.result(timeout=timeout_seconds)
        except concurrent.futures.TimeoutError as exc:
            raise TimeoutError(
                f"Workflow for '{self._app.name}' did not finish within {timeout_seconds} seconds"
            ) from exc
        finally:
            if self._future.done() and self._executor is not None:
                self._executor.shutdown(wait=False)
                self._executor = None

    def run_once(self, timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS) -> Dict[str, int]:
        self.start()
        return self.wait_for_finish(timeout_seconds)
