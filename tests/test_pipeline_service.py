from __future__ import annotations

import threading
from typing import List

import pytest

from models.pipeline_config import ETLBatchConfig, ETLPlugin, ETLStage
from models.spam_message import LABELED_SCHEMA, SCHEMA, SpamMessage
from models.structured_record import StructuredRecord
from services.pipeline_service import PipelineService, RunStatus
from services.plugins import SPARK_COMPUTE, MockSink, MockSource, SparkCompute, StageContext, default_registry
from utils.errors import PipelineConfigError, WorkflowFailedError

RELEASE = threading.Event()


class BlockingCompute(SparkCompute):
    PLUGIN_NAME = "Blocking"

    def transform(self, context: StageContext, records: List[StructuredRecord]) -> List[StructuredRecord]:
        RELEASE.wait(10)
        return records


class FailingCompute(SparkCompute):
    PLUGIN_NAME = "Failing"

    def transform(self, context: StageContext, records: List[StructuredRecord]) -> List[StructuredRecord]:
        raise RuntimeError("boom")


@pytest.fixture
def service(datasets, models, stats):
    registry = default_registry()
    registry.register(BlockingCompute, FailingCompute)
    return PipelineService(datasets, models, registry, stats)


def _passthrough(compute: str) -> ETLBatchConfig:
    return (
        ETLBatchConfig.builder("* * * * *")
        .add_stage(ETLStage("source", MockSource.get_plugin("in", SCHEMA)))
        .add_stage(ETLStage("compute", ETLPlugin(compute, SPARK_COMPUTE)))
        .add_stage(ETLStage("sink", MockSink.get_plugin("out")))
        .add_connection("source", "compute")
        .add_connection("compute", "sink")
        .build()
    )


def test_source_fans_out_to_every_sink(service, datasets, stats):
    config = (
        ETLBatchConfig.builder("* * * * *")
        .add_stage(ETLStage("source", MockSource.get_plugin("in", SCHEMA)))
        .add_stage(ETLStage("sinkA", MockSink.get_plugin("outA")))
        .add_stage(ETLStage("sinkB", MockSink.get_plugin("outB")))
        .add_connection("source", "sinkA")
        .add_connection("source", "sinkB")
        .build()
    )
    records = [SpamMessage(1, 1.0).to_structured_record(), SpamMessage(0, 0.0).to_structured_record()]
    MockSource.write_input(datasets, "in", records)

    counts = service.deploy("fanout", config).get_workflow_manager().run_once(30)

    assert counts["source"] == 2
    assert MockSink.read_output(datasets, "outA") == records
    assert MockSink.read_output(datasets, "outB") == records
    assert stats.snapshot()["apps"]["fanout"]["last_run"]["status"] == "COMPLETED"


def test_unknown_plugin_is_rejected(service):
    with pytest.raises(PipelineConfigError, match="No plugin named 'Missing'"):
        service.deploy("bad", _passthrough("Missing"))


def test_source_cannot_have_inputs(service):
    config = (
        ETLBatchConfig.builder("* * * * *")
        .add_stage(ETLStage("a", MockSource.get_plugin("in", SCHEMA)))
        .add_stage(ETLStage("b", MockSource.get_plugin("in2", SCHEMA)))
        .add_connection("a", "b")
        .build()
    )
    with pytest.raises(PipelineConfigError, match="cannot have inputs"):
        service.deploy("bad", config)


def test_stage_without_inputs_is_rejected(service):
    config = ETLBatchConfig.builder("* * * * *").add_stage(ETLStage("sink", MockSink.get_plugin("out"))).build()
    with pytest.raises(PipelineConfigError, match="has no inputs"):
        service.deploy("bad", config)


def test_redeploy_replaces_application(service):
    first = service.deploy("app", _passthrough("Failing"))
    second = service.deploy("app", _passthrough("Blocking"))
    assert first is not second
    assert service.application("app") is second


def test_unknown_workflow_name(service):
    app = service.deploy("app", _passthrough("Failing"))
    with pytest.raises(KeyError):
        app.get_workflow_manager("OtherWorkflow")


def test_failed_stage_is_reported(service, datasets, stats):
    MockSource.write_input(datasets, "in", [SpamMessage(1, 1.0).to_structured_record()])
    workflow = service.deploy("failing", _passthrough("Failing")).get_workflow_manager()

    with pytest.raises(WorkflowFailedError) as excinfo:
        workflow.run_once(30)

    assert excinfo.value.stage_name == "compute"
    assert str(excinfo.value.cause) == "boom"
    assert workflow.status is RunStatus.FAILED
    assert MockSink.read_output(datasets, "out") == []
    assert stats.snapshot()["statuses"] == {"FAILED": 1}


def test_wait_for_finish_times_out(service, datasets):
    RELEASE.clear()
    MockSource.write_input(datasets, "in", [SpamMessage(1, 1.0).to_structured_record()])
    workflow = service.deploy("slow", _passthrough("Blocking")).get_workflow_manager()

    workflow.start()
    try:
        with pytest.raises(TimeoutError):
            workflow.wait_for_finish(0.1)
        assert workflow.status is RunStatus.RUNNING
        with pytest.raises(RuntimeError, match="already running"):
            workflow.start()
    finally:
        RELEASE.set()

    assert workflow.wait_for_finish(10) == {"source": 1, "compute": 1, "sink": 0}
    assert workflow.status is RunStatus.COMPLETED


def test_wait_before_start_is_an_error(service):
    workflow = service.deploy("app", _passthrough("Failing")).get_workflow_manager()
    assert workflow.status is RunStatus.PENDING
    with pytest.raises(RuntimeError, match="never started"):
        workflow.wait_for_finish(1)


def _fan_in(left_schema, right_schema) -> ETLBatchConfig:
    return (
        ETLBatchConfig.builder("* * * * *")
        .add_stage(ETLStage("left", MockSource.get_plugin("left", left_schema)))
        .add_stage(ETLStage("right", MockSource.get_plugin("right", right_schema)))
        .add_stage(ETLStage("sink", MockSink.get_plugin("merged")))
        .add_connection("left", "sink")
        .add_connection("right", "sink")
        .build()
    )


def test_fan_in_rejects_different_schemas(service):
    with pytest.raises(PipelineConfigError, match="different schemas"):
        service.deploy("merge", _fan_in(SCHEMA, LABELED_SCHEMA))


def test_fan_in_concatenates_upstream_outputs(service, datasets):
    left = [SpamMessage(1, 1.0).to_structured_record(), SpamMessage(0, 0.0).to_structured_record()]
    right = [SpamMessage(1, 0.5).to_structured_record()]
    MockSource.write_input(datasets, "left", left)
    MockSource.write_input(datasets, "right", right)

    app = service.deploy("merge", _fan_in(SCHEMA, SCHEMA))
    counts = app.get_workflow_manager().run_once(30)

    assert app.stages["sink"].input_schema == SCHEMA
    assert counts == {"left": 2, "right": 1, "sink": 0}
    assert MockSink.read_output(datasets, "merged") == left + right
