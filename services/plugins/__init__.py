"""Pipeline stage plugins and the registry used to instantiate them."""

from .base import (
    BATCH_SINK,
    BATCH_SOURCE,
    SPARK_COMPUTE,
    SPARK_SINK,
    BatchSink,
    BatchSource,
    PipelinePlugin,
    SparkCompute,
    SparkSink,
    StageContext,
)
from .logistic_regression import LogisticRegressionClassifier, LogisticRegressionTrainer
from .mock import MockSink, MockSource
from .registry import PluginRegistry, default_registry

__all__ = [
    "BATCH_SINK",
    "BATCH_SOURCE",
    "SPARK_COMPUTE",
    "SPARK_SINK",
    "BatchSink",
    "BatchSource",
    "PipelinePlugin",
    "SparkCompute",
    "SparkSink",
    "StageContext",
    "LogisticRegressionClassifier",
    "LogisticRegressionTrainer",
    "MockSink",
    "MockSource",
    "PluginRegistry",
    "default_registry",
]
