from __future__ import annotations

import logging
from typing import Dict, List, Tuple, Type

from models.pipeline_config import ETLPlugin
from utils.errors import PipelineConfigError

from .base import PipelinePlugin
from .logistic_regression import LogisticRegressionClassifier, LogisticRegressionTrainer
from .mock import MockSink, MockSource

LOGGER = logging.getLogger(__name__)


class PluginRegistry:
    """Lookup of plugin classes by (type, name)."""

    def __init__(self) -> None:
        self._plugins: Dict[Tuple[str, str], Type[PipelinePlugin]] = {}

    def register(self, *plugin_classes: Type[PipelinePlugin]) -> None:
        for plugin_class in plugin_classes:
            key = (plugin_class.PLUGIN_TYPE, plugin_class.PLUGIN_NAME)
            if key in self._plugins and self._plugins[key] is not plugin_class:
                LOGGER.warning("Replacing plugin %s of type %s", key[1], key[0])
            self._plugins[key] = plugin_class

    def create(self, plugin: ETLPlugin) -> PipelinePlugin:
        plugin_class = self._plugins.get((plugin.type, plugin.name))
        if plugin_class is None:
            raise PipelineConfigError(f"No plugin named '{plugin.name}' of type '{plugin.type}' is registered")
        return plugin_class(plugin.properties)

    def available(self) -> List[Tuple[str, str]]:
        return sorted(self._plugins)


def default_registry() -> PluginRegistry:
    registry = PluginRegistry()
    registry.register(MockSource, MockSink, LogisticRegressionTrainer, LogisticRegressionClassifier)
    return registry
