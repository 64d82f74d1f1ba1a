from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

from utils.errors import PipelineConfigError


@dataclass(frozen=True, slots=True)
class ETLPlugin:
    """Reference to a plugin by name and type, plus its string properties."""

    name: str
    type: str
    properties: Dict[str, str] = field(default_factory=dict)
    artifact: Optional[str] = None


@dataclass(frozen=True, slots=True)
class ETLStage:
    name: str
    plugin: ETLPlugin


@dataclass(frozen=True, slots=True)
class ETLBatchConfig:
    schedule: str
    stages: Tuple[ETLStage, ...]
    connections: Tuple[Tuple[str, str], ...]

    @classmethod
    def builder(cls, schedule: str) -> "ETLBatchConfigBuilder":
        return ETLBatchConfigBuilder(schedule)

    def stage(self, name: str) -> ETLStage:
        for stage in self.stages:
            if stage.name == name:
                return stage
        raise KeyError(f"Unknown stage '{name}'")

    def inputs_of(self, name: str) -> List[str]:
        return [src for src, dst in self.connections if dst == name]

    def outputs_of(self, name: str) -> List[str]:
        return [dst for src, dst in self.connections if src == name]

    def topological_order(self) -> List[str]:
        """Stage names ordered so every stage follows all of its inputs.

        Ties keep the order in which stages were added.
        """

        remaining = {stage.name: len(self.inputs_of(stage.name)) for stage in self.stages}
        ordered: List[str] = []
        ready = [stage.name for stage in self.stages if remaining[stage.name] == 0]
        while ready:
            name = ready.pop(0)
            ordered.append(name)
            for downstream in self.outputs_of(name):
                remaining[downstream] -= 1
                if remaining[downstream] == 0:
                    ready.append(downstream)
        if len(ordered) != len(self.stages):
            cyclic = sorted(set(remaining) - set(ordered))
            raise PipelineConfigError(f"Pipeline contains a cycle through stages: {', '.join(cyclic)}")
        return ordered

    def to_dict(self) -> Dict[str, Any]:
        return {
            "schedule": self.schedule,
            "stages": [
                {
                    "name": stage.name,
                    "plugin": {
                        "name": stage.plugin.name,
                        "type": stage.plugin.type,
                        "properties": dict(stage.plugin.properties),
                        "artifact": stage.plugin.artifact,
                    },
                }
                for stage in self.stages
            ],
            "connections": [{"from": src, "to": dst} for src, dst in self.connections],
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ETLBatchConfig":
        if not isinstance(data, Mapping):
            raise PipelineConfigError(f"Pipeline definition must be an object, got {data!r}")
        stages = data.get("stages", [])
        connections = data.get("connections", [])
        if not isinstance(stages, list) or not isinstance(connections, list):
            raise PipelineConfigError("Pipeline 'stages' and 'connections' must be lists")

        builder = cls.builder(data.get("schedule", "* * * * *"))
        for item in stages:
            if not isinstance(item, Mapping):
                raise PipelineConfigError(f"Stage definition must be an object, got {item!r}")
            plugin = item.get("plugin") or {}
            if not isinstance(plugin, Mapping):
                raise PipelineConfigError(f"Plugin of stage {item.get('name')!r} must be an object, got {plugin!r}")
            if "name" not in item or "name" not in plugin or "type" not in plugin:
                raise PipelineConfigError(f"Stage definition is missing a name or plugin: {item}")
            raw_properties = plugin.get("properties") or {}
            if not isinstance(raw_properties, Mapping):
                raise PipelineConfigError(
                    f"Properties of stage {item['name']!r} must be an object, got {raw_properties!r}"
                )
            properties = {key: str(value) for key, value in raw_properties.items()}
            builder.add_stage(
                ETLStage(
                    item["name"],
                    ETLPlugin(plugin["name"], plugin["type"], properties, plugin.get("artifact")),
                )
            )
        for connection in connections:
            if not isinstance(connection, Mapping) or "from" not in connection or "to" not in connection:
                raise PipelineConfigError(f"Connection must be an object with 'from' and 'to', got {connection!r}")
            builder.add_connection(connection["from"], connection["to"])
        return builder.build()


class ETLBatchConfigBuilder:
    def __init__(self, schedule: str):
        self._schedule = schedule
        self._stages: List[ETLStage] = []
        self._connections: List[Tuple[str, str]] = []

    def add_stage(self, stage: ETLStage) -> "ETLBatchConfigBuilder":
        self._stages.append(stage)
        return self

    def add_connection(self, source: str, target: str) -> "ETLBatchConfigBuilder":
        self._connections.append((source, target))
        return self

    def build(self) -> ETLBatchConfig:
        names = [stage.name for stage in self._stages]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise PipelineConfigError(f"Duplicate stage names: {', '.join(duplicates)}")
        for src, dst in self._connections:
            for name in (src, dst):
                if name not in names:
                    raise PipelineConfigError(f"Connection {src} -> {dst} references unknown stage '{name}'")
            if src == dst:
                raise PipelineConfigError(f"Stage '{src}' cannot connect to itself")
        config = ETLBatchConfig(
            schedule=self._schedule,
            stages=tuple(self._stages),
            connections=tuple(dict.fromkeys(self._connections)),
        )
        config.topological_order()
        return config
