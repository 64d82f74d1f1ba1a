from __future__ import annotations

from typing import Iterable, List, Optional, Sequence

import numpy as np

from models.structured_record import Schema, StructuredRecord
from utils.errors import PipelineConfigError


def parse_field_list(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


def select_feature_fields(
    schema: Schema,
    include: Sequence[str],
    exclude: Sequence[str],
    reserved: Iterable[str] = (),
) -> List[str]:
    """Resolve which schema fields make up the feature vector, in schema order for the default case."""

    if include and exclude:
        raise PipelineConfigError("Only one of featureFieldsToInclude and featureFieldsToExclude may be set")
    reserved_set = {name for name in reserved if name}
    if include:
        selected = list(include)
    else:
        skipped = set(exclude) | reserved_set
        for name in exclude:
            if schema.get_field(name) is None:
                raise PipelineConfigError(f"Excluded field '{name}' is not in the input schema")
        selected = [name for name in schema.field_names if name not in skipped]

    for name in selected:
        item = schema.get_field(name)
        if item is None:
            raise PipelineConfigError(f"Feature field '{name}' is not in the input schema")
        if not item.type.is_numeric:
            raise PipelineConfigError(f"Feature field '{name}' must be numeric, found {item.type.value}")
        if name in reserved_set:
            raise PipelineConfigError(f"Field '{name}' cannot be both a feature and the label or prediction field")
    if not selected:
        raise PipelineConfigError("No feature fields remain after applying the include/exclude settings")
    return selected


class FeatureVectorizer:
    """
    Map records onto fixed-width numeric vectors.

    Feature values occupy the first columns in the configured order; the
    remaining columns up to ``num_features`` are zero.
    """

    def __init__(self, feature_fields: Sequence[str], num_features: int):
        if num_features <= 0:
            raise PipelineConfigError(f"numFeatures must be positive, got {num_features}")
        if num_features < len(feature_fields):
            raise PipelineConfigError(
                f"numFeatures ({num_features}) is smaller than the number of feature fields ({len(feature_fields)})"
            )
        self.feature_fields = list(feature_fields)
        self.num_features = num_features

    def transform(self, records: Sequence[StructuredRecord]) -> np.ndarray:
        X = np.zeros((len(records), self.num_features), dtype=np.float64)
        for row, record in enumerate(records):
            for col, name in enumerate(self.feature_fields):
                value = record.get(name)
                if value is None:
                    raise ValueError(f"Feature field '{name}' is null in record {row}")
                X[row, col] = float(value)
        return X
