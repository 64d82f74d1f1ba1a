from __future__ import annotations

import logging
from typing import Dict, List, Optional

import numpy as np
from sklearn.linear_model import LogisticRegression

from models.structured_record import Field, FieldType, Schema, StructuredRecord
from utils.errors import PipelineConfigError

from .base import SparkCompute, SparkSink, StageContext
from .features import FeatureVectorizer, parse_field_list, select_feature_fields

LOGGER = logging.getLogger(__name__)
DEFAULT_NUM_FEATURES = 100
DEFAULT_NUM_CLASSES = 2


class _LogisticRegressionSettings:
    """Properties shared by the trainer and the classifier."""

    properties: Dict[str, str]
    PLUGIN_NAME: str

    def _model_location(self) -> tuple[str, str]:
        return self._required("fileSetName"), self._required("path")

    def _num_features(self) -> int:
        return self._int("numFeatures", DEFAULT_NUM_FEATURES)

    def _vectorizer(self, schema: Schema, reserved: str) -> FeatureVectorizer:
        fields = select_feature_fields(
            schema,
            include=parse_field_list(self.properties.get("featureFieldsToInclude")),
            exclude=parse_field_list(self.properties.get("featureFieldsToExclude")),
            reserved=[reserved],
        )
        return FeatureVectorizer(fields, self._num_features())


class LogisticRegressionTrainer(_LogisticRegressionSettings, SparkSink):
    """Fit a logistic regression model on labeled records and store it in a model file set."""

    PLUGIN_NAME = "LogisticRegressionTrainer"

    def configure(self, input_schema: Optional[Schema]) -> Optional[Schema]:
        self._model_location()
        label_field = self._required("labelField")
        if self._num_classes() < 2:
            raise PipelineConfigError(f"{self.PLUGIN_NAME}: numClasses must be at least 2")
        if input_schema is not None:
            item = input_schema.get_field(label_field)
            if item is None:
                raise PipelineConfigError(f"{self.PLUGIN_NAME}: label field '{label_field}' is not in the input schema")
            if not item.type.is_numeric:
                raise PipelineConfigError(f"{self.PLUGIN_NAME}: label field '{label_field}' must be numeric")
            self._vectorizer(input_schema, label_field)
        return None

    def _num_classes(self) -> int:
        return self._int("numClasses", DEFAULT_NUM_CLASSES)

    def run(self, context: StageContext, records: List[StructuredRecord]) -> None:
        label_field = self._required("labelField")
        num_classes = self._num_classes()

        labeled = [record for record in records if record.get(label_field) is not None]
        skipped = len(records) - len(labeled)
        if skipped:
            LOGGER.warning("Stage %s skipped %d record(s) without a '%s' value", context.stage_name, skipped, label_field)
        if not labeled:
            raise ValueError(f"No labeled records available to train on in stage '{context.stage_name}'")

        labels = []
        for record in labeled:
            label = float(record.get(label_field))
            if not label.is_integer() or not 0 <= label < num_classes:
                raise ValueError(f"Label {label} is not a class index in [0, {num_classes})")
            labels.append(label)
        y = np.asarray(labels)
        if len(np.unique(y)) < 2:
            raise ValueError("Training data must contain at least two distinct classes")

        schema = context.input_schema or labeled[0].schema
        vectorizer = self._vectorizer(schema, label_field)
        X = vectorizer.transform(labeled)

        model = LogisticRegression(solver="lbfgs", max_iter=100)
        model.fit(X, y)
        LOGGER.info(
            "Stage %s trained logistic regression on %d record(s) with features %s",
            context.stage_name,
            len(labeled),
            vectorizer.feature_fields,
        )

        file_set, path = self._model_location()
        context.models.save(
            file_set,
            path,
            {
                "model": model,
                "feature_fields": vectorizer.feature_fields,
                "num_features": vectorizer.num_features,
                "num_classes": num_classes,
                "label_field": label_field,
            },
        )


class LogisticRegressionClassifier(_LogisticRegressionSettings, SparkCompute):
    """Annotate each record with the class predicted by a stored logistic regression model."""

    PLUGIN_NAME = "LogisticRegressionClassifier"

    def configure(self, input_schema: Optional[Schema]) -> Optional[Schema]:
        self._model_location()
        self._required("predictionField")
        if input_schema is None:
            return None
        return self._output_schema(input_schema)

    def _output_schema(self, input_schema: Schema) -> Schema:
        prediction_field = self._required("predictionField")
        if input_schema.get_field(prediction_field) is not None:
            raise PipelineConfigError(
                f"{self.PLUGIN_NAME}: prediction field '{prediction_field}' already exists in the input schema"
            )
        self._vectorizer(input_schema, prediction_field)
        return input_schema.with_field(Field(prediction_field, FieldType.DOUBLE))

    def transform(self, context: StageContext, records: List[StructuredRecord]) -> List[StructuredRecord]:
        if not records:
            return []

        file_set, path = self._model_location()
        artifact = context.models.load(file_set, path)
        prediction_field = self._required("predictionField")
        schema = context.input_schema or records[0].schema
        vectorizer = self._vectorizer(schema, prediction_field)
        if artifact["num_features"] != vectorizer.num_features:
            raise ValueError(
                f"Model was trained with {artifact['num_features']} features but numFeatures is {vectorizer.num_features}"
            )
        if artifact["feature_fields"] != vectorizer.feature_fields:
            raise ValueError(
                f"Model was trained with features {artifact['feature_fields']} "
                f"but stage '{context.stage_name}' classifies with {vectorizer.feature_fields}"
            )

        predictions = artifact["model"].predict(vectorizer.transform(records))
        output_schemas: Dict[Schema, Schema] = {}
        classified = []
        for record, prediction in zip(records, predictions):
            if record.schema not in output_schemas:
                output_schemas[record.schema] = self._output_schema(record.schema)
            values = dict(record.values)
            values[prediction_field] = float(prediction)
            classified.append(StructuredRecord.of(output_schemas[record.schema], **values))
        LOGGER.info("Stage %s classified %d record(s)", context.stage_name, len(classified))
        return classified
