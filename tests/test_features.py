from __future__ import annotations

import numpy as np
import pytest

from models.spam_message import IMP_FIELD, LABELED_SCHEMA, READ_FIELD, SPAM_PREDICTION_FIELD, SpamMessage
from models.structured_record import Field, FieldType
from services.plugins.features import FeatureVectorizer, parse_field_list, select_feature_fields
from utils.errors import PipelineConfigError


def test_parse_field_list_trims_and_drops_blanks():
    assert parse_field_list(" imp, read ,,") == ["imp", "read"]
    assert parse_field_list(None) == []
    assert parse_field_list("") == []


def test_default_selection_skips_reserved_field():
    assert select_feature_fields(LABELED_SCHEMA, [], [], [SPAM_PREDICTION_FIELD]) == [IMP_FIELD, READ_FIELD]


def test_exclude_selection():
    assert select_feature_fields(LABELED_SCHEMA, [], [IMP_FIELD], [SPAM_PREDICTION_FIELD]) == [READ_FIELD]


def test_include_keeps_requested_order():
    assert select_feature_fields(LABELED_SCHEMA, [READ_FIELD, IMP_FIELD], [], []) == [READ_FIELD, IMP_FIELD]


@pytest.mark.parametrize(
    "include, exclude, message",
    [
        ([IMP_FIELD], [READ_FIELD], "Only one of"),
        (["unknown"], [], "not in the input schema"),
        ([], ["unknown"], "not in the input schema"),
        ([SPAM_PREDICTION_FIELD], [], "cannot be both"),
        ([], [IMP_FIELD, READ_FIELD], "No feature fields remain"),
    ],
)
def test_selection_errors(include, exclude, message):
    with pytest.raises(PipelineConfigError, match=message):
        select_feature_fields(LABELED_SCHEMA, include, exclude, [SPAM_PREDICTION_FIELD])


def test_non_numeric_feature_rejected():
    schema = LABELED_SCHEMA.with_field(Field("subject", FieldType.STRING))
    with pytest.raises(PipelineConfigError, match="must be numeric"):
        select_feature_fields(schema, ["subject"], [], [])


def test_vectorizer_pads_to_declared_width():
    vectorizer = FeatureVectorizer([IMP_FIELD, READ_FIELD], 4)
    X = vectorizer.transform([SpamMessage(1, 0.5).to_structured_record(), SpamMessage(0, 0.0).to_structured_record()])
    np.testing.assert_array_equal(X, np.array([[1.0, 0.5, 0.0, 0.0], [0.0, 0.0, 0.0, 0.0]]))


def test_vectorizer_rejects_null_feature():
    vectorizer = FeatureVectorizer([SPAM_PREDICTION_FIELD], 1)
    with pytest.raises(ValueError, match="is null"):
        vectorizer.transform([SpamMessage(1, 1.0).to_structured_record(include_label=True)])


@pytest.mark.parametrize("width", [0, 1])
def test_vectorizer_width_must_fit_features(width):
    with pytest.raises(PipelineConfigError):
        FeatureVectorizer([IMP_FIELD, READ_FIELD], width)
