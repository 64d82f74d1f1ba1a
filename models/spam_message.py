from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from models.structured_record import Field, FieldType, Schema, StructuredRecord

IMP_FIELD = "imp"
READ_FIELD = "read"
SPAM_PREDICTION_FIELD = "isSpam"
SPAM_FEATURES = "100"

SCHEMA = Schema.record_of(
    "simpleMessage",
    Field(IMP_FIELD, FieldType.INT),
    Field(READ_FIELD, FieldType.DOUBLE),
)
LABELED_SCHEMA = SCHEMA.with_field(Field(SPAM_PREDICTION_FIELD, FieldType.DOUBLE, nullable=True))


@dataclass(frozen=True, slots=True)
class SpamMessage:
    """Message reduced to the numeric signals used for spam classification."""

    importance: int
    read: float
    spam_prediction: Optional[float] = None

    def to_structured_record(self, include_label: Optional[bool] = None) -> StructuredRecord:
        if include_label is None:
            include_label = self.spam_prediction is not None
        if include_label:
            return StructuredRecord.of(
                LABELED_SCHEMA,
                **{IMP_FIELD: self.importance, READ_FIELD: self.read, SPAM_PREDICTION_FIELD: self.spam_prediction},
            )
        return StructuredRecord.of(SCHEMA, **{IMP_FIELD: self.importance, READ_FIELD: self.read})

    @classmethod
    def from_structured_record(cls, record: StructuredRecord) -> "SpamMessage":
        prediction = record.get(SPAM_PREDICTION_FIELD)
        return cls(
            importance=record.get(IMP_FIELD),
            read=float(record.get(READ_FIELD)),
            spam_prediction=float(prediction) if prediction is not None else None,
        )
