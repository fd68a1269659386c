"""Data Pipeline - Record persistence, splitting, synthetic data and preprocessing."""

from .preprocess import (
    BinaryLabel,
    Label,
    LabelError,
    LabelMode,
    NextEventLabel,
    RecordError,
    encode_label,
    filter_encodable,
    input_shape,
    output_width,
    parse_label,
    preprocess,
)
from .records import (
    TEST_FILE,
    TRAIN_FILE,
    VALIDATION_FILE,
    DatasetSplit,
    EventRecord,
    add_record,
    generate_random_records,
    generate_sequence,
    load_records,
    load_split,
    save_records,
    save_split,
    split_records,
)

__all__ = [
    "EventRecord",
    "DatasetSplit",
    "load_records",
    "save_records",
    "add_record",
    "split_records",
    "save_split",
    "load_split",
    "generate_sequence",
    "generate_random_records",
    "TRAIN_FILE",
    "VALIDATION_FILE",
    "TEST_FILE",
    "LabelMode",
    "Label",
    "BinaryLabel",
    "NextEventLabel",
    "LabelError",
    "RecordError",
    "parse_label",
    "encode_label",
    "input_shape",
    "output_width",
    "preprocess",
    "filter_encodable",
]
