from enum import StrEnum


class FieldKind(StrEnum):
    LINK = "link"
    TEXT = "text"
    NUMBER = "number"
    BOOLEAN = "boolean"
    DATETIME = "datetime"


class LinkEventKind(StrEnum):
    RECORD_SAVED = "record:save"
    RECORD_DELETED = "record:delete"
    MODEL_SAVED = "model:save"
    MODEL_DELETED = "model:delete"
