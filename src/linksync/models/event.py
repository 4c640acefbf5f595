from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from linksync.models.base import RecordModel, ensure_identifier
from linksync.models.enums import LinkEventKind
from linksync.models.model import Model
from linksync.models.record import Record


class LinkEventData(BaseModel):
    """What happened: the model involved and, for record events, the record."""

    model_id: str
    model: Model | None = None
    record: Record | None = None

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        populate_by_name=True,
        alias_generator=to_camel,
        protected_namespaces=(),
    )

    @field_validator("model_id", mode="before")
    @classmethod
    def _normalize_model_id(cls, value: Any) -> str:
        return ensure_identifier(value, "model_id")


class LinkEvent(RecordModel):
    SCHEMA_VERSION: ClassVar[str] = "link_event.v1"

    schema_version: str = Field(default=SCHEMA_VERSION)
    instance_id: str
    kind: LinkEventKind
    event_data: LinkEventData

    @field_validator("instance_id", mode="before")
    @classmethod
    def _normalize_instance_id(cls, value: Any) -> str:
        return ensure_identifier(value, "instance_id")

    @property
    def model_id(self) -> str:
        return self.event_data.model_id


__all__ = ["LinkEvent", "LinkEventData"]
