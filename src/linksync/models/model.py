from collections.abc import Iterator
from typing import Any, ClassVar

from pydantic import Field, ValidationInfo, field_validator

from linksync.models.base import RecordModel, ensure_identifier, ensure_non_empty_text
from linksync.models.fields import FieldDefinition, LinkField


class Model(RecordModel):
    """Schema definition for a class of records."""

    SCHEMA_VERSION: ClassVar[str] = "model.v1"

    schema_version: str = Field(default=SCHEMA_VERSION)
    model_id: str = Field(alias="_id")
    rev: str | None = Field(default=None, alias="_rev")
    name: str
    field_schema: dict[str, FieldDefinition] = Field(default_factory=dict, alias="schema")

    @field_validator("model_id", mode="before")
    @classmethod
    def _normalize_model_id(cls, value: Any) -> str:
        return ensure_identifier(value, "model_id")

    @field_validator("name")
    @classmethod
    def _ensure_name(cls, value: str, info: ValidationInfo) -> str:
        return ensure_non_empty_text(value, info.field_name or "name")

    def link_fields(self) -> Iterator[tuple[str, LinkField]]:
        for field_name, definition in self.field_schema.items():
            if isinstance(definition, LinkField):
                yield field_name, definition

    def with_field(self, field_name: str, definition: FieldDefinition) -> "Model":
        schema = dict(self.field_schema)
        schema[field_name] = definition
        return self.model_copy(update={"field_schema": schema})

    def without_field(self, field_name: str) -> "Model":
        schema = {name: value for name, value in self.field_schema.items() if name != field_name}
        return self.model_copy(update={"field_schema": schema})

    def with_rev(self, rev: str) -> "Model":
        return self.model_copy(update={"rev": rev})


__all__ = ["Model"]
