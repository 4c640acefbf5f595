"""Field definitions stored in a model's schema.

A field definition is a tagged variant discriminated on ``type``. Link fields
carry the id of the model on the other side and the name of the field there
that mirrors this one; scalar fields carry no extra structure.
"""

from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator
from pydantic.alias_generators import to_camel

from linksync.models.base import ensure_identifier
from linksync.models.enums import FieldKind

_FIELD_CONFIG = ConfigDict(
    frozen=True,
    extra="forbid",
    populate_by_name=True,
    alias_generator=to_camel,
    protected_namespaces=(),
)


class LinkField(BaseModel):
    type: Literal["link"] = "link"
    name: str | None = None
    model_id: str
    field_name: str

    model_config = _FIELD_CONFIG

    @field_validator("model_id", "field_name", mode="before")
    @classmethod
    def _require_remote(cls, value: Any, info: ValidationInfo) -> str:
        return ensure_identifier(value, info.field_name or "value")

    @property
    def kind(self) -> FieldKind:
        return FieldKind.LINK

    def points_to(self, model_id: str, field_name: str) -> bool:
        return self.model_id == model_id and self.field_name == field_name


class ScalarField(BaseModel):
    type: Literal["text", "number", "boolean", "datetime"]
    name: str | None = None

    model_config = _FIELD_CONFIG

    @property
    def kind(self) -> FieldKind:
        return FieldKind(self.type)


FieldDefinition = Annotated[LinkField | ScalarField, Field(discriminator="type")]

__all__ = ["FieldDefinition", "LinkField", "ScalarField"]
