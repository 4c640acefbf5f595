"""Link documents: one persisted association between two records.

A link is symmetric. Which record ends up in ``side1`` only reflects which
record's save created it, so lookups always consider both sides.
"""

from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from linksync.models.base import RecordModel, ensure_identifier


class LinkSide(BaseModel):
    model_id: str
    field_name: str
    record_id: str

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        populate_by_name=True,
        alias_generator=to_camel,
        protected_namespaces=(),
    )

    @field_validator("model_id", "field_name", "record_id", mode="before")
    @classmethod
    def _normalize(cls, value: Any) -> str:
        return ensure_identifier(value, "link side")

    def matches(
        self,
        model_id: str,
        field_name: str | None = None,
        record_id: str | None = None,
    ) -> bool:
        """Check this side against a scope where None acts as a wildcard."""
        if self.model_id != model_id:
            return False
        if field_name is not None and self.field_name != field_name:
            return False
        if record_id is not None and self.record_id != record_id:
            return False
        return True

    def key(self) -> tuple[str, str, str]:
        return (self.model_id, self.field_name, self.record_id)


class LinkDocument(RecordModel):
    SCHEMA_VERSION: ClassVar[str] = "link.v1"

    schema_version: str = Field(default=SCHEMA_VERSION)
    link_id: str | None = Field(default=None, alias="_id")
    rev: str | None = Field(default=None, alias="_rev")
    side1: LinkSide
    side2: LinkSide
    deleted: bool = Field(default=False, alias="_deleted")

    def identity(self) -> frozenset[tuple[str, str, str]]:
        """Order-independent identity of the association."""
        return frozenset((self.side1.key(), self.side2.key()))

    def side_for(
        self,
        model_id: str,
        field_name: str | None = None,
        record_id: str | None = None,
    ) -> LinkSide | None:
        if self.side1.matches(model_id, field_name, record_id):
            return self.side1
        if self.side2.matches(model_id, field_name, record_id):
            return self.side2
        return None

    def other_side(
        self,
        model_id: str,
        field_name: str | None = None,
        record_id: str | None = None,
    ) -> LinkSide | None:
        """Return the side opposite the one matching the given scope."""
        if self.side1.matches(model_id, field_name, record_id):
            return self.side2
        if self.side2.matches(model_id, field_name, record_id):
            return self.side1
        return None

    def references(self, model_id: str, field_name: str | None = None, record_id: str | None = None) -> bool:
        return self.side_for(model_id, field_name, record_id) is not None

    def tombstone(self) -> "LinkDocument":
        return self.model_copy(update={"deleted": True})

    def with_identity(self, link_id: str, rev: str) -> "LinkDocument":
        return self.model_copy(update={"link_id": link_id, "rev": rev})


def make_link_document(
    model_id1: str,
    field_name1: str,
    record_id1: str,
    model_id2: str,
    field_name2: str,
    record_id2: str,
) -> LinkDocument:
    """Build a new link document pairing two records.

    The pairing is not validated; callers are responsible for passing the two
    halves of a reciprocal link field.
    """
    return LinkDocument(
        side1=LinkSide(model_id=model_id1, field_name=field_name1, record_id=record_id1),
        side2=LinkSide(model_id=model_id2, field_name=field_name2, record_id=record_id2),
    )


__all__ = ["LinkDocument", "LinkSide", "make_link_document"]
