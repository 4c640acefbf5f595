from typing import Any, ClassVar

from pydantic import Field, field_validator

from linksync.models.base import RecordModel, ensure_identifier, ensure_values_dict


class Record(RecordModel):
    """A stored record belonging to exactly one model."""

    SCHEMA_VERSION: ClassVar[str] = "record.v1"

    schema_version: str = Field(default=SCHEMA_VERSION)
    record_id: str = Field(alias="_id")
    rev: str | None = Field(default=None, alias="_rev")
    model_id: str
    values: dict[str, Any] = Field(default_factory=dict)

    @field_validator("record_id", "model_id", mode="before")
    @classmethod
    def _normalize_ids(cls, value: Any) -> str:
        return ensure_identifier(value, "identifier")

    @field_validator("values", mode="before")
    @classmethod
    def _normalize_values(cls, value: Any) -> dict[str, Any]:
        return ensure_values_dict(value)

    def link_ids(self, field_name: str) -> list[str]:
        """Return the ids referenced by a link field, deduplicated.

        An absent or null value means no links. First-seen order is kept so
        the result is stable for logging; callers compare it as a set.

        Raises:
            ValueError: If the value is neither an id nor a collection of ids.
        """
        value = self.values.get(field_name)
        if value is None:
            return []
        if isinstance(value, str):
            value = [value]
        elif not isinstance(value, (list, tuple, set)):
            raise ValueError(f"link field {field_name!r} must hold a list of record ids, got {type(value).__name__}")
        seen: dict[str, None] = {}
        for item in value:
            if item is None:
                continue
            seen.setdefault(str(item), None)
        return list(seen)

    def with_rev(self, rev: str) -> "Record":
        return self.model_copy(update={"rev": rev})


__all__ = ["Record"]
