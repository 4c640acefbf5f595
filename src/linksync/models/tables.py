"""SQLModel table definitions for document persistence.

Table models are kept apart from the frozen Pydantic domain models: SQLModel
needs mutable instances for session updates, and the domain models must stay
immutable and strictly validated.

Models and records are stored as JSON bodies keyed by their id. Link documents
get one column per side attribute so the link query can match either side
with plain indexed comparisons.
"""

from typing import Any

from sqlalchemy import JSON
from sqlmodel import Field, SQLModel


class ModelRow(SQLModel, table=True):
    """Stored model (schema) document."""

    __tablename__ = "models"

    doc_id: str = Field(primary_key=True)
    rev: str
    name: str
    body: dict[str, Any] = Field(default_factory=dict, sa_type=JSON)


class RecordRow(SQLModel, table=True):
    """Stored record document."""

    __tablename__ = "records"

    doc_id: str = Field(primary_key=True)
    rev: str
    owner_model_id: str = Field(index=True)
    body: dict[str, Any] = Field(default_factory=dict, sa_type=JSON)


class LinkRow(SQLModel, table=True):
    """Stored link document, one column per side attribute."""

    __tablename__ = "links"

    link_id: str = Field(primary_key=True)
    rev: str
    schema_version: str
    side1_model_id: str = Field(index=True)
    side1_field_name: str
    side1_record_id: str = Field(index=True)
    side2_model_id: str = Field(index=True)
    side2_field_name: str
    side2_record_id: str = Field(index=True)
