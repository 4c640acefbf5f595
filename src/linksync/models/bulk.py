from pydantic import BaseModel

from linksync.models.link import LinkDocument


class BulkResult(BaseModel):
    """Outcome of one item in a bulk write."""

    link_id: str
    rev: str | None = None
    ok: bool = True
    error: str | None = None

    model_config = {"frozen": True}


class BulkFailure(BaseModel):
    """A link document the store refused, paired with the reason."""

    link: LinkDocument
    error: str

    model_config = {"frozen": True}

    @property
    def is_conflict(self) -> bool:
        return self.error == "conflict"


__all__ = ["BulkFailure", "BulkResult"]
