"""Error types raised while keeping link documents in sync.

Store failures propagate to the caller unchanged in meaning: nothing here is
swallowed or repaired implicitly.
"""

from linksync.models.bulk import BulkFailure


class LinkSyncError(RuntimeError):
    pass


class DocumentNotFoundError(LinkSyncError):
    """A model, record or link document id does not exist in the store."""

    def __init__(self, doc_id: str, kind: str = "document") -> None:
        self.doc_id = doc_id
        self.kind = kind
        super().__init__(f"{kind} not found: {doc_id}")


class DocumentConflictError(LinkSyncError):
    """A write carried a revision that no longer matches the stored one."""

    def __init__(self, doc_id: str, expected_rev: str | None, actual_rev: str | None) -> None:
        self.doc_id = doc_id
        self.expected_rev = expected_rev
        self.actual_rev = actual_rev
        super().__init__(
            f"revision conflict (doc_id={doc_id}, expected_rev={expected_rev}, actual_rev={actual_rev})"
        )


class MalformedSchemaError(LinkSyncError):
    """A stored model's schema cannot be interpreted, e.g. a link field without its remote side."""

    def __init__(self, model_id: str, reason: str) -> None:
        self.model_id = model_id
        self.reason = reason
        super().__init__(f"malformed schema for model {model_id}: {reason}")


class PartialBulkWriteError(LinkSyncError):
    """Some items of a bulk write failed; the others remain applied."""

    def __init__(self, failures: list[BulkFailure], applied: int) -> None:
        self.failures = failures
        self.applied = applied
        super().__init__(f"bulk write failed for {len(failures)} link document(s), {applied} applied")

    @property
    def retryable(self) -> bool:
        return bool(self.failures) and all(failure.is_conflict for failure in self.failures)


class SchemaPropagationError(LinkSyncError):
    """Reciprocal schema updates failed for one or more link fields.

    ``failures`` maps each failing field name to its own error.
    """

    def __init__(self, model_id: str, failures: dict[str, Exception]) -> None:
        self.model_id = model_id
        self.failures = failures
        detail = ", ".join(f"{name}: {error}" for name, error in failures.items())
        super().__init__(f"reciprocal schema update failed for model {model_id} ({detail})")

    @property
    def retryable(self) -> bool:
        return bool(self.failures) and all(
            isinstance(error, DocumentConflictError) for error in self.failures.values()
        )
