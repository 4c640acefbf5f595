from linksync.models.bulk import BulkFailure, BulkResult
from linksync.models.enums import FieldKind, LinkEventKind
from linksync.models.event import LinkEvent, LinkEventData
from linksync.models.fields import FieldDefinition, LinkField, ScalarField
from linksync.models.link import LinkDocument, LinkSide, make_link_document
from linksync.models.model import Model
from linksync.models.record import Record

__all__ = [
    "BulkFailure",
    "BulkResult",
    "FieldDefinition",
    "FieldKind",
    "LinkDocument",
    "LinkEvent",
    "LinkEventData",
    "LinkEventKind",
    "LinkField",
    "LinkSide",
    "Model",
    "Record",
    "ScalarField",
    "make_link_document",
]
