"""Lookup of link documents from either side of a relationship."""

import structlog
from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from linksync.models.link import LinkDocument
from linksync.models.tables import LinkRow
from linksync.services.document_store import row_to_link


class LinkQuery:
    """Finds stored link documents touching a model, field or record.

    A link matches when either of its sides matches the scope, so the same
    document is found from both records it joins.
    """

    def __init__(
        self,
        engine: AsyncEngine,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        self._engine = engine
        self._logger = logger or structlog.get_logger(__name__)

    async def get_link_documents(
        self,
        model_id: str,
        field_name: str | None = None,
        record_id: str | None = None,
    ) -> list[LinkDocument]:
        """Return link documents with a side in the given scope.

        Args:
            model_id: Model one side of the link must belong to.
            field_name: Field on that side, or None for any field.
            record_id: Record on that side, or None for any record.

        Returns:
            Matching link documents ordered by id.
        """
        statement = (
            select(LinkRow)
            .where(
                or_(
                    self._side_clause(1, model_id, field_name, record_id),
                    self._side_clause(2, model_id, field_name, record_id),
                )
            )
            .order_by(LinkRow.link_id)
        )
        async with AsyncSession(self._engine) as session:
            result = await session.execute(statement)
            links = [row_to_link(row) for row in result.scalars().all()]

        self._logger.debug(
            "link_documents_queried",
            model_id=model_id,
            field_name=field_name,
            record_id=record_id,
            count=len(links),
        )
        return links

    def _side_clause(
        self,
        side: int,
        model_id: str,
        field_name: str | None,
        record_id: str | None,
    ):
        columns = {
            1: (LinkRow.side1_model_id, LinkRow.side1_field_name, LinkRow.side1_record_id),
            2: (LinkRow.side2_model_id, LinkRow.side2_field_name, LinkRow.side2_record_id),
        }
        model_column, field_column, record_column = columns[side]
        conditions = [model_column == model_id]
        if field_name is not None:
            conditions.append(field_column == field_name)
        if record_id is not None:
            conditions.append(record_column == record_id)
        return and_(*conditions)
