"""Interactions collection.

Owns ``Interaction`` documents: creation, recency-ordered paging, draining
a whole conversation and the bulk delete used by conversation deletion.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import AsyncIterator, Optional

from ..errors import (
    CollectionExistsError,
    CollectionNotFoundError,
    InvalidArgumentError,
    StoreFailureError,
)
from ..interfaces import IDocumentStore, Interaction
from ..schemas import (
    INTERACTIONS_COLLECTION,
    INTERACTIONS_CONVO_ID_FIELD,
    INTERACTIONS_MAPPING,
    INTERACTIONS_TIMESTAMP_FIELD,
    utc_now,
)

logger = logging.getLogger(__name__)


class InteractionCollection:
    """Stores one document per interaction, linked by conversation id."""

    # Page size used when draining a conversation for deletion
    DELETE_PAGE_SIZE = 30

    def __init__(
        self,
        store: IDocumentStore,
        name: str = INTERACTIONS_COLLECTION,
        delete_page_size: int = DELETE_PAGE_SIZE,
    ):
        if delete_page_size <= 0:
            raise InvalidArgumentError("delete_page_size must be positive")
        self.store = store
        self.name = name
        self.delete_page_size = delete_page_size

    async def ensure_schema(self) -> bool:
        """Create the collection if it does not exist yet."""
        try:
            created = await self.store.ensure_collection(self.name, INTERACTIONS_MAPPING)
        except CollectionExistsError:
            return True
        except StoreFailureError:
            logger.error(f"failed to create collection [{self.name}]")
            raise
        if created:
            logger.info(f"created collection [{self.name}]")
        return True

    async def refresh(self) -> None:
        """Make completed writes visible to ``list``. No-op before creation."""
        if await self.store.has_collection(self.name):
            await self.store.refresh(self.name)

    async def create(
        self,
        conversation_id: str,
        input: str,
        prompt: str,
        response: str,
        agent: str,
        metadata: str,
        timestamp: Optional[datetime] = None,
    ) -> str:
        """Add an interaction to a conversation.

        Args:
            conversation_id: Conversation the interaction belongs to
            input: Human input
            prompt: Prompt template used
            response: GenAI response
            agent: Name of the GenAI agent
            metadata: Arbitrary extra payload, stored as is
            timestamp: When the interaction happened (default: now)

        Returns:
            The id of the new interaction.
        """
        await self.ensure_schema()
        interaction = Interaction(
            id="",
            timestamp=timestamp or utc_now(),
            conversation_id=conversation_id,
            input=input,
            prompt=prompt,
            response=response,
            agent=agent,
            metadata=metadata,
        )
        try:
            return await self.store.index(self.name, interaction.to_doc())
        except StoreFailureError:
            logger.exception(f"failed to create interaction in conversation {conversation_id}")
            raise

    async def list(
        self, conversation_id: str, from_: int = 0, limit: int = 10
    ) -> list[Interaction]:
        """Get one page of a conversation's interactions, most recent first."""
        if limit <= 0:
            raise InvalidArgumentError("must retrieve positive interactions")
        if not await self.store.has_collection(self.name):
            return []
        try:
            docs = await self.store.search(
                self.name,
                filters={INTERACTIONS_CONVO_ID_FIELD: conversation_id},
                sort_field=INTERACTIONS_TIMESTAMP_FIELD,
                sort_order="desc",
                from_=from_,
                size=limit,
            )
        except CollectionNotFoundError:
            return []
        return [Interaction.from_doc(doc["id"], doc) for doc in docs]

    async def iter_pages(
        self, conversation_id: str, page_size: int, start: int = 0
    ) -> AsyncIterator[list[Interaction]]:
        """Yield successive pages of a conversation's interactions.

        Each page is requested only after the previous one arrived, since
        offsets shift if pages are read out of order. Iteration stops after
        the first page shorter than ``page_size``. Resume an interrupted
        drain by passing the next offset as ``start``.
        """
        if page_size <= 0:
            raise InvalidArgumentError("page_size must be positive")
        offset = start
        while True:
            page = await self.list(conversation_id, offset, page_size)
            yield page
            if len(page) < page_size:
                return
            offset += page_size

    async def list_all(self, conversation_id: str, page_size: int) -> list[Interaction]:
        """Get every interaction of a conversation, most recent first."""
        if page_size <= 0:
            raise InvalidArgumentError("page_size must be positive")
        result: list[Interaction] = []
        async for page in self.iter_pages(conversation_id, page_size):
            result.extend(page)
        return result

    async def delete_all_for_conversation(self, conversation_id: str) -> bool:
        """Delete every interaction of a conversation in one bulk request.

        Returns False if any item failed to delete. Running it again is safe:
        ids that are already gone are not failures.
        """
        if not await self.store.has_collection(self.name):
            return True
        try:
            # Interactions written just before the delete must be drained too
            await self.store.refresh(self.name)
            interactions = await self.list_all(conversation_id, self.delete_page_size)
            if not interactions:
                return True
            result = await self.store.bulk_delete(
                self.name, [interaction.id for interaction in interactions]
            )
        except StoreFailureError:
            logger.exception(
                f"Failure while deleting interactions associated with conversation id={conversation_id}"
            )
            raise

        if result.has_failures:
            logger.error(
                "Failed to delete %d of %d interactions of conversation %s",
                len(result.failures),
                len(interactions),
                conversation_id,
            )
            return False
        return True
