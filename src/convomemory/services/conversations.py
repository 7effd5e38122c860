"""Conversation metadata collection.

Owns the lifecycle of ``ConvoMeta`` documents: creation, hits from new
interactions, listing by recency, deletion and ownership checks.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from ..context import RequestContext, owner_matches
from ..errors import (
    AccessDeniedError,
    CollectionExistsError,
    CollectionNotFoundError,
    InvalidArgumentError,
    StoreFailureError,
)
from ..interfaces import ConvoMeta, IDocumentStore
from ..schemas import (
    META_COLLECTION,
    META_ENDED_FIELD,
    META_MAPPING,
    META_USER_FIELD,
    utc_now,
)

logger = logging.getLogger(__name__)


class ConversationCollection:
    """Stores one ``ConvoMeta`` document per conversation.

    Usage:
        conversations = ConversationCollection(store)
        cid = await conversations.create(ctx, "trip planning")
        await conversations.hit(ctx, cid, utc_now())
        recent = await conversations.list(ctx, 0, 10)

    ``hit`` is an unguarded read-modify-write. Two concurrent hits on the
    same conversation can both read the same count and one increment is lost.
    """

    def __init__(self, store: IDocumentStore, name: str = META_COLLECTION):
        self.store = store
        self.name = name

    async def ensure_schema(self) -> bool:
        """Create the collection if it does not exist yet.

        Returns True once the collection exists, whoever created it.
        """
        try:
            created = await self.store.ensure_collection(self.name, META_MAPPING)
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

    async def create(self, ctx: RequestContext, name: str = "") -> str:
        """Add a new, empty conversation owned by the requester.

        Returns:
            The id of the new conversation.
        """
        await self.ensure_schema()
        now = utc_now()
        meta = ConvoMeta(
            id="",
            created_at=now,
            last_hit_at=now,
            num_interactions=0,
            name=name or "",
            user=ctx.user,
        )
        try:
            return await self.store.index(self.name, meta.to_doc())
        except StoreFailureError:
            logger.exception("failed to create conversation")
            raise

    async def get(self, ctx: RequestContext, conversation_id: str) -> Optional[ConvoMeta]:
        """Get a conversation by id, or None if it does not exist."""
        if not await self.store.has_collection(self.name):
            return None
        doc = await self.store.get(self.name, conversation_id)
        if doc is None:
            return None
        meta = ConvoMeta.from_doc(conversation_id, doc)
        if not owner_matches(ctx, meta.user):
            raise AccessDeniedError(ctx.user, conversation_id)
        return meta

    async def list(
        self, ctx: RequestContext, from_: int = 0, limit: int = 10
    ) -> list[ConvoMeta]:
        """List conversations, most recently hit first.

        Only the requester's conversations are listed when access control is
        enabled. A missing collection yields an empty list.
        """
        if limit == 0:
            raise InvalidArgumentError("Can't list 0 conversations")
        if not await self.store.has_collection(self.name):
            return []

        filters = {META_USER_FIELD: ctx.user} if ctx.access_control_enabled else None
        try:
            docs = await self.store.search(
                self.name,
                filters=filters,
                sort_field=META_ENDED_FIELD,
                sort_order="desc",
                from_=from_,
                size=limit,
            )
        except CollectionNotFoundError:
            return []
        except StoreFailureError:
            logger.exception("failed to list conversations")
            raise
        return [ConvoMeta.from_doc(doc["id"], doc) for doc in docs]

    async def hit(
        self, ctx: RequestContext, conversation_id: str, hit_time: datetime
    ) -> bool:
        """Record one more interaction on a conversation.

        Returns:
            False if the conversation does not exist, True once updated.

        Raises:
            AccessDeniedError: The requester does not own the conversation.
        """
        try:
            doc = await self.store.get(self.name, conversation_id)
        except CollectionNotFoundError:
            return False
        except StoreFailureError:
            logger.exception("failure touching conversation")
            raise
        if doc is None:
            return False

        meta = ConvoMeta.from_doc(conversation_id, doc)
        if not owner_matches(ctx, meta.user):
            raise AccessDeniedError(ctx.user, conversation_id)

        try:
            await self.store.update(self.name, conversation_id, meta.hit(hit_time).to_doc())
        except StoreFailureError:
            logger.exception("failure touching conversation")
            raise
        return True

    async def check_access(self, ctx: RequestContext, conversation_id: str) -> bool:
        """Whether the requester may act on this conversation.

        Access is granted when access control is disabled, when there is
        nothing to protect (no collection or no such conversation), or when
        the requester owns the conversation.
        """
        if not ctx.access_control_enabled:
            return True
        if not await self.store.has_collection(self.name):
            return True
        doc = await self.store.get(self.name, conversation_id)
        if doc is None:
            return True
        return owner_matches(ctx, ConvoMeta.from_doc(conversation_id, doc).user)

    async def delete(self, ctx: RequestContext, conversation_id: str) -> bool:
        """Delete a conversation's metadata document.

        A conversation that does not exist counts as deleted.

        Raises:
            AccessDeniedError: The requester does not own the conversation.
        """
        if not await self.store.has_collection(self.name):
            return True
        if not await self.check_access(ctx, conversation_id):
            raise AccessDeniedError(ctx.user, conversation_id)
        try:
            await self.store.delete(self.name, conversation_id)
        except CollectionNotFoundError:
            return True
        except StoreFailureError:
            logger.exception(f"failure deleting conversation {conversation_id}")
            raise
        return True
