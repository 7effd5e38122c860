"""Conversational memory coordinator - main API for callers."""

import logging
import os
from pathlib import Path
from typing import Optional

from ..context import RequestContext
from ..errors import AccessDeniedError
from ..interfaces import ConvoMeta, IDocumentStore, Interaction
from ..results import attempt
from ..schemas import utc_now
from .conversations import ConversationCollection
from .interactions import InteractionCollection

logger = logging.getLogger(__name__)


class MemoryCoordinator:
    """Keeps conversations and their interactions in step.

    Usage:
        memory = MemoryCoordinator(store)

        cid = await memory.create_conversation(ctx, "support chat")
        await memory.put_interaction(ctx, cid, "hi", "prompt", "hello!", "bot", "{}")
        turns = await memory.get_interactions(ctx, cid, 0, 10)
        await memory.delete_conversation(ctx, cid)

    There are no cross-document transactions. Adding an interaction hits
    the conversation first and then stores the interaction; deleting a
    conversation removes its metadata first and then cascades into its
    interactions.
    """

    def __init__(
        self,
        store: IDocumentStore,
        conversations: Optional[ConversationCollection] = None,
        interactions: Optional[InteractionCollection] = None,
    ):
        self.store = store
        self.conversations = conversations or ConversationCollection(store)
        self.interactions = interactions or InteractionCollection(store)

    async def create_conversation(self, ctx: RequestContext, name: str = "") -> str:
        """Create a new conversation and return its id."""
        return await self.conversations.create(ctx, name)

    async def put_interaction(
        self,
        ctx: RequestContext,
        conversation_id: str,
        input: str,
        prompt: str,
        response: str,
        agent: str,
        metadata: str,
    ) -> str:
        """Add an interaction to a conversation and return its id.

        The conversation's metadata is updated on a best-effort basis: if the
        hit fails (or is denied) the interaction is still stored.
        """
        timestamp = utc_now()
        hit = await attempt(self.conversations.hit(ctx, conversation_id, timestamp))
        if not hit.ok:
            logger.warning(
                f"Could not update conversation {conversation_id} "
                f"({hit.kind.value}): {hit.error}"
            )
        return await self.interactions.create(
            conversation_id, input, prompt, response, agent, metadata, timestamp
        )

    async def get_interactions(
        self,
        ctx: RequestContext,
        conversation_id: str,
        from_: int = 0,
        limit: int = 10,
    ) -> list[Interaction]:
        """Get a page of a conversation's interactions, most recent first.

        Ownership is not checked on this path; only the conversation header
        is scoped to its owner.
        """
        await self.interactions.refresh()
        return await self.interactions.list(conversation_id, from_, limit)

    async def get_conversation(
        self, ctx: RequestContext, conversation_id: str
    ) -> Optional[ConvoMeta]:
        return await self.conversations.get(ctx, conversation_id)

    async def list_conversations(
        self, ctx: RequestContext, from_: int = 0, limit: int = 10
    ) -> list[ConvoMeta]:
        """List conversation headers, most recently active first."""
        await self.conversations.refresh()
        return await self.conversations.list(ctx, from_, limit)

    async def delete_conversation(self, ctx: RequestContext, conversation_id: str) -> bool:
        """Delete a conversation and all of its interactions.

        Returns True only if both the metadata and every interaction were
        removed. If the metadata goes but the cascade fails, the remaining
        interactions are orphaned; calling this again cleans them up.
        """
        if not await self.conversations.check_access(ctx, conversation_id):
            raise AccessDeniedError(ctx.user, conversation_id)

        meta_deleted = await self.conversations.delete(ctx, conversation_id)
        cascaded = await self.interactions.delete_all_for_conversation(conversation_id)
        if meta_deleted and not cascaded:
            logger.warning(
                f"Conversation {conversation_id} deleted but some of its "
                f"interactions were not; they are orphaned until the delete is retried"
            )
        return meta_deleted and cascaded


def create_memory_coordinator(
    db_provider: str = "lancedb",
    db_path: Optional[str] = None,
    db_uri: Optional[str] = None,
    delete_page_size: int = InteractionCollection.DELETE_PAGE_SIZE,
) -> MemoryCoordinator:
    """Factory function to create a coordinator with sensible defaults.

    Args:
        db_provider: "lancedb" or "memory".
        db_path: Path for LanceDB persistent storage. If None (and no
            db_uri), uses in-memory.
        db_uri: LanceDB Cloud URI. API key is read from LANCEDB_API_KEY.
        delete_page_size: Page size used to drain a conversation on delete.

    Returns:
        Configured MemoryCoordinator ready for use.

    Warning:
        If LanceDB is requested but not installed, falls back to in-memory
        storage. This means data will NOT persist across restarts.
    """
    from .document_store import InMemoryDocumentStore, LanceDBDocumentStore

    store: IDocumentStore
    if db_provider == "lancedb" and (db_path or db_uri):
        try:
            import lancedb  # noqa: F401
            store = LanceDBDocumentStore(
                db_path=Path(db_path) if db_path else None,
                db_uri=db_uri,
                api_key=os.environ.get("LANCEDB_API_KEY"),
            )
        except ImportError:
            logger.warning(
                "LanceDB not installed. Falling back to in-memory storage. "
                "Conversations will NOT persist across restarts. "
                "Install with: pip install lancedb"
            )
            store = InMemoryDocumentStore()
    else:
        store = InMemoryDocumentStore()

    return MemoryCoordinator(
        store=store,
        interactions=InteractionCollection(store, delete_page_size=delete_page_size),
    )
