"""Core data types and the document store contract."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Literal, Optional

from .schemas import (
    INTERACTIONS_AGENT_FIELD,
    INTERACTIONS_CONVO_ID_FIELD,
    INTERACTIONS_INPUT_FIELD,
    INTERACTIONS_METADATA_FIELD,
    INTERACTIONS_PROMPT_FIELD,
    INTERACTIONS_RESPONSE_FIELD,
    INTERACTIONS_TIMESTAMP_FIELD,
    META_CREATED_FIELD,
    META_ENDED_FIELD,
    META_LENGTH_FIELD,
    META_NAME_FIELD,
    META_USER_FIELD,
    format_timestamp,
    parse_timestamp,
)

SortOrder = Literal["asc", "desc"]


@dataclass(frozen=True)
class ConvoMeta:
    """Aggregate header record of a conversation.

    Attributes:
        id: Store-assigned unique identifier
        created_at: When the conversation was created
        last_hit_at: Timestamp of the most recent interaction, or
            created_at if there are none
        num_interactions: Number of interactions in the conversation
        name: User-defined name (may be empty)
        user: Owner of the conversation, None when access control is off
    """
    id: str
    created_at: datetime
    last_hit_at: datetime
    num_interactions: int = 0
    name: str = ""
    user: Optional[str] = None

    def hit(self, hit_time: datetime) -> "ConvoMeta":
        """Return a copy that accounts for one more interaction at hit_time."""
        return replace(
            self,
            last_hit_at=hit_time,
            num_interactions=self.num_interactions + 1,
        )

    def to_doc(self) -> dict:
        return {
            META_CREATED_FIELD: format_timestamp(self.created_at),
            META_ENDED_FIELD: format_timestamp(self.last_hit_at),
            META_LENGTH_FIELD: self.num_interactions,
            META_NAME_FIELD: self.name,
            META_USER_FIELD: self.user,
        }

    @classmethod
    def from_doc(cls, doc_id: str, doc: dict) -> "ConvoMeta":
        return cls(
            id=doc_id,
            created_at=parse_timestamp(doc[META_CREATED_FIELD]),
            last_hit_at=parse_timestamp(doc[META_ENDED_FIELD]),
            num_interactions=int(doc.get(META_LENGTH_FIELD) or 0),
            name=doc.get(META_NAME_FIELD) or "",
            user=doc.get(META_USER_FIELD) or None,
        )

    def __repr__(self) -> str:
        return (
            f"ConvoMeta(id={self.id}, name='{self.name}', "
            f"length={self.num_interactions}, user={self.user})"
        )


@dataclass(frozen=True)
class Interaction:
    """One recorded turn of a conversation. Immutable once stored.

    The payload fields are opaque strings; nothing here interprets them.
    """
    id: str
    timestamp: datetime
    conversation_id: str
    input: str = ""
    prompt: str = ""
    response: str = ""
    agent: str = ""
    metadata: str = ""

    def to_doc(self) -> dict:
        return {
            INTERACTIONS_CONVO_ID_FIELD: self.conversation_id,
            INTERACTIONS_TIMESTAMP_FIELD: format_timestamp(self.timestamp),
            INTERACTIONS_INPUT_FIELD: self.input,
            INTERACTIONS_PROMPT_FIELD: self.prompt,
            INTERACTIONS_RESPONSE_FIELD: self.response,
            INTERACTIONS_AGENT_FIELD: self.agent,
            INTERACTIONS_METADATA_FIELD: self.metadata,
        }

    @classmethod
    def from_doc(cls, doc_id: str, doc: dict) -> "Interaction":
        return cls(
            id=doc_id,
            timestamp=parse_timestamp(doc[INTERACTIONS_TIMESTAMP_FIELD]),
            conversation_id=doc[INTERACTIONS_CONVO_ID_FIELD],
            input=doc.get(INTERACTIONS_INPUT_FIELD) or "",
            prompt=doc.get(INTERACTIONS_PROMPT_FIELD) or "",
            response=doc.get(INTERACTIONS_RESPONSE_FIELD) or "",
            agent=doc.get(INTERACTIONS_AGENT_FIELD) or "",
            metadata=doc.get(INTERACTIONS_METADATA_FIELD) or "",
        )

    def __repr__(self) -> str:
        return (
            f"Interaction(id={self.id}, cid={self.conversation_id}, "
            f"timestamp={self.timestamp.isoformat()}, agent={self.agent})"
        )


@dataclass
class BulkDeleteResult:
    """Outcome of a bulk delete.

    Attributes:
        deleted: Number of documents removed (missing ids are not counted
            and are not failures)
        failures: Per-id error messages for items that could not be deleted
    """
    deleted: int = 0
    failures: dict[str, str] = field(default_factory=dict)

    @property
    def has_failures(self) -> bool:
        return bool(self.failures)


class IDocumentStore(ABC):
    """Searchable document collections with explicit refresh.

    Searches are eventually consistent: a write is guaranteed to be visible
    to ``search`` only after ``refresh`` of its collection completes. ``get``
    by id is always real-time. Every method may raise ``StoreFailureError``.
    """

    @abstractmethod
    async def has_collection(self, name: str) -> bool:
        """Whether the collection exists."""
        pass

    @abstractmethod
    async def ensure_collection(self, name: str, mapping: dict[str, str]) -> bool:
        """Create the collection if absent.

        Returns:
            True if this call created it, False if it already existed.

        Raises:
            CollectionExistsError: A concurrent creator won the race.
        """
        pass

    @abstractmethod
    async def get(self, name: str, doc_id: str) -> Optional[dict]:
        """Get a document's fields by id, or None when missing."""
        pass

    @abstractmethod
    async def index(self, name: str, fields: dict) -> str:
        """Insert a new document and return its store-assigned id."""
        pass

    @abstractmethod
    async def update(self, name: str, doc_id: str, fields: dict) -> None:
        """Overwrite the given fields of an existing document.

        Raises:
            DocumentNotFoundError: No document with this id.
        """
        pass

    @abstractmethod
    async def delete(self, name: str, doc_id: str) -> bool:
        """Delete a document. Returns False when it was not found."""
        pass

    @abstractmethod
    async def bulk_delete(self, name: str, doc_ids: list[str]) -> BulkDeleteResult:
        """Delete many documents, reporting per-item failures."""
        pass

    @abstractmethod
    async def search(
        self,
        name: str,
        filters: Optional[dict] = None,
        sort_field: Optional[str] = None,
        sort_order: SortOrder = "desc",
        from_: int = 0,
        size: int = 10,
    ) -> list[dict]:
        """Search a collection.

        Args:
            name: Collection to search
            filters: Exact-match field filters (all must match)
            sort_field: Field to sort by, store order if None
            sort_order: "asc" or "desc"
            from_: Number of hits to skip
            size: Maximum number of hits

        Returns:
            Documents with their id under the "id" key.

        Raises:
            CollectionNotFoundError: The collection does not exist.
        """
        pass

    @abstractmethod
    async def refresh(self, name: str) -> None:
        """Make all completed writes to the collection searchable."""
        pass
