"""Error taxonomy for conversational memory.

Every failure raised by the core carries an ``ErrorKind`` so the HTTP layer
(and ``results.Result``) can map it without inspecting exception types.
"""

from enum import Enum


class ErrorKind(Enum):
    """Kind of failure surfaced by the memory core."""
    NOT_INITIALIZED = "not_initialized"  # Backing collection absent
    NOT_FOUND = "not_found"              # Document id absent
    ACCESS_DENIED = "access_denied"      # Ownership mismatch
    STORE_FAILURE = "store_failure"      # Underlying I/O or query error
    INVALID_ARGUMENT = "invalid_argument"
    ALREADY_EXISTS = "already_exists"    # Racing collection creator

    @property
    def retriable(self) -> bool:
        """Whether retrying the same request can succeed."""
        return self is ErrorKind.STORE_FAILURE


class ConvoMemoryError(Exception):
    """Base class for all conversational memory errors."""
    kind: ErrorKind = ErrorKind.STORE_FAILURE


class NotInitializedError(ConvoMemoryError):
    """A backing collection does not exist yet."""
    kind = ErrorKind.NOT_INITIALIZED


class CollectionNotFoundError(NotInitializedError):
    """Raised by a document store when a collection is missing."""

    def __init__(self, collection: str):
        super().__init__(f"Collection [{collection}] does not exist")
        self.collection = collection


class CollectionExistsError(ConvoMemoryError):
    """Raised by a document store when another creator won the race."""
    kind = ErrorKind.ALREADY_EXISTS

    def __init__(self, collection: str):
        super().__init__(f"Collection [{collection}] already exists")
        self.collection = collection


class NotFoundError(ConvoMemoryError):
    """A document does not exist."""
    kind = ErrorKind.NOT_FOUND


class DocumentNotFoundError(NotFoundError):
    """Raised by a document store when an id is missing."""

    def __init__(self, collection: str, doc_id: str):
        super().__init__(f"Document {doc_id} not found in [{collection}]")
        self.collection = collection
        self.doc_id = doc_id


class AccessDeniedError(ConvoMemoryError):
    """The requester does not own the conversation."""
    kind = ErrorKind.ACCESS_DENIED

    def __init__(self, user: str, conversation_id: str):
        super().__init__(
            f"User [{user}] does not have access to conversation {conversation_id}"
        )
        self.user = user
        self.conversation_id = conversation_id


class StoreFailureError(ConvoMemoryError):
    """Any underlying store I/O or query failure."""
    kind = ErrorKind.STORE_FAILURE


class InvalidArgumentError(ConvoMemoryError, ValueError):
    """A caller passed an argument the core cannot act on."""
    kind = ErrorKind.INVALID_ARGUMENT
