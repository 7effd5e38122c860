"""Conversational memory service implementations."""

from .document_store import InMemoryDocumentStore, LanceDBDocumentStore
from .conversations import ConversationCollection
from .interactions import InteractionCollection
from .memory import MemoryCoordinator, create_memory_coordinator

__all__ = [
    "InMemoryDocumentStore",
    "LanceDBDocumentStore",
    "ConversationCollection",
    "InteractionCollection",
    "MemoryCoordinator",
    "create_memory_coordinator",
]
