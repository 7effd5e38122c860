"""Testing utilities for conversational memory."""

from .mocks import FaultyDocumentStore

__all__ = [
    "FaultyDocumentStore",
]
