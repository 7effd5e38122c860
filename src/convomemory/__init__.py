"""Conversational memory: conversations and their interactions for GenAI apps."""

__version__ = "0.1.0"
