"""Conversational memory HTTP server.

FastAPI-based HTTP interface for storing conversations and their
interactions.
"""

from .app import create_app, run_server

__all__ = ["create_app", "run_server"]
