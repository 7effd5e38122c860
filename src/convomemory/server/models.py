"""Pydantic models for HTTP API request/response."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


# =============================================================================
# Request Models
# =============================================================================

class CreateConversationRequest(BaseModel):
    """Request to create a conversation."""
    name: str = Field(default="", description="Name of the conversation")


class PutInteractionRequest(BaseModel):
    """Request to add an interaction to a conversation."""
    input: str = Field(..., description="Human input for this interaction")
    prompt: str = Field(default="", description="Prompt template used")
    response: str = Field(default="", description="GenAI response")
    agent: str = Field(default="", description="Name of the GenAI agent")
    attributes: str = Field(
        default="",
        description="Arbitrary extra data (stored as an opaque string)"
    )


# =============================================================================
# Response Models
# =============================================================================

class CreateConversationResponse(BaseModel):
    """Response from creating a conversation."""
    conversation_id: str


class ConversationResponse(BaseModel):
    """A conversation header."""
    conversation_id: str
    create_time: datetime
    last_interaction_time: datetime
    num_interactions: int
    name: str
    user: Optional[str] = None


class ListConversationsResponse(BaseModel):
    """A page of conversations.

    ``next_token`` is only set when the page was full, so there may be more.
    """
    conversations: list[ConversationResponse]
    next_token: Optional[int] = None


class PutInteractionResponse(BaseModel):
    """Response from adding an interaction."""
    interaction_id: str


class InteractionResponse(BaseModel):
    """A single interaction."""
    conversation_id: str
    interaction_id: str
    timestamp: datetime
    input: str
    prompt: str
    response: str
    agent: str
    attributes: str


class GetInteractionsResponse(BaseModel):
    """A page of interactions, most recent first."""
    interactions: list[InteractionResponse]
    next_token: Optional[int] = None


class DeleteConversationResponse(BaseModel):
    """Response from deleting a conversation."""
    success: bool
    conversation_id: str


class HealthResponse(BaseModel):
    """Health check response."""
    status: str = "ok"
    instance_id: str
    access_control: bool = False
    version: str = "0.1.0"
