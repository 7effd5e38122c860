"""API route handlers."""

from typing import NoReturn, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from ..context import ANONYMOUS, RequestContext
from ..errors import ConvoMemoryError, ErrorKind
from ..interfaces import ConvoMeta, Interaction
from ..services import MemoryCoordinator
from .models import (
    ConversationResponse,
    CreateConversationRequest,
    CreateConversationResponse,
    DeleteConversationResponse,
    GetInteractionsResponse,
    HealthResponse,
    InteractionResponse,
    ListConversationsResponse,
    PutInteractionRequest,
    PutInteractionResponse,
)

router = APIRouter(prefix="/v1", tags=["memory"])

_STATUS_BY_KIND = {
    ErrorKind.INVALID_ARGUMENT: 400,
    ErrorKind.ACCESS_DENIED: 403,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.NOT_INITIALIZED: 404,
    ErrorKind.ALREADY_EXISTS: 409,
    ErrorKind.STORE_FAILURE: 500,
}


def get_coordinator() -> MemoryCoordinator:
    """Dependency injection for the memory coordinator.

    This is set by the app during startup.
    """
    from .app import _coordinator
    if _coordinator is None:
        raise HTTPException(status_code=503, detail="Service not initialized")
    return _coordinator


def get_instance_id() -> str:
    """Get the current instance ID."""
    from .app import _instance_id
    return _instance_id or "unknown"


def get_request_context(request: Request) -> RequestContext:
    """Build the requester context from the configured identity header."""
    from .app import _access_control
    if _access_control is None or not _access_control.enabled:
        return ANONYMOUS
    user = request.headers.get(_access_control.user_header)
    if not user:
        raise HTTPException(
            status_code=401,
            detail=f"Missing {_access_control.user_header} header",
        )
    return RequestContext(user=user)


def get_default_max_results() -> int:
    from .app import _default_max_results
    return _default_max_results


def _raise_http(error: ConvoMemoryError) -> NoReturn:
    """Map a memory error onto the matching HTTP status."""
    raise HTTPException(
        status_code=_STATUS_BY_KIND.get(error.kind, 500),
        detail=str(error),
    ) from error


def _next_token(from_: int, max_results: int, returned: int) -> Optional[int]:
    """A full page means there may be more; the last page can be full too."""
    return from_ + max_results if returned == max_results else None


def _conversation_to_response(meta: ConvoMeta) -> ConversationResponse:
    return ConversationResponse(
        conversation_id=meta.id,
        create_time=meta.created_at,
        last_interaction_time=meta.last_hit_at,
        num_interactions=meta.num_interactions,
        name=meta.name,
        user=meta.user,
    )


def _interaction_to_response(interaction: Interaction) -> InteractionResponse:
    return InteractionResponse(
        conversation_id=interaction.conversation_id,
        interaction_id=interaction.id,
        timestamp=interaction.timestamp,
        input=interaction.input,
        prompt=interaction.prompt,
        response=interaction.response,
        agent=interaction.agent,
        attributes=interaction.metadata,
    )


@router.post("/memory", response_model=CreateConversationResponse)
async def create_conversation(
    request: Optional[CreateConversationRequest] = None,
    coordinator: MemoryCoordinator = Depends(get_coordinator),
    ctx: RequestContext = Depends(get_request_context),
) -> CreateConversationResponse:
    """Create a new conversation."""
    name = request.name if request else ""
    try:
        conversation_id = await coordinator.create_conversation(ctx, name)
    except ConvoMemoryError as e:
        _raise_http(e)
    return CreateConversationResponse(conversation_id=conversation_id)


@router.get("/memory", response_model=ListConversationsResponse, response_model_exclude_none=True)
async def list_conversations(
    max_results: Optional[int] = Query(default=None, ge=1),
    next_token: int = Query(default=0, ge=0),
    coordinator: MemoryCoordinator = Depends(get_coordinator),
    ctx: RequestContext = Depends(get_request_context),
    default_max_results: int = Depends(get_default_max_results),
) -> ListConversationsResponse:
    """List conversations, most recently active first."""
    limit = max_results or default_max_results
    try:
        conversations = await coordinator.list_conversations(ctx, next_token, limit)
    except ConvoMemoryError as e:
        _raise_http(e)
    return ListConversationsResponse(
        conversations=[_conversation_to_response(c) for c in conversations],
        next_token=_next_token(next_token, limit, len(conversations)),
    )


@router.post("/memory/{conversation_id}", response_model=PutInteractionResponse)
async def put_interaction(
    conversation_id: str,
    request: PutInteractionRequest,
    coordinator: MemoryCoordinator = Depends(get_coordinator),
    ctx: RequestContext = Depends(get_request_context),
) -> PutInteractionResponse:
    """Add an interaction to a conversation."""
    try:
        interaction_id = await coordinator.put_interaction(
            ctx,
            conversation_id,
            input=request.input,
            prompt=request.prompt,
            response=request.response,
            agent=request.agent,
            metadata=request.attributes,
        )
    except ConvoMemoryError as e:
        _raise_http(e)
    return PutInteractionResponse(interaction_id=interaction_id)


@router.get(
    "/memory/{conversation_id}",
    response_model=GetInteractionsResponse,
    response_model_exclude_none=True,
)
async def get_interactions(
    conversation_id: str,
    max_results: Optional[int] = Query(default=None, ge=1),
    next_token: int = Query(default=0, ge=0),
    coordinator: MemoryCoordinator = Depends(get_coordinator),
    ctx: RequestContext = Depends(get_request_context),
    default_max_results: int = Depends(get_default_max_results),
) -> GetInteractionsResponse:
    """Get a page of a conversation's interactions, most recent first."""
    limit = max_results or default_max_results
    try:
        interactions = await coordinator.get_interactions(ctx, conversation_id, next_token, limit)
    except ConvoMemoryError as e:
        _raise_http(e)
    return GetInteractionsResponse(
        interactions=[_interaction_to_response(i) for i in interactions],
        next_token=_next_token(next_token, limit, len(interactions)),
    )


@router.delete("/memory/{conversation_id}", response_model=DeleteConversationResponse)
async def delete_conversation(
    conversation_id: str,
    coordinator: MemoryCoordinator = Depends(get_coordinator),
    ctx: RequestContext = Depends(get_request_context),
) -> DeleteConversationResponse:
    """Delete a conversation and all of its interactions."""
    try:
        success = await coordinator.delete_conversation(ctx, conversation_id)
    except ConvoMemoryError as e:
        _raise_http(e)
    return DeleteConversationResponse(success=success, conversation_id=conversation_id)


@router.get("/health", response_model=HealthResponse)
async def health(
    coordinator: MemoryCoordinator = Depends(get_coordinator),
    instance_id: str = Depends(get_instance_id),
) -> HealthResponse:
    """Health check endpoint."""
    from .app import _access_control
    return HealthResponse(
        status="ok",
        instance_id=instance_id,
        access_control=bool(_access_control and _access_control.enabled),
    )
