import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request, Response, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from creatorhub.config import settings
from creatorhub.conversations import build_conversations
from creatorhub.errors import MessagingError, NotFoundError, StorageError, ValidationError, AuthorizationError
from creatorhub.identity import get_current_user
from creatorhub.logging_utils import setup_logging, RequestLoggingMiddleware, log_message_event
from creatorhub.metrics import (
    get_metrics,
    get_metrics_content_type,
    record_mark_read_outcome,
    record_send_outcome,
)
from creatorhub.polling import invalidations_after_send, poll_interval, polling_tasks
from creatorhub.read_state import open_thread
from creatorhub.schemas import (
    ConversationResponse,
    ErrorResponse,
    HealthResponse,
    LastMessage,
    MessageResponse,
    MessageWithUsersResponse,
    PollingResponse,
    SendMessageRequest,
    UnreadCountResponse,
    UserRef,
)
from creatorhub.storage import (
    check_db_health,
    count_unread,
    get_db,
    init_db,
    list_for_user,
    mark_read,
    send_message,
)


# Setup structured JSON logging
setup_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for startup and shutdown events.
    - Startup: Initialize database and create tables
    """
    init_db()
    yield


app = FastAPI(
    title="Creatorhub Messaging API",
    description="Direct messages between creators and admins",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(RequestLoggingMiddleware)


ERROR_RESPONSES = {
    401: {"model": ErrorResponse, "description": "No identity forwarded"},
    503: {"model": ErrorResponse, "description": "Storage unavailable"},
}


@app.exception_handler(MessagingError)
async def messaging_error_handler(request: Request, exc: MessagingError) -> JSONResponse:
    """Render domain errors like HTTPException: {"detail": ...} with the mapped status."""
    if isinstance(exc, StorageError):
        logger.error(f"{request.method} {request.url.path}: {exc.detail}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


# =============================================================================
# Health Check Routes
# =============================================================================

@app.get("/health/live", response_model=HealthResponse)
async def health_live() -> HealthResponse:
    """
    Liveness probe - always returns 200 once the app is running.
    """
    return HealthResponse(status="ok")


@app.get("/health/ready", response_model=HealthResponse)
async def health_ready(response: Response) -> HealthResponse:
    """
    Readiness probe - returns 200 only if the DB is reachable and the
    schema is applied, 503 otherwise.
    """
    if not check_db_health():
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return HealthResponse(
            status="not_ready",
            reason="Database not reachable or schema not applied"
        )

    return HealthResponse(status="ready")


# =============================================================================
# Identity Route
# =============================================================================

@app.get("/api/me", response_model=UserRef, responses=ERROR_RESPONSES)
async def me(user=Depends(get_current_user)) -> UserRef:
    """Echo the caller as stored in the user directory."""
    return UserRef.model_validate(user)


# =============================================================================
# Message Read Routes
# =============================================================================

@app.get("/api/messages", response_model=list[MessageWithUsersResponse], responses=ERROR_RESPONSES)
async def list_messages(
    user=Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[MessageWithUsersResponse]:
    """
    Every message the caller sent or received, newest first, with both
    participants embedded.
    """
    messages = list_for_user(db, user.id)
    logger.info(f"GET /api/messages: returned {len(messages)} messages for {user.id}")
    return [MessageWithUsersResponse.model_validate(m) for m in messages]


@app.get(
    "/api/messages/conversations",
    response_model=list[ConversationResponse],
    responses=ERROR_RESPONSES,
)
async def list_conversations(
    response: Response,
    user=Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[ConversationResponse]:
    """
    Conversation list for the caller, most recently active first.

    Each entry carries the other user, a preview of the last message and
    the number of messages from that peer the caller has not read.
    """
    conversations = build_conversations(user.id, list_for_user(db, user.id))
    response.headers["X-Poll-Interval"] = str(poll_interval(settings, "conversations"))

    logger.info(f"GET /api/messages/conversations: {len(conversations)} conversations for {user.id}")
    return [
        ConversationResponse(
            other_user_id=c.other_user_id,
            other_user=UserRef.model_validate(c.other_user) if c.other_user is not None else None,
            last_message=LastMessage.model_validate(c.last_message),
            unread_count=c.unread_count,
        )
        for c in conversations
    ]


@app.get(
    "/api/messages/conversation/{peer_id}",
    response_model=list[MessageWithUsersResponse],
    responses=ERROR_RESPONSES,
)
async def get_thread(
    peer_id: str,
    request: Request,
    response: Response,
    user=Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[MessageWithUsersResponse]:
    """
    Thread between the caller and a peer, oldest first.

    Viewing the thread marks every unread message addressed to the caller
    as read. The returned read flags are those seen before marking.
    """
    transcript = open_thread(db, user.id, peer_id)
    response.headers["X-Poll-Interval"] = str(poll_interval(settings, "thread"))
    log_message_event(request, result="viewed", peer_id=peer_id)
    return transcript


@app.get("/api/messages/unread/count", response_model=UnreadCountResponse, responses=ERROR_RESPONSES)
async def unread_count(
    response: Response,
    user=Depends(get_current_user),
    db: Session = Depends(get_db),
) -> UnreadCountResponse:
    """Number of unread messages addressed to the caller, across all peers."""
    response.headers["X-Poll-Interval"] = str(poll_interval(settings, "unread_count"))
    return UnreadCountResponse(count=count_unread(db, user.id))


@app.get("/api/messages/polling", response_model=PollingResponse)
async def polling_schedule() -> PollingResponse:
    """Refresh intervals for each read view and the views to re-fetch after a send."""
    intervals = {task.name: task.interval_seconds for task in polling_tasks(settings)}
    return PollingResponse(
        thread_interval_seconds=intervals["thread"],
        conversations_interval_seconds=intervals["conversations"],
        unread_count_interval_seconds=intervals["unread_count"],
        invalidate_after_send=invalidations_after_send(),
    )


# =============================================================================
# Message Write Routes
# =============================================================================

@app.post(
    "/api/messages",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        **ERROR_RESPONSES,
        404: {"model": ErrorResponse, "description": "Unknown recipient"},
        422: {"description": "Validation error"},
    },
)
async def create_message(
    payload: SendMessageRequest,
    request: Request,
    response: Response,
    user=Depends(get_current_user),
    db: Session = Depends(get_db),
) -> MessageResponse:
    """
    Send a message from the caller to recipientId.

    The X-Invalidate response header lists the read views the client should
    re-fetch.
    """
    try:
        message = send_message(
            db,
            sender_id=user.id,
            recipient_id=payload.recipient_id,
            body=payload.body,
            subject=payload.subject,
        )
    except ValidationError:
        record_send_outcome("validation_error")
        log_message_event(request, result="validation_error", peer_id=payload.recipient_id)
        raise
    except NotFoundError:
        record_send_outcome("not_found")
        log_message_event(request, result="not_found", peer_id=payload.recipient_id)
        raise
    except StorageError:
        record_send_outcome("storage_error")
        log_message_event(request, result="error", peer_id=payload.recipient_id)
        raise

    record_send_outcome("created")
    log_message_event(request, result="created", message_id=message.id, peer_id=message.recipient_id)
    response.headers["X-Invalidate"] = ",".join(invalidations_after_send(message.recipient_id))
    return MessageResponse.model_validate(message)


@app.api_route(
    "/api/messages/{message_id}/read",
    methods=["PUT", "POST"],
    status_code=status.HTTP_204_NO_CONTENT,
    responses={
        **ERROR_RESPONSES,
        403: {"model": ErrorResponse, "description": "Caller is not the recipient"},
        404: {"model": ErrorResponse, "description": "Unknown message"},
    },
)
async def mark_message_read(
    message_id: str,
    request: Request,
    user=Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Response:
    """
    Mark a message read. Only its recipient may do so; repeating the call
    is a no-op.
    """
    try:
        marked = mark_read(db, message_id, user.id)
    except AuthorizationError:
        record_mark_read_outcome("forbidden")
        log_message_event(request, result="forbidden", message_id=message_id)
        raise
    except NotFoundError:
        record_mark_read_outcome("not_found")
        log_message_event(request, result="not_found", message_id=message_id)
        raise

    result = "marked" if marked else "already_read"
    record_mark_read_outcome(result)
    log_message_event(request, result=result, message_id=message_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# =============================================================================
# Metrics Route
# =============================================================================

@app.get("/metrics")
async def metrics() -> Response:
    """
    Expose Prometheus-style metrics.
    """
    return Response(
        content=get_metrics(),
        media_type=get_metrics_content_type()
    )
