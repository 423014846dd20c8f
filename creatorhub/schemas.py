"""
Pydantic schemas for request/response validation.

This module contains:
- Request models for incoming data validation
- Response models for API responses

All JSON fields are camelCase on the wire (senderId, createdAt, ...).
Python attributes stay snake_case so models can be built from ORM objects.
"""

from typing import Optional

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel


CAMEL_CONFIG = {
    "alias_generator": to_camel,
    "populate_by_name": True,
    "from_attributes": True,  # Allow creating from ORM objects
}


# =============================================================================
# Pydantic Request Models
# =============================================================================

class SendMessageRequest(BaseModel):
    """
    Body of POST /api/messages.

    Body emptiness and length are checked by the message store so that the
    same rules apply to every caller.
    """
    recipient_id: str = Field(..., description="Recipient user id")
    body: str = Field(..., description="Message text")
    subject: Optional[str] = Field(None, description="Optional subject line")

    model_config = {
        **CAMEL_CONFIG,
        "json_schema_extra": {
            "examples": [
                {"recipientId": "user-b", "body": "Hi, loved your portfolio!"}
            ]
        },
    }


# =============================================================================
# Pydantic Response Models
# =============================================================================

class ErrorResponse(BaseModel):
    """Response model for error responses."""
    detail: str = Field(..., description="Error description")


class UserRef(BaseModel):
    """Public fields of a user, embedded in messages and conversations."""
    id: str
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    profile_image_url: Optional[str] = None
    role: str = "creator"

    model_config = CAMEL_CONFIG


class MessageResponse(BaseModel):
    """A single message as stored."""
    id: str = Field(..., description="Message identifier")
    sender_id: str
    recipient_id: str
    subject: Optional[str] = None
    body: str
    is_read: bool
    created_at: str = Field(..., description="Creation time, ISO-8601 UTC")

    model_config = CAMEL_CONFIG


class MessageWithUsersResponse(MessageResponse):
    """A message with both participants embedded, as listed by GET /api/messages."""
    sender: Optional[UserRef] = None
    recipient: Optional[UserRef] = None


class LastMessage(BaseModel):
    """Preview of the latest message in a conversation."""
    id: str
    body: str
    created_at: str
    sender_id: str
    is_read: bool

    model_config = CAMEL_CONFIG


class ConversationResponse(BaseModel):
    """
    One entry of the conversation list.

    other_user is null only if the peer is missing from the user directory.
    """
    other_user_id: str
    other_user: Optional[UserRef] = None
    last_message: LastMessage
    unread_count: int = Field(..., ge=0)

    model_config = CAMEL_CONFIG


class UnreadCountResponse(BaseModel):
    """Response model for GET /api/messages/unread/count."""
    count: int = Field(..., ge=0, description="Unread messages addressed to the caller")


class PollingResponse(BaseModel):
    """Polling schedule and invalidation contract for clients."""
    thread_interval_seconds: int
    conversations_interval_seconds: int
    unread_count_interval_seconds: int
    invalidate_after_send: list[str] = Field(
        default_factory=list,
        description="Read paths to re-fetch after a successful send ({peerId} is the recipient)",
    )

    model_config = CAMEL_CONFIG


class HealthResponse(BaseModel):
    """Response model for health check endpoints."""
    status: str = Field(..., description="Health status")
    reason: Optional[str] = Field(None, description="Reason if not ready")
