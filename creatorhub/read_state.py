"""
Read-state transitions triggered by viewing a thread.

A message moves Unread -> Read only, and only for its recipient. Opening a
thread marks every unread message addressed to the viewer as read, one
independent mark_read call each. A failed mark is logged and counted but
never fails the view.
"""

import logging

from sqlalchemy.orm import Session

from creatorhub.errors import MessagingError
from creatorhub.metrics import record_mark_read_outcome
from creatorhub.schemas import MessageWithUsersResponse
from creatorhub.storage import list_between, mark_read

logger = logging.getLogger(__name__)


def unread_for_viewer(viewer_id: str, messages) -> list:
    """Messages in the list addressed to the viewer that are still unread."""
    return [m for m in messages if m.recipient_id == viewer_id and not m.is_read]


def mark_viewed(db: Session, viewer_id: str, message_ids: list[str]) -> int:
    """
    Best-effort mark_read for each id.

    Returns:
        Number of messages that transitioned to read
    """
    marked = 0
    for message_id in message_ids:
        try:
            if mark_read(db, message_id, viewer_id):
                marked += 1
                record_mark_read_outcome("marked")
            else:
                record_mark_read_outcome("already_read")
        except MessagingError as e:
            record_mark_read_outcome("auto_mark_failed")
            logger.warning(
                f"Auto mark-read failed for message {message_id}: {e.detail}",
                extra={"message_id": message_id, "result": "auto_mark_failed"},
            )
    return marked


def open_thread(db: Session, viewer_id: str, peer_id: str) -> list[MessageWithUsersResponse]:
    """
    Fetch the thread between viewer and peer for display, then mark it read.

    The transcript is snapshotted before marking, so it shows read flags as
    they were when fetched.

    Returns:
        Messages oldest first
    """
    messages = list_between(db, viewer_id, peer_id)
    transcript = [MessageWithUsersResponse.model_validate(m) for m in messages]

    pending = [m.id for m in unread_for_viewer(viewer_id, messages)]
    if pending:
        marked = mark_viewed(db, viewer_id, pending)
        logger.info(f"Viewing thread {viewer_id}<->{peer_id}: marked {marked} of {len(pending)} read")

    return transcript
