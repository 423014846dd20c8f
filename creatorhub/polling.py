"""
Polling contract between the service and its clients.

Clients refresh read views on fixed intervals and re-fetch a known set of
views after sending. The service itself keeps no polling state; it only
publishes the schedule (GET /api/messages/polling and the X-Poll-Interval
header) and the invalidation set (X-Invalidate header on send).
"""

from dataclasses import dataclass
from typing import Optional

from creatorhub.config import Settings

MESSAGES_PATH = "/api/messages"
CONVERSATIONS_PATH = "/api/messages/conversations"
THREAD_PATH = "/api/messages/conversation/{peer_id}"
UNREAD_COUNT_PATH = "/api/messages/unread/count"


@dataclass(frozen=True)
class PollingTask:
    """A client-side refresh of one read view every interval_seconds."""
    name: str
    path: str
    interval_seconds: int


def polling_tasks(settings: Settings) -> list[PollingTask]:
    return [
        PollingTask("thread", THREAD_PATH, settings.THREAD_POLL_SECONDS),
        PollingTask("conversations", CONVERSATIONS_PATH, settings.THREAD_POLL_SECONDS),
        PollingTask("unread_count", UNREAD_COUNT_PATH, settings.UNREAD_POLL_SECONDS),
    ]


def poll_interval(settings: Settings, name: str) -> int:
    """Interval for a named polling task."""
    for task in polling_tasks(settings):
        if task.name == name:
            return task.interval_seconds
    raise KeyError(name)


def invalidations_after_send(peer_id: Optional[str] = None) -> list[str]:
    """
    Read views a client must re-fetch after sending a message.

    Without a peer id the thread path is returned as a template.
    """
    thread = THREAD_PATH.format(peer_id=peer_id) if peer_id else THREAD_PATH
    return [MESSAGES_PATH, CONVERSATIONS_PATH, thread, UNREAD_COUNT_PATH]
