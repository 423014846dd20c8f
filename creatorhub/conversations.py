"""
Conversation aggregation.

Derives the conversation list for one user from a flat list of messages.
Pure: no I/O, no session access beyond attributes already loaded on the
messages passed in.
"""

import logging
from dataclasses import dataclass
from typing import Any, Iterable, Optional

logger = logging.getLogger(__name__)


@dataclass
class Conversation:
    """One conversation from the viewpoint of the current user."""
    other_user_id: str
    last_message: Any
    unread_count: int = 0
    other_user: Optional[Any] = None


def other_party(current_user_id: str, message) -> str:
    """The peer of a message: the recipient if the current user sent it, else the sender."""
    if message.sender_id == current_user_id:
        return message.recipient_id
    return message.sender_id


def build_conversations(current_user_id: str, messages: Iterable) -> list[Conversation]:
    """
    Group messages into one conversation per other party.

    For each peer:
    - last_message is the message with the greatest created_at. On equal
      timestamps the first one met in the input wins (only a strictly later
      message replaces it).
    - unread_count counts messages addressed to the current user that are unread.

    Conversations are sorted most recently active first. Ties keep first-seen
    order because list.sort is stable.

    Args:
        current_user_id: The viewing user
        messages: Messages where the viewing user is sender or recipient

    Returns:
        List of Conversation, empty if there are no messages
    """
    by_peer: dict[str, Conversation] = {}

    for message in messages:
        peer_id = other_party(current_user_id, message)
        conversation = by_peer.get(peer_id)
        if conversation is None:
            conversation = Conversation(other_user_id=peer_id, last_message=message)
            by_peer[peer_id] = conversation
        elif message.created_at > conversation.last_message.created_at:
            conversation.last_message = message

        if message.recipient_id == current_user_id and not message.is_read:
            conversation.unread_count += 1

    conversations = list(by_peer.values())
    for conversation in conversations:
        last = conversation.last_message
        # User refs are only present when the relationship was loaded with the message
        if last.sender_id == current_user_id:
            conversation.other_user = getattr(last, "recipient", None)
        else:
            conversation.other_user = getattr(last, "sender", None)

    conversations.sort(key=lambda c: c.last_message.created_at, reverse=True)
    logger.debug(f"Built {len(conversations)} conversations for user {current_user_id}")
    return conversations
