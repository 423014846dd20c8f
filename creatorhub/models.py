"""
SQLAlchemy ORM models for database tables.

This module contains database table definitions using SQLAlchemy.
For Pydantic request/response schemas, see schemas.py.
"""

from sqlalchemy import Boolean, Column, ForeignKey, Index, String, Text
from sqlalchemy.orm import relationship

from creatorhub.storage import Base


USER_ROLES = ("creator", "admin")


class User(Base):
    """
    User directory entry, upserted from the identity forwarded by the auth proxy.

    Table: users
    Primary Key: id (identity provider subject)
    """
    __tablename__ = "users"

    id = Column(String, primary_key=True)
    email = Column(String, unique=True, nullable=True)
    first_name = Column(String, nullable=True)
    last_name = Column(String, nullable=True)
    profile_image_url = Column(String, nullable=True)
    role = Column(String, nullable=False, default="creator")
    created_at = Column(String, nullable=False)  # ISO-8601 UTC
    updated_at = Column(String, nullable=False)


class Message(Base):
    """
    A direct message between two users. Append-only; only is_read changes.

    Table: messages
    Primary Key: id (UUID4 string)

    Access paths:
    - by participant: (sender_id, created_at), (recipient_id, created_at)
    - by unordered pair: (pair_key, created_at)
    - unread count: (recipient_id, is_read)
    """
    __tablename__ = "messages"

    id = Column(String, primary_key=True)
    sender_id = Column(String, ForeignKey("users.id"), nullable=False)
    recipient_id = Column(String, ForeignKey("users.id"), nullable=False)
    pair_key = Column(String, nullable=False)
    subject = Column(String, nullable=True)
    body = Column(Text, nullable=False)
    is_read = Column(Boolean, nullable=False, default=False)
    created_at = Column(String, nullable=False)  # ISO-8601 UTC, fixed width

    sender = relationship("User", foreign_keys=[sender_id], lazy="joined")
    recipient = relationship("User", foreign_keys=[recipient_id], lazy="joined")

    __table_args__ = (
        Index("ix_messages_sender_created", "sender_id", "created_at"),
        Index("ix_messages_recipient_created", "recipient_id", "created_at"),
        Index("ix_messages_recipient_unread", "recipient_id", "is_read"),
        Index("ix_messages_pair_created", "pair_key", "created_at"),
    )
