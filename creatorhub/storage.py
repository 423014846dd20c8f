import logging
import uuid
from contextlib import contextmanager
from typing import Generator, Iterator, Optional

from sqlalchemy import create_engine, func, inspect, or_, text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from creatorhub.config import settings
from creatorhub.errors import AuthorizationError, NotFoundError, StorageError, ValidationError
from creatorhub.utils import next_timestamp, pair_key, utc_timestamp

logger = logging.getLogger(__name__)

# check_same_thread=False is required for SQLite to work with FastAPI's threadpool
connect_args = {"check_same_thread": False} if settings.DATABASE_URL.startswith("sqlite") else {}
engine = create_engine(
    settings.DATABASE_URL,
    connect_args=connect_args,
    echo=False,
)

# Create SessionLocal class for creating database sessions
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Base class for SQLAlchemy models
Base = declarative_base()


def init_db() -> None:
    """
    Initialize the database by creating all tables.
    Called during application startup.
    """
    logger.debug(f"Initializing database with URL: {settings.DATABASE_URL}")
    try:
        # Import models to register them with Base.metadata
        from creatorhub import models  # noqa: F401

        logger.debug("Creating database tables...")
        Base.metadata.create_all(bind=engine)
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")
        raise


def get_db() -> Generator[Session, None, None]:
    """
    Dependency to get database session.
    Yields a session and ensures it's closed after use.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def check_db_health() -> bool:
    """
    Check if the database is reachable and schema is applied.

    Returns:
        True if DB is healthy and both tables exist, False otherwise.
    """
    logger.debug("Checking database health...")
    try:
        with SessionLocal() as db:
            db.execute(text("SELECT 1"))
            logger.debug("Database connectivity OK")
        inspector = inspect(engine)
        for table in ("users", "messages"):
            if not inspector.has_table(table):
                logger.error(f"Database schema not applied: '{table}' table not found")
                return False
        logger.debug("Database health check passed")
        return True
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return False


@contextmanager
def storage_errors(db: Session, action: str) -> Iterator[None]:
    """
    Roll back and re-raise persistence failures as StorageError.

    Domain errors (validation, authorization, not found) pass through untouched.
    """
    try:
        yield
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Storage failure while {action}: {e}")
        raise StorageError(f"Storage failure while {action}") from e


# =============================================================================
# User Directory Functions
# =============================================================================

def get_user(db: Session, user_id: str):
    """
    Retrieve a user by id.

    Returns:
        User object if found, None otherwise
    """
    from creatorhub.models import User

    with storage_errors(db, "looking up user"):
        return db.get(User, user_id)


def upsert_user(
    db: Session,
    user_id: str,
    email: Optional[str] = None,
    first_name: Optional[str] = None,
    last_name: Optional[str] = None,
    profile_image_url: Optional[str] = None,
    role: Optional[str] = None,
):
    """
    Insert or update a user from the identity forwarded by the auth proxy.

    Fields passed as None leave the stored value unchanged.

    Raises:
        ValidationError: unknown role, or email already used by another user
    """
    from creatorhub.models import User, USER_ROLES

    if role is not None and role not in USER_ROLES:
        raise ValidationError(f"role must be one of {', '.join(USER_ROLES)}")

    fields = {
        "email": email,
        "first_name": first_name,
        "last_name": last_name,
        "profile_image_url": profile_image_url,
        "role": role,
    }
    now = utc_timestamp()

    with storage_errors(db, "upserting user"):
        user = db.get(User, user_id)
        changed = user is None
        if user is None:
            user = User(id=user_id, role="creator", created_at=now, updated_at=now)
            db.add(user)
            logger.info(f"Registering user: {user_id}")

        for name, value in fields.items():
            if value is not None and getattr(user, name) != value:
                setattr(user, name, value)
                changed = True

        if not changed:
            return user

        user.updated_at = now
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            # A concurrent request may have registered the same user first
            existing = db.get(User, user_id)
            if existing is not None and (email is None or existing.email == email):
                logger.info(f"User registered concurrently: {user_id}")
                return existing
            logger.warning(f"Email already in use, rejecting identity for {user_id}")
            raise ValidationError("email is already registered to another user")
        db.refresh(user)
        return user


# =============================================================================
# Message Store Functions
# =============================================================================

def send_message(
    db: Session,
    sender_id: str,
    recipient_id: str,
    body: str,
    subject: Optional[str] = None,
):
    """
    Persist a new unread message from sender to recipient.

    Args:
        db: Database session
        sender_id: Authenticated sender
        recipient_id: Recipient user id
        body: Message text, stored stripped
        subject: Optional subject line

    Returns:
        The created Message

    Raises:
        ValidationError: empty or oversized body/subject, or a self-message
        NotFoundError: sender or recipient is not in the user directory
        StorageError: the insert failed; nothing was persisted
    """
    from creatorhub.models import Message

    body = (body or "").strip()
    if not body:
        raise ValidationError("body must not be empty")
    if len(body) > settings.MAX_BODY_LENGTH:
        raise ValidationError(f"body must be at most {settings.MAX_BODY_LENGTH} characters")

    subject = subject.strip() if subject else None
    if subject and len(subject) > settings.MAX_SUBJECT_LENGTH:
        raise ValidationError(f"subject must be at most {settings.MAX_SUBJECT_LENGTH} characters")

    if not recipient_id or not recipient_id.strip():
        raise ValidationError("recipientId must not be empty")
    if sender_id == recipient_id:
        raise ValidationError("cannot send a message to yourself")

    if get_user(db, sender_id) is None:
        raise NotFoundError(f"unknown sender: {sender_id}")
    if get_user(db, recipient_id) is None:
        raise NotFoundError(f"unknown recipient: {recipient_id}")

    logger.info(f"Sending message: from={sender_id}, to={recipient_id}")

    with storage_errors(db, "storing message"):
        latest = (
            db.query(func.max(Message.created_at))
            .filter(Message.sender_id == sender_id)
            .scalar()
        )
        message = Message(
            id=str(uuid.uuid4()),
            sender_id=sender_id,
            recipient_id=recipient_id,
            pair_key=pair_key(sender_id, recipient_id),
            subject=subject or None,
            body=body,
            is_read=False,
            created_at=next_timestamp(latest),
        )
        db.add(message)
        db.commit()
        db.refresh(message)

    logger.info(f"Message created successfully: {message.id}")
    return message


def get_message(db: Session, message_id: str):
    """
    Retrieve a message by its ID.

    Returns:
        Message object if found, None otherwise
    """
    from creatorhub.models import Message

    with storage_errors(db, "looking up message"):
        result = db.get(Message, message_id)
    logger.debug(f"Message lookup {message_id}: {'found' if result else 'not found'}")
    return result


def list_for_user(db: Session, user_id: str) -> list:
    """
    Every message the user sent or received, newest first.

    Ordering is not part of the contract; conversations are derived from this list.
    """
    from creatorhub.models import Message

    with storage_errors(db, "listing messages"):
        messages = (
            db.query(Message)
            .filter(or_(Message.sender_id == user_id, Message.recipient_id == user_id))
            .order_by(Message.created_at.desc(), Message.id.desc())
            .all()
        )
    logger.debug(f"Retrieved {len(messages)} messages for user {user_id}")
    return messages


def list_between(db: Session, user_a: str, user_b: str) -> list:
    """
    Messages exchanged between an unordered pair, oldest first.

    Ordered by (created_at, id): a total order, so repeated reads without
    intervening writes return the same sequence.
    """
    from creatorhub.models import Message

    with storage_errors(db, "listing conversation"):
        messages = (
            db.query(Message)
            .filter(Message.pair_key == pair_key(user_a, user_b))
            .order_by(Message.created_at.asc(), Message.id.asc())
            .all()
        )
    logger.debug(f"Retrieved {len(messages)} messages between {user_a} and {user_b}")
    return messages


def mark_read(db: Session, message_id: str, acting_user_id: str) -> bool:
    """
    Transition a message to read on behalf of its recipient.

    Idempotent: marking an already-read message is a no-op.

    Returns:
        True if the message went from unread to read, False if it was already read

    Raises:
        NotFoundError: no such message
        AuthorizationError: the acting user is not the recipient (nothing changes)
    """
    from creatorhub.models import Message

    message = get_message(db, message_id)
    if message is None:
        raise NotFoundError(f"unknown message: {message_id}")
    if message.recipient_id != acting_user_id:
        logger.warning(f"User {acting_user_id} tried to mark message {message_id} read")
        raise AuthorizationError("only the recipient can mark a message read")

    with storage_errors(db, "marking message read"):
        # Conditional update so concurrent marks of the same row race safely
        updated = (
            db.query(Message)
            .filter(Message.id == message_id, Message.is_read == False)  # noqa: E712
            .update({Message.is_read: True}, synchronize_session=False)
        )
        db.commit()

    logger.info(f"Mark read {message_id}: {'marked' if updated else 'already read'}")
    return bool(updated)


def count_unread(db: Session, user_id: str) -> int:
    """Count messages addressed to the user that are still unread, across all peers."""
    from creatorhub.models import Message

    with storage_errors(db, "counting unread messages"):
        count = (
            db.query(func.count(Message.id))
            .filter(Message.recipient_id == user_id, Message.is_read == False)  # noqa: E712
            .scalar()
        )
    return count or 0
