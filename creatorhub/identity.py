"""
Caller identity.

Authentication happens upstream: the auth proxy forwards the authenticated
user as X-User-* headers and the service trusts them verbatim. Each request
upserts the caller into the user directory so that message participants
always resolve to known users.
"""

import logging
from typing import Annotated, Optional

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from creatorhub.storage import get_db, upsert_user

logger = logging.getLogger(__name__)


def blank_to_none(value: Optional[str]) -> Optional[str]:
    """Strip a forwarded header value; blank values count as absent."""
    if value is None:
        return None
    return value.strip() or None


def get_current_user(
    x_user_id: Annotated[Optional[str], Header(alias="X-User-Id")] = None,
    x_user_email: Annotated[Optional[str], Header(alias="X-User-Email")] = None,
    x_user_first_name: Annotated[Optional[str], Header(alias="X-User-First-Name")] = None,
    x_user_last_name: Annotated[Optional[str], Header(alias="X-User-Last-Name")] = None,
    x_user_role: Annotated[Optional[str], Header(alias="X-User-Role")] = None,
    db: Session = Depends(get_db),
):
    """
    Dependency resolving the authenticated caller.

    Raises:
        HTTPException 401: no identity forwarded
    """
    user_id = blank_to_none(x_user_id)
    if user_id is None:
        logger.warning("Request without X-User-Id header")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="not authenticated"
        )

    return upsert_user(
        db,
        user_id=user_id,
        email=blank_to_none(x_user_email),
        first_name=blank_to_none(x_user_first_name),
        last_name=blank_to_none(x_user_last_name),
        role=blank_to_none(x_user_role),
    )
