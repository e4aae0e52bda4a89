# courtdesk/api/v1/deps.py

from typing import Any, Optional

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
import jwt

from courtdesk.core.security import decode_access_token
from courtdesk.db.database import get_db
from courtdesk.db.models import User
from courtdesk.utils.exceptions import (
    AuthExpiredError,
    AuthInvalidError,
    AuthRequiredError,
    ForbiddenError,
)

security = HTTPBearer(auto_error=False)

# ============================================================================
# JWT Dependency
# ============================================================================

def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db)
) -> User:
    """
    Validate the bearer token and return the acting user.
    """
    if credentials is None or not credentials.credentials:
        raise AuthRequiredError()

    try:
        payload = decode_access_token(credentials.credentials)
    except jwt.ExpiredSignatureError:
        raise AuthExpiredError()
    except jwt.PyJWTError:
        raise AuthInvalidError()

    user_id = payload.get("sub") or payload.get("user_id")
    try:
        user_id = int(user_id)
    except (TypeError, ValueError):
        raise AuthInvalidError()

    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise AuthInvalidError("User not found")

    if not user.is_active:
        raise ForbiddenError("User account is deactivated")

    return user


# ============================================================================
# Response envelope
# ============================================================================

def envelope(data: Any = None, message: Optional[str] = None, **extra: Any) -> dict:
    """{"success": true, "data": ..., "message"?: ...}"""
    body = {"success": True, "data": data}
    if message:
        body["message"] = message
    body.update(extra)
    return body
