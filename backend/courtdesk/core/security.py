# courtdesk/core/security.py
"""
JWT helpers for the identity context.

Credentials are issued by the external identity provider; this module only
knows how to read its tokens (and mint one for operators and tests).
"""
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt

from courtdesk.core.config import settings


def create_access_token(user_id: int, role: str, expires_minutes: Optional[int] = None) -> str:
    expire = datetime.now(timezone.utc) + timedelta(
        minutes=expires_minutes or settings.ACCESS_TOKEN_EXPIRE_MINUTES
    )
    payload = {"sub": str(user_id), "role": role, "exp": expire}
    return jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> Dict[str, Any]:
    """Raises jwt.ExpiredSignatureError / jwt.PyJWTError on bad tokens."""
    return jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
