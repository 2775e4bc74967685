"""
Authentication dependencies.

The owner id that scopes every query comes from the verified bearer token,
never from a request body or query string.
"""
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from typing import Optional

from core.database import get_db
from core.exceptions import UnauthorizedError
from core.security import user_id_from_token
from models import UserProfile

# auto_error=False so a missing header is a 401, not FastAPI's default 403
security = HTTPBearer(auto_error=False)


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db)
) -> UserProfile:
    if not credentials:
        raise UnauthorizedError("Not authenticated")

    user_id = user_id_from_token(credentials.credentials)
    if user_id is None:
        raise UnauthorizedError("Invalid authentication credentials")

    user = db.get(UserProfile, user_id)
    if not user:
        raise UnauthorizedError("User not found")
    return user
