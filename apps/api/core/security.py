"""
Password hashing (bcrypt) and access tokens (JWT, HS256).

Tokens carry the profile id as `sub`; that id is the only owner id the API
ever trusts. SECRET_KEY comes from the environment and must be 32+ characters.
"""
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict
from uuid import UUID
from jose import JWTError, jwt
import bcrypt
from core.config import settings

SECRET_KEY = settings.SECRET_KEY

if len(SECRET_KEY) < 32:
    raise ValueError(
        "SECRET_KEY must be at least 32 characters. "
        "Generate with: python -c \"import secrets; print(secrets.token_urlsafe(32))\""
    )

ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = settings.ACCESS_TOKEN_EXPIRE_MINUTES
MIN_PASSWORD_LENGTH = 8


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))


def get_password_hash(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def create_access_token(data: Dict, expires_delta: Optional[timedelta] = None) -> str:
    """Sign `data` with an `exp` claim (default lifetime ACCESS_TOKEN_EXPIRE_MINUTES)."""
    now = datetime.now(timezone.utc)
    claims = dict(data)
    claims["iat"] = now
    claims["exp"] = now + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    return jwt.encode(claims, SECRET_KEY, algorithm=ALGORITHM)


def create_user_token(user_id: UUID, email: Optional[str] = None) -> str:
    claims: Dict = {"sub": str(user_id)}
    if email:
        claims["email"] = email
    return create_access_token(claims)


def decode_access_token(token: str) -> Optional[Dict]:
    """Claims of a valid, unexpired token; None otherwise."""
    try:
        return jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        return None


def user_id_from_token(token: str) -> Optional[UUID]:
    """Profile id carried by the token, or None if the token or its subject is unusable."""
    payload = decode_access_token(token)
    if not payload or not payload.get("sub"):
        return None
    try:
        return UUID(str(payload["sub"]))
    except ValueError:
        return None
