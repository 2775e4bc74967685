"""
Authentication API endpoints.

Provides:
- User registration (creates the profile with the signup credits)
- Login (JWT token generation + daily bonus)
- Token refresh
- Logout
"""
from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from pydantic import BaseModel, EmailStr, Field, ConfigDict
from typing import Optional
from uuid import UUID
from datetime import datetime
import logging

from core.config import settings
from core.database import get_db
from core.security import (
    ACCESS_TOKEN_EXPIRE_MINUTES,
    MIN_PASSWORD_LENGTH,
    create_user_token,
    get_password_hash,
    verify_password,
)
from core.auth import get_current_user
from models import UserProfile
from schemas import DailyBonusResponse
from services import credit_ledger

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/auth", tags=["auth"])


class UserRegister(BaseModel):
    """Schema for user registration."""
    email: EmailStr
    password: str
    display_name: Optional[str] = Field(default=None, max_length=100)
    age: Optional[int] = Field(default=None, ge=18, le=99)


class UserLogin(BaseModel):
    """Schema for user login."""
    email: EmailStr
    password: str


class UserResponse(BaseModel):
    """Schema for user response."""
    id: UUID
    email: str
    display_name: Optional[str] = None
    age: Optional[int] = None
    credits: int
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class TokenResponse(BaseModel):
    """Schema for token response."""
    access_token: str
    token_type: str = "bearer"
    expires_in: int = ACCESS_TOKEN_EXPIRE_MINUTES * 60  # seconds
    user: UserResponse
    daily_bonus: Optional[DailyBonusResponse] = None


def _token_response(db: Session, user: UserProfile, bonus: Optional[credit_ledger.BonusGrant] = None) -> TokenResponse:
    # The ledger writes with plain UPDATEs; reload so the balance is current.
    db.refresh(user)
    return TokenResponse(
        access_token=create_user_token(user.id, user.email),
        expires_in=ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        user=UserResponse.model_validate(user),
        daily_bonus=DailyBonusResponse(granted=bonus.granted, new_balance=bonus.new_balance) if bonus else None,
    )


@router.post("/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
def register(
    user_data: UserRegister,
    db: Session = Depends(get_db)
):
    """
    Register a new user account.

    Creates the profile with the signup credits and grants today's bonus, then
    issues a token immediately so the client does not need a second login call.
    """
    email = user_data.email.strip().lower()

    existing = db.query(UserProfile).filter(UserProfile.email == email).first()
    if existing:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email already registered"
        )

    if len(user_data.password) < MIN_PASSWORD_LENGTH:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
        )

    user = UserProfile(
        email=email,
        password_hash=get_password_hash(user_data.password),
        display_name=user_data.display_name or email.split("@")[0],
        age=user_data.age,
        credits=settings.SIGNUP_CREDITS,
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email already registered"
        )
    db.refresh(user)

    bonus = credit_ledger.grant_daily_bonus(db, user.id)
    logger.info(
        "User registered",
        extra={"extra_fields": {"user_id": str(user.id), "credits": bonus.new_balance}},
    )
    return _token_response(db, user, bonus)


@router.post("/login", response_model=TokenResponse)
def login(
    credentials: UserLogin,
    db: Session = Depends(get_db)
):
    """
    Authenticate user and return JWT token.

    A successful sign-in is also when the daily bonus is granted (at most once
    per server calendar day).
    """
    email = credentials.email.strip().lower()
    user = db.query(UserProfile).filter(UserProfile.email == email).first()

    if not user or not user.password_hash or not verify_password(credentials.password, user.password_hash):
        logger.info("Failed login attempt", extra={"extra_fields": {"email_domain": email.split("@")[-1]}})
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    bonus = credit_ledger.grant_daily_bonus(db, user.id)
    return _token_response(db, user, bonus)


@router.post("/refresh", response_model=TokenResponse)
def refresh_token(
    current_user: UserProfile = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Issue a fresh token for a still-valid session."""
    return _token_response(db, current_user)


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
def logout(current_user: UserProfile = Depends(get_current_user)):
    """
    Tokens are stateless; the client discards its token. Kept as an endpoint so
    clients have a single sign-out call.
    """
    logger.info("User signed out", extra={"extra_fields": {"user_id": str(current_user.id)}})
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/me", response_model=UserResponse)
def get_current_user_info(current_user: UserProfile = Depends(get_current_user)):
    """Get current authenticated user information."""
    return current_user
