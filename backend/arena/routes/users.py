"""
App user API Routes
Minimal user registry standing in for the external identity provider.
"""

from datetime import datetime
from typing import List

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, field_validator
from sqlmodel import Session, select

from arena.database import get_session
from arena.errors import ErrorCode, NotFoundError
from arena.models.user import AppUser, UserRole

router = APIRouter()


class UserCreateRequest(BaseModel):
    display_name: str
    role: UserRole = UserRole.player

    @field_validator("display_name")
    @classmethod
    def validate_display_name(cls, v):
        if not v or not v.strip():
            raise ValueError("display_name is required")
        return v.strip()


class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    display_name: str
    role: str
    created_at: datetime


@router.post("/users", response_model=UserResponse, status_code=201)
def create_user(payload: UserCreateRequest, session: Session = Depends(get_session)):
    """Create a user"""
    user = AppUser(display_name=payload.display_name, role=payload.role.value)
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


@router.get("/users", response_model=List[UserResponse])
def list_users(session: Session = Depends(get_session)):
    """List all users"""
    return session.exec(select(AppUser).order_by(AppUser.id)).all()


@router.get("/users/{user_id}", response_model=UserResponse)
def get_user(user_id: int, session: Session = Depends(get_session)):
    """Get a user by ID"""
    user = session.get(AppUser, user_id)
    if not user:
        raise NotFoundError(ErrorCode.USER_NOT_FOUND, {"userId": user_id})
    return user
