"""
gather/models/user.py
User record, its projections, and auth request/response bodies.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field

NEUTRAL_RATING = 5.0


class User(BaseModel):
    """Stored user. password_hash never leaves the service layer."""

    model_config = ConfigDict(frozen=True)

    id: str
    email: str
    name: str
    password_hash: str
    rating: float = NEUTRAL_RATING
    notifications: bool = True
    created: datetime
    updated: datetime

    def view(self) -> "UserView":
        return UserView(
            id=self.id,
            email=self.email,
            name=self.name,
            rating=self.rating,
            notifications=self.notifications,
            created=self.created,
        )

    def public(self) -> "PublicUser":
        return PublicUser(id=self.id, name=self.name, rating=self.rating)


class UserView(BaseModel):
    """What a user sees about themself"""

    model_config = ConfigDict(frozen=True)

    id: str
    email: str
    name: str
    rating: float
    notifications: bool
    created: datetime


class PublicUser(BaseModel):
    """What everybody else sees"""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    rating: float


class RegisterRequest(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    email: str = Field(min_length=3, max_length=320)
    password: str = Field(min_length=6, max_length=200)


class LoginRequest(BaseModel):
    email: str
    password: str


class UpdateProfileRequest(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    notifications: Optional[bool] = Field(default=None, description="Push notification preference")


class AuthResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    token: str
    user: UserView
