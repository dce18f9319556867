"""
gather/models/notification.py
Directed events (who did what to which plan) kept for later retrieval.
"""

from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from gather.models.user import PublicUser


class NotificationAction(str, Enum):
    NEW_REQUEST = "new_request"
    NEW_COMMENT = "new_comment"
    REQUEST_APPROVED = "request_approved"


class RefType(str, Enum):
    """Discriminator for polymorphic source/target references"""

    PLAN = "Plan"
    USER = "User"


class Ref(BaseModel):
    """Tagged reference: an id plus what kind of record it points at"""

    model_config = ConfigDict(frozen=True)

    type: RefType
    id: str

    @classmethod
    def plan(cls, plan_id: str) -> "Ref":
        return cls(type=RefType.PLAN, id=plan_id)

    @classmethod
    def user(cls, user_id: str) -> "Ref":
        return cls(type=RefType.USER, id=user_id)


class Notification(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    action: NotificationAction
    source: Ref
    target: Ref
    user_id: str = Field(description="Recipient")
    created: datetime
    updated: datetime


class NotificationView(BaseModel):
    """Notification with source/target resolved for display"""

    model_config = ConfigDict(frozen=True)

    id: str
    action: NotificationAction
    source: Optional[Dict[str, Any]] = None
    target: Optional[Dict[str, Any]] = None
    user: Optional[PublicUser] = None
    created: datetime
    updated: datetime
