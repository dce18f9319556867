"""
gather/models/plan.py
Plan aggregate with embedded members and comments, plus its projections.

Members and comments have no life outside their plan: they are only
created, changed and removed through Plan's own methods.
"""

from pydantic import BaseModel, Field, ConfigDict, model_validator
from datetime import datetime
from enum import Enum
from typing import Optional, List

from gather.core.errors import NotFoundError, ValidationError
from gather.models.location import Coordinate
from gather.models.user import PublicUser


class PlanType(str, Enum):
    """Closed set of activity types"""

    BEACH = "beach"
    CONCERT = "concert"
    EDUCATIONAL = "educational"
    MOVIE = "movie"
    ROAD_TRIP = "road_trip"
    SHOPPING = "shopping"


class PlanStatus(str, Enum):
    """Derived per (plan, actor): new -> requested -> joined"""

    NEW = "new"
    REQUESTED = "requested"
    JOINED = "joined"


class Member(BaseModel):
    """One user's relationship to a plan. Existence means 'requested'."""

    user_id: str
    joined: datetime = Field(description="When the join request was made")
    approved: bool = False


class Comment(BaseModel):
    id: str
    body: str = Field(min_length=1)
    pinned: bool = False
    user_id: str = Field(description="Author user ID")
    created: datetime


class Plan(BaseModel):
    """Plan aggregate. Stored as one document."""

    id: str
    owner_id: str
    description: str = Field(min_length=1)
    type: PlanType
    time: datetime
    expires: datetime
    location: Coordinate
    capacity: int = Field(default=0, ge=0, description="0 = unlimited")
    members: List[Member] = Field(default_factory=list)
    comments: List[Comment] = Field(default_factory=list)
    blocked: List[str] = Field(default_factory=list, description="Blocked user IDs")
    created: datetime
    updated: datetime

    @model_validator(mode="after")
    def _expiry_not_before_time(self) -> "Plan":
        if self.expires < self.time:
            raise ValueError("expires must not be before time")
        return self

    # queries

    def _member_index(self, user_id: str) -> int:
        for index, member in enumerate(self.members):
            if member.user_id == user_id:
                return index
        return -1

    def member_for(self, user_id: Optional[str]) -> Optional[Member]:
        if user_id is None:
            return None
        index = self._member_index(user_id)
        return self.members[index] if index >= 0 else None

    def status_for(self, user_id: Optional[str]) -> PlanStatus:
        member = self.member_for(user_id)
        if member is None:
            return PlanStatus.NEW
        if member.approved:
            return PlanStatus.JOINED
        return PlanStatus.REQUESTED

    def is_owner(self, user_id: Optional[str]) -> bool:
        return user_id is not None and user_id == self.owner_id

    def is_blocked(self, user_id: Optional[str]) -> bool:
        return user_id is not None and user_id in self.blocked

    def is_expired(self, now: datetime) -> bool:
        return self.expires < now

    @property
    def approved_members(self) -> List[Member]:
        return [member for member in self.members if member.approved]

    @property
    def going(self) -> int:
        return len(self.approved_members)

    @property
    def is_full(self) -> bool:
        return self.capacity > 0 and self.going >= self.capacity

    # mutations

    def add_request(self, user_id: str, now: datetime) -> Optional[Member]:
        """Append an unapproved member. Returns None if one already exists."""
        if self.is_blocked(user_id):
            raise ValidationError("Blocked users cannot request to join")
        if self._member_index(user_id) >= 0:
            return None
        member = Member(user_id=user_id, joined=now, approved=False)
        self.members.append(member)
        self.updated = now
        return member

    def approve(self, user_id: str, now: datetime) -> Member:
        index = self._member_index(user_id)
        if index < 0:
            raise NotFoundError("Member not found")
        member = self.members[index]
        if not member.approved:
            member = member.model_copy(update={"approved": True})
            self.members[index] = member
            self.updated = now
        return member

    def block(self, user_id: str, now: datetime) -> None:
        """Drop any member entry for user_id and add them to the block-list."""
        if self.is_owner(user_id):
            raise ValidationError("The plan owner cannot be blocked")
        index = self._member_index(user_id)
        if index >= 0:
            del self.members[index]
        if user_id not in self.blocked:
            self.blocked.append(user_id)
        self.updated = now

    def add_comment(self, comment: Comment, now: datetime) -> Comment:
        # pinning is an owner privilege
        if comment.pinned and not self.is_owner(comment.user_id):
            comment = comment.model_copy(update={"pinned": False})
        self.comments.append(comment)
        self.updated = now
        return comment

    def remove_comment(self, comment_id: str, now: datetime) -> Comment:
        for index, comment in enumerate(self.comments):
            if comment.id == comment_id:
                del self.comments[index]
                self.updated = now
                return comment
        raise NotFoundError("Comment not found")


class CreatePlanRequest(BaseModel):
    """Request to create a plan"""

    description: str = Field(min_length=1)
    type: PlanType
    location: Coordinate
    capacity: int = Field(default=0, ge=0)
    time: Optional[datetime] = None
    expires: Optional[datetime] = None


class CreateCommentRequest(BaseModel):
    body: str = Field(min_length=1)
    pinned: bool = False


# projections

class MemberView(PublicUser):
    approved: bool
    joined: datetime
    owner: bool = Field(description="Member is the plan owner")
    me: bool = Field(description="Member is the caller")


class CommentView(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    body: str
    pinned: bool
    created: datetime
    user: Optional[PublicUser] = None


class PlanMeta(BaseModel):
    model_config = ConfigDict(frozen=True)

    comments: int
    going: int
    max: int
    full: bool
    distance: Optional[float] = Field(default=None, description="Meters from the caller, if known")


class PlanView(BaseModel):
    """Caller- and location-relative view of a plan"""

    model_config = ConfigDict(frozen=True)

    id: str
    type: PlanType
    description: str
    time: datetime
    expires: Optional[datetime] = Field(default=None, description="Only set when it differs from time")
    status: PlanStatus
    user: Optional[PublicUser] = None
    members: List[MemberView] = Field(default_factory=list)
    comments: List[CommentView] = Field(default_factory=list)
    meta: PlanMeta
    created: datetime
    updated: datetime
