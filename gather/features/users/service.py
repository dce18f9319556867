"""
gather/features/users/service.py
User accounts: register, login, profile reads and preference updates.
"""

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional
from uuid import uuid4

from gather.core.auth import create_token, hash_password, verify_password
from gather.core.config import Settings
from gather.core.errors import AuthenticationError, NotFoundError, ValidationError
from gather.core.logging import log_event
from gather.features.users.persistence import UserPersistence
from gather.models.location import Coordinate
from gather.models.profile import ProfileView
from gather.models.user import NEUTRAL_RATING, AuthResult, User, UserView

if TYPE_CHECKING:
    from gather.features.plans.service import PlanService

MIN_PASSWORD_LENGTH = 6


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


class UserService:
    def __init__(
        self,
        persistence: UserPersistence,
        settings: Settings,
        plans: Optional["PlanService"] = None,
    ):
        self.persistence = persistence
        self.settings = settings
        self.plans = plans

    def register(self, name: str, email: str, password: str, now: Optional[datetime] = None) -> AuthResult:
        """
        Create an account and sign it in.

        Raises:
            ValidationError: empty name, malformed or taken email, short password
        """
        name = (name or "").strip()
        email = normalize_email(email)
        if not name:
            raise ValidationError("Name is required")
        if "@" not in email:
            raise ValidationError("Email is invalid")
        if len(password or "") < MIN_PASSWORD_LENGTH:
            raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")

        now = now or datetime.now(timezone.utc)
        user = User(
            id=str(uuid4()),
            email=email,
            name=name,
            password_hash=hash_password(password),
            rating=NEUTRAL_RATING,
            notifications=True,
            created=now,
            updated=now,
        )
        if not self.persistence.create(user):
            raise ValidationError("Email is already registered")

        log_event("info", "user.registered", user_id=user.id)
        return AuthResult(token=create_token(user.id, self.settings, now=now), user=user.view())

    def login(self, email: str, password: str) -> AuthResult:
        """
        Exchange credentials for a token.

        Unknown email and wrong password fail the same way.
        """
        user = self.persistence.get_by_email(normalize_email(email))
        if user is None or not verify_password(user.password_hash, password or ""):
            log_event("info", "user.login_failed", error_code="invalid_credentials")
            raise AuthenticationError("Invalid credentials")
        log_event("info", "user.login", user_id=user.id)
        return AuthResult(token=create_token(user.id, self.settings), user=user.view())

    def get(self, user_id: str) -> User:
        user = self.persistence.get(user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    def update_profile(
        self,
        actor: User,
        name: Optional[str] = None,
        notifications: Optional[bool] = None,
        now: Optional[datetime] = None,
    ) -> UserView:
        """Change only the fields that were given. No write if nothing changed."""
        changes = {}
        if name is not None:
            name = name.strip()
            if not name:
                raise ValidationError("Name is required")
            if name != actor.name:
                changes["name"] = name
        if notifications is not None and notifications != actor.notifications:
            changes["notifications"] = notifications

        if not changes:
            return self.get(actor.id).view()

        changes["updated"] = now or datetime.now(timezone.utc)
        self.persistence.update_fields(actor.id, **changes)
        log_event("info", "user.updated", user_id=actor.id, extra={"fields": sorted(k for k in changes if k != "updated")})
        return self.get(actor.id).view()

    def profile(self, actor: User, coordinate: Optional[Coordinate] = None) -> ProfileView:
        """The actor's own view plus every plan they own or are a member of."""
        user = self.get(actor.id)
        plans = self.plans.list_plans_for_user(user, coordinate) if self.plans else []
        return ProfileView(**user.view().model_dump(), plans=plans)
