"""
Service container.

Built once per process (or per test) and handed to the API layer. Owns the
Database; nothing else opens connections.
"""
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional

from gather.core.config import Settings
from gather.core.database import Database
from gather.features.notifications.persistence import NotificationPersistence
from gather.features.notifications.service import NotificationService
from gather.features.plans.persistence import PlanPersistence
from gather.features.plans.service import PlanService
from gather.features.policy.service import PolicyEngine, PolicySettings
from gather.features.ratings.persistence import RatingPersistence
from gather.features.ratings.service import RatingService
from gather.features.users.persistence import UserPersistence
from gather.features.users.service import UserService
from gather.models.notification import RefType
from gather.models.user import PublicUser


@dataclass
class Services:
    settings: Settings
    db: Database
    user_store: UserPersistence
    plan_store: PlanPersistence
    policy: PolicyEngine
    notifications: NotificationService
    plans: PlanService
    ratings: RatingService
    users: UserService

    def close(self) -> None:
        self.db.dispose()


def _plan_resolver(store: PlanPersistence):
    def resolve(plan_id: str) -> Optional[Dict[str, Any]]:
        plan = store.get(plan_id)
        if plan is None:
            return None
        return {"__typename": "Plan", "id": plan.id, "type": plan.type.value}
    return resolve


def _user_resolver(store: UserPersistence):
    def resolve(user_id: str) -> Optional[Dict[str, Any]]:
        user = store.get(user_id)
        if user is None:
            return None
        return {"__typename": "User", "id": user.id, "name": user.name}
    return resolve


def _public_users(store: UserPersistence):
    def load(user_ids: Iterable[str]) -> Dict[str, PublicUser]:
        return {user_id: user.public() for user_id, user in store.get_many(user_ids).items()}
    return load


def build_services(settings: Settings, db: Optional[Database] = None) -> Services:
    """Wire every component. Creates tables that don't exist yet."""
    db = db or Database(settings.DATABASE_URL)
    db.create_all()

    user_store = UserPersistence(db)
    plan_store = PlanPersistence(db)

    notifications = NotificationService(
        NotificationPersistence(db),
        resolvers={
            RefType.PLAN: _plan_resolver(plan_store),
            RefType.USER: _user_resolver(user_store),
        },
        user_loader=_public_users(user_store),
    )
    policy = PolicyEngine(
        plan_store.get,
        PolicySettings(require_approved_membership=settings.COMMENT_REQUIRES_APPROVAL),
    )
    plans = PlanService(plan_store, user_store, notifications, policy, settings)
    ratings = RatingService(RatingPersistence(db), user_store)
    users = UserService(user_store, settings, plans=plans)

    return Services(
        settings=settings,
        db=db,
        user_store=user_store,
        plan_store=plan_store,
        policy=policy,
        notifications=notifications,
        plans=plans,
        ratings=ratings,
        users=users,
    )
