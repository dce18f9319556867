"""
gather/features/plans/service.py
Plan aggregate operations: create, discover, fetch, join, approve, block,
comment.

Every operation takes the acting user explicitly and runs its policy entry
before touching storage. Each mutation is load, change, save of one
document; notifications are written afterwards and are best-effort, so a
failed notification never undoes a saved plan.

Capacity is a soft cap: full plans drop out of discovery and report
meta.full, but joins and approvals are never refused for it.
"""

import math
from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Optional
from uuid import uuid4

from pydantic import ValidationError as PydanticValidationError

from gather.core.config import Settings
from gather.core.database import as_utc
from gather.core.errors import NotFoundError, ValidationError
from gather.core.logging import log_event
from gather.core.metrics import notification_failures_total, plan_mutations_total
from gather.features.geo.engine import discovery_query
from gather.features.notifications.service import NotificationService
from gather.features.plans.persistence import PlanPersistence
from gather.features.plans.views import comment_view, member_view, project, referenced_user_ids
from gather.features.policy.service import PolicyContext, PolicyEngine
from gather.features.users.persistence import UserPersistence
from gather.models.location import Coordinate
from gather.models.notification import NotificationAction, Ref
from gather.models.plan import Comment, CommentView, Member, MemberView, Plan, PlanType, PlanView
from gather.models.user import User


def _utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    return as_utc(value).astimezone(timezone.utc)


def _first_error(exc: PydanticValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid plan"
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    return f"{location}: {first.get('msg')}" if location else str(first.get("msg"))


class PlanService:
    def __init__(
        self,
        persistence: PlanPersistence,
        users: UserPersistence,
        notifications: NotificationService,
        policy: PolicyEngine,
        settings: Settings,
    ):
        self.persistence = persistence
        self.users = users
        self.notifications = notifications
        self.policy = policy
        self.settings = settings

    # helpers

    def _load(self, plan_id: str) -> Plan:
        plan = self.persistence.get(plan_id)
        if plan is None:
            raise NotFoundError("Plan not found")
        return plan

    def _load_visible(self, plan_id: str, actor: User) -> Plan:
        # Blocked callers get the same answer as for a missing plan
        plan = self.persistence.get(plan_id)
        if plan is None or plan.is_blocked(actor.id):
            raise NotFoundError("Plan not found")
        return plan

    def _project_many(self, plans: Iterable[Plan], actor: Optional[User], coordinate: Optional[Coordinate]) -> List[PlanView]:
        plans = list(plans)
        users = self.users.get_many(referenced_user_ids(plans))
        actor_id = actor.id if actor else None
        return [project(plan, actor_id, coordinate, users) for plan in plans]

    def _project(self, plan: Plan, actor: Optional[User], coordinate: Optional[Coordinate]) -> PlanView:
        return self._project_many([plan], actor, coordinate)[0]

    def _record(self, kind: str, plan: Plan, actor: User, **extra) -> None:
        plan_mutations_total.inc(labels={"type": kind})
        log_event("info", f"plan.{kind}", user_id=actor.id, plan_id=plan.id, extra=extra or None)

    def _notify(
        self,
        action: NotificationAction,
        source: Ref,
        target: Ref,
        recipient_ids: List[str],
        now: datetime,
    ) -> None:
        """Best-effort fan-out. The plan is already saved; failures are logged, not raised."""
        if not recipient_ids:
            return
        try:
            self.notifications.notify_many(action, source, target, recipient_ids, now=now)
        except Exception as e:
            notification_failures_total.inc(labels={"action": action.value})
            log_event(
                "warning",
                "notification.write_failed",
                plan_id=target.id,
                event_type=action.value,
                error_code=type(e).__name__,
                exc_info=True,
            )

    def _pull(self, action: NotificationAction, source_id: str, target_id: str) -> None:
        try:
            self.notifications.pull(action, source_id, target_id)
        except Exception as e:
            notification_failures_total.inc(labels={"action": action.value})
            log_event(
                "warning",
                "notification.pull_failed",
                plan_id=target_id,
                event_type=action.value,
                error_code=type(e).__name__,
                exc_info=True,
            )

    # operations

    def create_plan(
        self,
        owner: Optional[User],
        *,
        description: str,
        plan_type,
        coordinate: Coordinate,
        capacity: int = 0,
        time: Optional[datetime] = None,
        expires: Optional[datetime] = None,
        now: Optional[datetime] = None,
    ) -> PlanView:
        """
        Create a plan with the owner enrolled as an approved member.

        Without a time the plan starts now and lasts UNTIMED_PLAN_TTL_HOURS.
        With a time but no expiry, it expires at its time.

        Raises:
            AuthenticationError: anonymous caller
            ValidationError: missing/oversized description, unknown type,
                negative capacity, expires before time
        """
        self.policy.authorize("create_plan", PolicyContext(actor=owner))

        description = (description or "").strip()
        if not description:
            raise ValidationError("Description is required")
        if len(description) > self.settings.DESCRIPTION_MAX_LENGTH:
            raise ValidationError(f"Description must be at most {self.settings.DESCRIPTION_MAX_LENGTH} characters")
        try:
            plan_type = PlanType(plan_type)
        except ValueError:
            allowed = ", ".join(t.value for t in PlanType)
            raise ValidationError(f"Type must be one of: {allowed}")
        if capacity is None:
            capacity = 0
        if isinstance(capacity, bool) or not isinstance(capacity, int) or capacity < 0:
            raise ValidationError("Capacity must be a non-negative whole number")

        now = _utc(now) or datetime.now(timezone.utc)
        time = _utc(time)
        expires = _utc(expires)
        if time is None:
            time = now
            expires = expires or now + timedelta(hours=self.settings.UNTIMED_PLAN_TTL_HOURS)
        elif expires is None:
            expires = time
        if expires < time:
            raise ValidationError("Expiry must not be before the plan's time")

        try:
            plan = Plan(
                id=str(uuid4()),
                owner_id=owner.id,
                description=description,
                type=plan_type,
                time=time,
                expires=expires,
                location=coordinate,
                capacity=capacity,
                members=[Member(user_id=owner.id, joined=now, approved=True)],
                created=now,
                updated=now,
            )
        except PydanticValidationError as e:
            raise ValidationError(_first_error(e))

        self.persistence.create(plan)
        self._record("created", plan, owner, type=plan.type.value, capacity=plan.capacity)
        return self._project(plan, owner, coordinate)

    def discover(
        self,
        actor: Optional[User],
        center: Optional[Coordinate],
        radius_km: Optional[float] = None,
        now: Optional[datetime] = None,
    ) -> List[PlanView]:
        """
        Plans within radius_km of center that are not expired, not full,
        and not blocking the caller. Soonest expiry first.
        """
        self.policy.authorize("discover_plans", PolicyContext(actor=actor, location=center))

        if radius_km is None:
            radius_km = self.settings.DEFAULT_DISCOVERY_RADIUS_KM
        if not math.isfinite(radius_km) or radius_km < 0:
            raise ValidationError("Radius must be a non-negative number")
        if radius_km > self.settings.MAX_DISCOVERY_RADIUS_KM:
            raise ValidationError(f"Radius must be at most {self.settings.MAX_DISCOVERY_RADIUS_KM} km")

        now = _utc(now) or datetime.now(timezone.utc)
        candidates = self.persistence.find_within(discovery_query(center, radius_km), not_expired_at=now)
        visible = [
            plan for plan in candidates
            if not plan.is_full and not plan.is_blocked(actor.id)
        ]
        return self._project_many(visible, actor, center)

    def fetch(self, plan_id: str, actor: Optional[User], coordinate: Optional[Coordinate] = None) -> PlanView:
        self.policy.authorize("fetch_plan", PolicyContext(actor=actor, plan_id=plan_id))
        plan = self._load_visible(plan_id, actor)
        return self._project(plan, actor, coordinate)

    def request_join(
        self,
        plan_id: str,
        actor: Optional[User],
        coordinate: Optional[Coordinate] = None,
        now: Optional[datetime] = None,
    ) -> PlanView:
        """
        Ask to join. Idempotent: an existing member entry leaves the plan
        untouched and sends nothing.
        """
        self.policy.authorize("request_join", PolicyContext(actor=actor, plan_id=plan_id))
        plan = self._load_visible(plan_id, actor)

        now = _utc(now) or datetime.now(timezone.utc)
        member = plan.add_request(actor.id, now)
        if member is None:
            return self._project(plan, actor, coordinate)

        self.persistence.save(plan)
        self._record("join_requested", plan, actor)
        self._notify(
            NotificationAction.NEW_REQUEST,
            Ref.user(actor.id),
            Ref.plan(plan.id),
            [plan.owner_id],
            now,
        )
        return self._project(plan, actor, coordinate)

    def approve_member(
        self,
        plan_id: str,
        actor: Optional[User],
        member_user_id: str,
        now: Optional[datetime] = None,
    ) -> MemberView:
        """
        Owner approves a pending member.

        Raises:
            ForbiddenError: caller is not the owner, or the plan is missing
            NotFoundError: no member entry for member_user_id, or no account
                behind it
        """
        self.policy.authorize("approve_member", PolicyContext(actor=actor, plan_id=plan_id))
        plan = self._load(plan_id)

        now = _utc(now) or datetime.now(timezone.utc)
        before = plan.member_for(member_user_id)
        member = plan.approve(member_user_id, now)
        users = self.users.get_many([member_user_id])
        view = member_view(plan, member, actor.id, users)
        if view is None:
            raise NotFoundError("User not found")

        if before is not None and before.approved:
            return view

        self.persistence.save(plan)
        self._record("member_approved", plan, actor, member_id=member_user_id)
        if plan.capacity > 0 and plan.going > plan.capacity:
            log_event(
                "warning",
                "plan.capacity_exceeded",
                user_id=actor.id,
                plan_id=plan.id,
                extra={"going": plan.going, "capacity": plan.capacity},
            )
        self._notify(
            NotificationAction.REQUEST_APPROVED,
            Ref.user(plan.owner_id),
            Ref.plan(plan.id),
            [member_user_id],
            now,
        )
        return view

    def block_member(
        self,
        plan_id: str,
        actor: Optional[User],
        target_user_id: str,
        now: Optional[datetime] = None,
    ) -> bool:
        """
        Owner removes a user and keeps them out. Silent: the target is not
        notified, and their pending join notification to the owner is pulled.
        """
        self.policy.authorize("block_member", PolicyContext(actor=actor, plan_id=plan_id))
        plan = self._load(plan_id)

        now = _utc(now) or datetime.now(timezone.utc)
        plan.block(target_user_id, now)
        self.persistence.save(plan)
        self._record("member_blocked", plan, actor, member_id=target_user_id)
        self._pull(NotificationAction.NEW_REQUEST, target_user_id, plan.id)
        return True

    def add_comment(
        self,
        plan_id: str,
        actor: Optional[User],
        body: str,
        pinned: bool = False,
        now: Optional[datetime] = None,
    ) -> CommentView:
        """
        Post a comment. Only the owner can pin; anyone else's pin is dropped.
        Every other approved member is notified.
        """
        self.policy.authorize("add_comment", PolicyContext(actor=actor, plan_id=plan_id))

        body = (body or "").strip()
        if not body:
            raise ValidationError("Comment body is required")
        if len(body) > self.settings.COMMENT_MAX_LENGTH:
            raise ValidationError(f"Comment must be at most {self.settings.COMMENT_MAX_LENGTH} characters")

        plan = self._load(plan_id)
        now = _utc(now) or datetime.now(timezone.utc)
        comment = plan.add_comment(
            Comment(id=str(uuid4()), body=body, pinned=bool(pinned), user_id=actor.id, created=now),
            now,
        )
        self.persistence.save(plan)
        self._record("comment_added", plan, actor, comment_id=comment.id, pinned=comment.pinned)

        recipients = [member.user_id for member in plan.approved_members if member.user_id != actor.id]
        self._notify(
            NotificationAction.NEW_COMMENT,
            Ref.user(actor.id),
            Ref.plan(plan.id),
            recipients,
            now,
        )
        return comment_view(comment, {actor.id: actor})

    def remove_comment(
        self,
        plan_id: str,
        actor: Optional[User],
        comment_id: str,
        now: Optional[datetime] = None,
    ) -> bool:
        self.policy.authorize("remove_comment", PolicyContext(actor=actor, plan_id=plan_id))
        plan = self._load(plan_id)

        now = _utc(now) or datetime.now(timezone.utc)
        plan.remove_comment(comment_id, now)
        self.persistence.save(plan)
        self._record("comment_removed", plan, actor, comment_id=comment_id)
        return True

    def list_plans_for_user(self, actor: User, coordinate: Optional[Coordinate] = None) -> List[PlanView]:
        """Plans the actor owns or has a member entry in, oldest first."""
        return self._project_many(self.persistence.list_for_user(actor.id), actor, coordinate)
