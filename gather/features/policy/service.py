"""
gather/features/policy/service.py
Authorization predicates and the per-operation policy table.

Every operation name maps to an ordered tuple of predicates. All must pass
before the operation body runs. Failures are deliberately uniform: a
missing plan and a non-owner both come back as ForbiddenError, so callers
cannot probe for plan existence.
"""

from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

from gather.core.errors import AuthenticationError, ForbiddenError, NotFoundError, ValidationError
from gather.core.logging import log_event
from gather.models.location import Coordinate
from gather.models.plan import Plan
from gather.models.user import User


@dataclass(frozen=True)
class PolicyContext:
    """Who is asking, about which plan, from where"""

    actor: Optional[User]
    plan_id: Optional[str] = None
    location: Optional[Coordinate] = None

    @property
    def actor_id(self) -> Optional[str]:
        return self.actor.id if self.actor else None


PlanLoader = Callable[[str], Plan]
Predicate = Callable[[PolicyContext, PlanLoader, "PolicySettings"], bool]


@dataclass(frozen=True)
class PolicySettings:
    # When True, only approved members (the owner always is one) may comment
    require_approved_membership: bool = True


def is_authenticated(ctx: PolicyContext, plans: PlanLoader, options: PolicySettings) -> bool:
    return ctx.actor is not None


def has_location(ctx: PolicyContext, plans: PlanLoader, options: PolicySettings) -> bool:
    return ctx.location is not None


def is_plan_owner(ctx: PolicyContext, plans: PlanLoader, options: PolicySettings) -> bool:
    if ctx.actor is None or ctx.plan_id is None:
        return False
    return plans(ctx.plan_id).is_owner(ctx.actor.id)


def is_plan_member(ctx: PolicyContext, plans: PlanLoader, options: PolicySettings) -> bool:
    if ctx.actor is None or ctx.plan_id is None:
        return False
    member = plans(ctx.plan_id).member_for(ctx.actor.id)
    if member is None:
        return False
    return member.approved or not options.require_approved_membership


POLICY: Dict[str, Tuple[Predicate, ...]] = {
    "discover_plans": (is_authenticated, has_location),
    "fetch_plan": (is_authenticated,),
    "create_plan": (is_authenticated,),
    "request_join": (is_authenticated,),
    "approve_member": (is_authenticated, is_plan_owner),
    "block_member": (is_authenticated, is_plan_owner),
    "add_comment": (is_authenticated, is_plan_member),
    "remove_comment": (is_authenticated, is_plan_owner),
    "rate_user": (is_authenticated,),
    "list_notifications": (is_authenticated,),
    "profile": (is_authenticated,),
    "update_profile": (is_authenticated,),
}


def _denial(predicate: Predicate) -> Exception:
    if predicate is is_authenticated:
        return AuthenticationError("Authentication required")
    if predicate is has_location:
        return ValidationError("Location required")
    return ForbiddenError("Not allowed")


class PolicyEngine:
    """Evaluates POLICY entries against a context."""

    def __init__(
        self,
        plan_lookup: Callable[[str], Optional[Plan]],
        options: Optional[PolicySettings] = None,
        table: Optional[Dict[str, Tuple[Predicate, ...]]] = None,
    ):
        self.plan_lookup = plan_lookup
        self.options = options or PolicySettings()
        self.table = table if table is not None else POLICY

    def _loader(self) -> PlanLoader:
        cache: Dict[str, Plan] = {}

        def load(plan_id: str) -> Plan:
            if plan_id not in cache:
                plan = self.plan_lookup(plan_id)
                if plan is None:
                    raise NotFoundError("Plan not found")
                cache[plan_id] = plan
            return cache[plan_id]

        return load

    def check(self, predicate: Predicate, ctx: PolicyContext) -> bool:
        """Evaluate one predicate. Lookup errors propagate."""
        return predicate(ctx, self._loader(), self.options)

    def authorize(self, operation: str, ctx: PolicyContext) -> None:
        """
        Run every predicate registered for `operation`, in order.

        Raises:
            KeyError: operation has no policy entry
            AuthenticationError: no actor on an operation that needs one
            ValidationError: discovery without a location
            ForbiddenError: any other predicate failed, or its plan lookup did
        """
        predicates = self.table[operation]
        load = self._loader()
        for predicate in predicates:
            try:
                allowed = predicate(ctx, load, self.options)
            except NotFoundError:
                allowed = False
            if not allowed:
                log_event(
                    "info",
                    "policy.denied",
                    user_id=ctx.actor_id,
                    plan_id=ctx.plan_id,
                    event_type=operation,
                    error_code=predicate.__name__,
                )
                raise _denial(predicate)
