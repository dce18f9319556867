"""
gather/features/plans/views.py
Caller- and location-relative projections of a Plan.

Social content (members, comments) is only shown to joined members. Inside
the roster, pending requests are visible to the owner alone, plus each
requester's own entry.
"""

from typing import Dict, Iterable, List, Optional

from gather.features.geo.engine import distance
from gather.models.location import Coordinate
from gather.models.plan import (
    Comment,
    CommentView,
    Member,
    MemberView,
    Plan,
    PlanMeta,
    PlanStatus,
    PlanView,
)
from gather.models.user import User


def referenced_user_ids(plans: Iterable[Plan]) -> set:
    """Every user id a projection of these plans might render"""
    ids = set()
    for plan in plans:
        ids.add(plan.owner_id)
        ids.update(member.user_id for member in plan.members)
        ids.update(comment.user_id for comment in plan.comments)
    return ids


def member_view(plan: Plan, member: Member, actor_id: Optional[str], users: Dict[str, User]) -> Optional[MemberView]:
    user = users.get(member.user_id)
    if user is None:
        # account gone; nothing to show
        return None
    return MemberView(
        id=user.id,
        name=user.name,
        rating=user.rating,
        approved=member.approved,
        joined=member.joined,
        owner=plan.is_owner(member.user_id),
        me=member.user_id == actor_id,
    )


def comment_view(comment: Comment, users: Dict[str, User]) -> CommentView:
    author = users.get(comment.user_id)
    return CommentView(
        id=comment.id,
        body=comment.body,
        pinned=comment.pinned,
        created=comment.created,
        user=author.public() if author else None,
    )


def _visible_members(plan: Plan, actor_id: Optional[str]) -> List[Member]:
    if plan.is_owner(actor_id):
        return list(plan.members)
    return [member for member in plan.members if member.approved or member.user_id == actor_id]


def _ordered_comments(plan: Plan) -> List[Comment]:
    return sorted(plan.comments, key=lambda comment: (not comment.pinned, comment.created))


def project(
    plan: Plan,
    actor_id: Optional[str],
    actor_coordinate: Optional[Coordinate],
    users: Dict[str, User],
) -> PlanView:
    """
    Build the view of `plan` for one caller.

    Args:
        plan: Stored aggregate
        actor_id: Caller, or None for anonymous
        actor_coordinate: Caller's location hint, if any
        users: Loaded users keyed by id (see referenced_user_ids)
    """
    status = plan.status_for(actor_id)

    members: List[MemberView] = []
    comments: List[CommentView] = []
    if status == PlanStatus.JOINED:
        for member in _visible_members(plan, actor_id):
            view = member_view(plan, member, actor_id, users)
            if view is not None:
                members.append(view)
        comments = [comment_view(comment, users) for comment in _ordered_comments(plan)]

    owner = users.get(plan.owner_id)

    return PlanView(
        id=plan.id,
        type=plan.type,
        description=plan.description,
        time=plan.time,
        expires=plan.expires if plan.expires != plan.time else None,
        status=status,
        user=owner.public() if owner else None,
        members=members,
        comments=comments,
        meta=PlanMeta(
            comments=len(plan.comments),
            going=plan.going,
            max=plan.capacity,
            full=plan.is_full,
            distance=distance(actor_coordinate, plan.location) if actor_coordinate else None,
        ),
        created=plan.created,
        updated=plan.updated,
    )
