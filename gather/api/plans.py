"""
gather/api/plans.py
Plans API: discover, create, fetch, join, moderate members, comment.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from gather.api.deps import get_actor, get_location, get_services
from gather.core.container import Services
from gather.models.location import Coordinate
from gather.models.plan import CreateCommentRequest, CreatePlanRequest
from gather.models.user import User

router = APIRouter(prefix="/v1/plans", tags=["plans"])


@router.get("")
def discover_plans_endpoint(
    radius: Optional[float] = Query(None, description="Kilometers; server default when omitted"),
    actor: Optional[User] = Depends(get_actor),
    location: Optional[Coordinate] = Depends(get_location),
    services: Services = Depends(get_services),
):
    """Plans near the caller's Location header"""
    plans = services.plans.discover(actor, location, radius)
    return {
        "data": [plan.model_dump(mode="json") for plan in plans],
        "count": len(plans),
    }


@router.post("")
def create_plan_endpoint(
    request: CreatePlanRequest,
    actor: Optional[User] = Depends(get_actor),
    services: Services = Depends(get_services),
):
    plan = services.plans.create_plan(
        actor,
        description=request.description,
        plan_type=request.type,
        coordinate=request.location,
        capacity=request.capacity,
        time=request.time,
        expires=request.expires,
    )
    return {"data": plan.model_dump(mode="json")}


@router.get("/{plan_id}")
def fetch_plan_endpoint(
    plan_id: str,
    actor: Optional[User] = Depends(get_actor),
    location: Optional[Coordinate] = Depends(get_location),
    services: Services = Depends(get_services),
):
    plan = services.plans.fetch(plan_id, actor, location)
    return {"data": plan.model_dump(mode="json")}


@router.post("/{plan_id}/join")
def request_join_endpoint(
    plan_id: str,
    actor: Optional[User] = Depends(get_actor),
    location: Optional[Coordinate] = Depends(get_location),
    services: Services = Depends(get_services),
):
    plan = services.plans.request_join(plan_id, actor, location)
    return {"data": plan.model_dump(mode="json")}


@router.post("/{plan_id}/members/{user_id}/approve")
def approve_member_endpoint(
    plan_id: str,
    user_id: str,
    actor: Optional[User] = Depends(get_actor),
    services: Services = Depends(get_services),
):
    member = services.plans.approve_member(plan_id, actor, user_id)
    return {"data": {"success": True, "member": member.model_dump(mode="json")}}


@router.post("/{plan_id}/members/{user_id}/block")
def block_member_endpoint(
    plan_id: str,
    user_id: str,
    actor: Optional[User] = Depends(get_actor),
    services: Services = Depends(get_services),
):
    blocked = services.plans.block_member(plan_id, actor, user_id)
    return {"data": {"success": blocked}}


@router.post("/{plan_id}/comments")
def add_comment_endpoint(
    plan_id: str,
    request: CreateCommentRequest,
    actor: Optional[User] = Depends(get_actor),
    services: Services = Depends(get_services),
):
    comment = services.plans.add_comment(plan_id, actor, request.body, request.pinned)
    return {"data": comment.model_dump(mode="json")}


@router.delete("/{plan_id}/comments/{comment_id}")
def remove_comment_endpoint(
    plan_id: str,
    comment_id: str,
    actor: Optional[User] = Depends(get_actor),
    services: Services = Depends(get_services),
):
    removed = services.plans.remove_comment(plan_id, actor, comment_id)
    return {"data": {"success": removed}}
