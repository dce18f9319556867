"""
Request-edge dependencies: the service container, the acting user and the
caller's location hint. Routers pass these into services explicitly.
"""

from typing import Optional

from fastapi import Depends, Header, Request

from gather.core.auth import parse_location, resolve_actor
from gather.core.container import Services
from gather.features.policy.service import PolicyContext
from gather.models.location import Coordinate
from gather.models.user import User


def get_services(request: Request) -> Services:
    return request.app.state.services


def get_actor(
    authorization: Optional[str] = Header(None, description="Bearer token; omit for anonymous"),
    services: Services = Depends(get_services),
) -> Optional[User]:
    return resolve_actor(authorization, services.user_store, services.settings)


def get_location(
    location: Optional[str] = Header(None, description="Caller position as 'latitude,longitude'"),
) -> Optional[Coordinate]:
    return parse_location(location)


def authorized(operation: str):
    """Dependency that runs `operation`'s actor-only policy and yields the actor."""

    def dependency(
        actor: Optional[User] = Depends(get_actor),
        services: Services = Depends(get_services),
    ) -> User:
        services.policy.authorize(operation, PolicyContext(actor=actor))
        return actor

    return dependency
