"""
gather/api/users.py
Accounts and profile: register, login, read and update own profile.
"""

from typing import Optional

from fastapi import APIRouter, Depends

from gather.api.deps import authorized, get_location, get_services
from gather.core.container import Services
from gather.models.location import Coordinate
from gather.models.user import LoginRequest, RegisterRequest, UpdateProfileRequest, User

auth_router = APIRouter(prefix="/v1/auth", tags=["auth"])
profile_router = APIRouter(prefix="/v1/profile", tags=["profile"])


@auth_router.post("/register")
def register_endpoint(request: RegisterRequest, services: Services = Depends(get_services)):
    result = services.users.register(request.name, request.email, request.password)
    return {"data": result.model_dump(mode="json")}


@auth_router.post("/login")
def login_endpoint(request: LoginRequest, services: Services = Depends(get_services)):
    result = services.users.login(request.email, request.password)
    return {"data": result.model_dump(mode="json")}


@profile_router.get("")
def profile_endpoint(
    actor: User = Depends(authorized("profile")),
    location: Optional[Coordinate] = Depends(get_location),
    services: Services = Depends(get_services),
):
    """Own account plus every plan the caller owns or belongs to"""
    profile = services.users.profile(actor, location)
    return {"data": profile.model_dump(mode="json")}


@profile_router.patch("")
def update_profile_endpoint(
    request: UpdateProfileRequest,
    actor: User = Depends(authorized("update_profile")),
    services: Services = Depends(get_services),
):
    user = services.users.update_profile(actor, name=request.name, notifications=request.notifications)
    return {"data": user.model_dump(mode="json")}
