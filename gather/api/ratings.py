from fastapi import APIRouter, Depends

from gather.api.deps import authorized, get_services
from gather.core.container import Services
from gather.models.rating import RateUserRequest
from gather.models.user import User

router = APIRouter(prefix="/v1/ratings", tags=["ratings"])


@router.post("")
def rate_user_endpoint(
    request: RateUserRequest,
    actor: User = Depends(authorized("rate_user")),
    services: Services = Depends(get_services),
):
    ok = services.ratings.rate(request.rating, request.plan_id, request.user_id, actor.id)
    return {"data": {"success": ok}}
