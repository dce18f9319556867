from fastapi import APIRouter, Depends

from gather.api.deps import authorized, get_services
from gather.core.container import Services
from gather.models.user import User

router = APIRouter(prefix="/v1/notifications", tags=["notifications"])


@router.get("")
def list_notifications_endpoint(
    actor: User = Depends(authorized("list_notifications")),
    services: Services = Depends(get_services),
):
    """Caller's notifications, oldest first"""
    items = services.notifications.list_for(actor.id)
    return {
        "data": [item.model_dump(mode="json") for item in items],
        "count": len(items),
    }
