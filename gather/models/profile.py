from typing import List
from pydantic import Field

from gather.models.plan import PlanView
from gather.models.user import UserView


class ProfileView(UserView):
    """Own user view plus every plan the user owns or has a member entry in"""

    plans: List[PlanView] = Field(default_factory=list)
