"""
Identity supplied by the external identity provider.
"""

from typing import Literal
from pydantic import BaseModel

ROLE_CUSTOMER = "customer"
ROLE_ADMINISTRATOR = "administrator"


class CurrentUser(BaseModel):
    id: int
    role: Literal["customer", "administrator"] = ROLE_CUSTOMER

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMINISTRATOR
