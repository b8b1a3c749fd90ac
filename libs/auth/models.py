from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

ADMIN_ROLES = ("admin", "staff")


class AuthUser(BaseModel):
    """
    Represents the caller identity taken from a verified access token.
    """

    model_config = ConfigDict(populate_by_name=True)

    user_id: int = Field(..., alias="sub")
    email: Optional[str] = None
    role: str = "customer"

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    @property
    def is_staff(self) -> bool:
        return self.role in ADMIN_ROLES
