from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from shared.constants import STAFF_ROLES, Role


class CurrentUser(BaseModel):
    """The verified caller behind a request."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: UUID
    username: str = ""
    roles: frozenset[Role] = Field(default_factory=frozenset)

    @property
    def is_staff(self) -> bool:
        return not self.roles.isdisjoint(STAFF_ROLES)

    @property
    def is_service(self) -> bool:
        return Role.SERVICE in self.roles
