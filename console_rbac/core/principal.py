from enum import Enum
from typing import FrozenSet, Optional

from pydantic import BaseModel, ConfigDict

from console_rbac.config.permissions_config import RoleScope


class ResourceType(str, Enum):
    PROJECT = "project"
    PROVIDER = "provider"

    @property
    def scope(self) -> RoleScope:
        return RoleScope(self.value)

    @property
    def label(self) -> str:
        return self.value.capitalize()


class ResourceRef(BaseModel):
    """A project or provider targeted by a request"""
    type: ResourceType
    id: str

    model_config = ConfigDict(frozen=True)


class Principal(BaseModel):
    """An already authenticated caller, as resolved from the access store"""
    id: str
    email: Optional[str] = None
    platform_role: str
    platform_role_level: int

    model_config = ConfigDict(frozen=True)


class AuthorizedRequest(BaseModel):
    """Produced by the authorization gate on Allow and passed explicitly to services"""
    principal: Principal
    resource: Optional[ResourceRef] = None
    effective_role: str
    permissions: FrozenSet[str]

    model_config = ConfigDict(frozen=True)
