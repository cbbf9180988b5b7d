from pydantic import BaseModel, Field
from typing import Optional, List

from console_rbac.core.principal import ResourceType
from console_rbac.modules.users.schemas import RoleChangeRequest


class MemberResponse(BaseModel):
    id: str
    email: str
    name: Optional[str] = None
    role: str


class MemberAdd(BaseModel):
    email: Optional[str] = None
    role: Optional[str] = None


class MemberRemove(BaseModel):
    email: Optional[str] = None


class MembersUpdate(BaseModel):
    members: List[RoleChangeRequest]


class ResourceCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None


class ResourceResponse(BaseModel):
    id: str
    type: ResourceType
    name: str
    description: Optional[str] = None
    owner_id: Optional[str] = None

    class Config:
        from_attributes = True
