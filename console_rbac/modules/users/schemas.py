from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List


class UserResponse(BaseModel):
    id: str
    email: str
    name: Optional[str] = None
    status: Optional[str] = None
    role: Optional[str] = None


class UserUpdate(BaseModel):
    # Validated by the service so bad values come back as 400 like the other admin endpoints
    name: Optional[str] = None
    email: Optional[str] = None


class UserUpdateResponse(BaseModel):
    message: str
    user: UserResponse


class ConfirmUserRequest(BaseModel):
    user_id: Optional[str] = Field(None, alias="userId")

    model_config = ConfigDict(populate_by_name=True)


class RoleChangeRequest(BaseModel):
    # Optional so a missing field is reported as "Missing userId or newRole." rather than a 422
    user_id: Optional[str] = Field(None, alias="userId")
    new_role: Optional[str] = Field(None, alias="newRole")

    model_config = ConfigDict(populate_by_name=True)


class SetRolesRequest(BaseModel):
    users: List[RoleChangeRequest]


class RoleChangeResponse(BaseModel):
    user_id: str
    role: str


class MessageResponse(BaseModel):
    message: str
    changes: List[RoleChangeResponse] = []
