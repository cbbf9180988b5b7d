from pydantic import BaseModel
from typing import Optional, List


class MeResponse(BaseModel):
    id: str
    email: Optional[str] = None
    name: Optional[str] = None
    role: str
    role_level: int
    permissions: List[str]
