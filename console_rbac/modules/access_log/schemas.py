from datetime import datetime
from pydantic import BaseModel
from typing import Optional, List


class AccessLogEntry(BaseModel):
    id: int
    user_email: Optional[str] = None
    user_role: Optional[str] = None
    method: str
    path: str
    ip: Optional[str] = None
    status: int
    created_at: datetime


class AccessLogPage(BaseModel):
    logs: List[AccessLogEntry]
    next_cursor: Optional[int] = None  # Pass back as ?cursor= for the next, older page
