from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class BidderCreate(BaseModel):
    name: str
    email: str
    company: Optional[str] = None
    phone: Optional[str] = None


class UserResponse(BaseModel):
    id: int
    user_code: str
    name: str
    email: str
    company: Optional[str] = None
    phone: Optional[str] = None
    role: str
    is_active: bool
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
