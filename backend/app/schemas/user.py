from typing import Literal, Optional
from pydantic import BaseModel, EmailStr
from datetime import datetime

class UserBase(BaseModel):
    email: EmailStr
    first_name: Optional[str] = None
    last_name: Optional[str] = None

class UserCreate(UserBase):
    password: str
    role: Literal["ADMIN", "STAFF"] = "STAFF"
    clinic_id: Optional[int] = None

class UserInDBBase(UserBase):
    id: int
    role: str
    clinic_id: Optional[int] = None
    is_active: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True

class User(UserInDBBase):
    pass

class TokenPayload(BaseModel):
    sub: Optional[int] = None
    type: Optional[str] = None
    jti: Optional[str] = None
    clinic_id: Optional[int] = None
    role: Optional[str] = None
