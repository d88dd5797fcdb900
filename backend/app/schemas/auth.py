from datetime import datetime
from typing import Optional
from pydantic import BaseModel, EmailStr

# Request schemas
class EmailPasswordRequest(BaseModel):
    email: EmailStr
    password: str

class RefreshTokenRequest(BaseModel):
    refresh_token: str

class LogoutRequest(BaseModel):
    refresh_token: Optional[str] = None

# Response schemas
class AuthTokensResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int

class UserInfo(BaseModel):
    id: int
    email: str
    full_name: Optional[str] = None
    role: str
    clinic_id: Optional[int] = None
    last_login_at: Optional[datetime] = None

class AuthResponse(BaseModel):
    tokens: AuthTokensResponse
    user: UserInfo
