"""Auth request/response schemas."""

from pydantic import BaseModel


class RegisterRequest(BaseModel):
    email: str
    password: str


class LoginRequest(BaseModel):
    email: str
    password: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"


class ProfileResponse(BaseModel):
    id: str
    user_id: str
    email: str
    role: str
    approved: bool
    created_at: str

    class Config:
        from_attributes = True


class ProfileListResponse(BaseModel):
    profiles: list[ProfileResponse]
    total: int


class ApprovalUpdate(BaseModel):
    approved: bool
