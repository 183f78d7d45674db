from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import Optional
from uuid import UUID

# User schemas
class UserCreate(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=8)

    @field_validator('password')
    @classmethod
    def validate_password(cls, v):
        if len(v) < 8:
            raise ValueError('Password must be at least 8 characters long')
        return v

class OnboardingUpdate(BaseModel):
    first_name: str = Field(..., min_length=2, max_length=50, description="First name is required")
    last_name: str = Field(..., min_length=2, max_length=50, description="Last name is required")
    address: str = Field(..., min_length=2, description="Address is required")

    @field_validator('first_name', 'last_name', 'address')
    @classmethod
    def strip_values(cls, v):
        v = v.strip()
        if len(v) < 2:
            raise ValueError('Must be at least 2 characters long')
        return v

class UserOut(BaseModel):
    id: UUID
    email: EmailStr
    is_active: bool
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    address: Optional[str] = None
    is_onboarded: bool

    class Config:
        from_attributes = True

# Token schemas
class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserOut
