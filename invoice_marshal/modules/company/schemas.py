from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import Optional
from uuid import UUID
from datetime import datetime

class CompanyUpsert(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    address: Optional[str] = None
    phone: Optional[str] = Field(None, max_length=50)
    website: Optional[str] = None
    logo: Optional[str] = None
    tax_id: Optional[str] = Field(None, max_length=50, description="Tax identification number printed on invoices")

    @field_validator('name')
    @classmethod
    def validate_name(cls, v):
        v = v.strip()
        if not v:
            raise ValueError('Company name is required')
        return v

    @field_validator('address', 'phone', 'website', 'logo', 'tax_id')
    @classmethod
    def empty_to_none(cls, v):
        if v is not None and not v.strip():
            return None
        return v

class CompanyOut(BaseModel):
    id: UUID
    name: str
    email: str
    address: Optional[str] = None
    phone: Optional[str] = None
    website: Optional[str] = None
    logo: Optional[str] = None
    tax_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
