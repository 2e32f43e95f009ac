from pydantic import BaseModel, ConfigDict, EmailStr
from uuid import UUID
from datetime import datetime
from typing import Optional


class UserCreate(BaseModel):
    email: EmailStr
    password: str
    name: Optional[str] = None
    role: str
    scope_level: str
    assigned_group_id: Optional[UUID] = None
    assigned_company_id: Optional[UUID] = None
    assigned_site_id: Optional[UUID] = None


class UserUpdate(BaseModel):
    name: Optional[str] = None
    role: Optional[str] = None
    scope_level: Optional[str] = None
    assigned_group_id: Optional[UUID] = None
    assigned_company_id: Optional[UUID] = None
    assigned_site_id: Optional[UUID] = None
    is_active: Optional[bool] = None


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class UserResponse(BaseModel):
    id: UUID
    email: str
    name: Optional[str]
    role: str
    scope_level: str
    assigned_group_id: Optional[UUID]
    assigned_company_id: Optional[UUID]
    assigned_site_id: Optional[UUID]
    is_active: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
