from datetime import date, datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel

from .policy import Role


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class Pagination(CamelModel):
    page: int
    limit: int
    total: int
    total_pages: int


class UserSummary(CamelModel):
    id: int
    email: str
    name: Optional[str] = None


class EntryResponse(CamelModel):
    id: int
    first_name: str
    middle_name: str
    surname: str
    gender: str
    marital_status: str
    religion: str
    date_of_birth: date
    phone_number: str
    occupation: str
    bp: Optional[str] = None
    temp: Optional[float] = None
    weight: Optional[float] = None
    diagnosis: Optional[str] = None
    treatment: Optional[str] = None
    created_by: Optional[UserSummary] = None
    demographic_created_by: Optional[UserSummary] = None
    health_created_by: Optional[UserSummary] = None
    medical_created_by: Optional[UserSummary] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class EntryListResponse(CamelModel):
    entries: List[EntryResponse]
    pagination: Pagination


class UserResponse(CamelModel):
    id: int
    email: str
    name: Optional[str] = None
    role: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    entry_count: int = 0


class UserListResponse(CamelModel):
    users: List[UserResponse]
    pagination: Pagination


class UserCreate(CamelModel):
    email: EmailStr
    password: str = Field(min_length=6)
    name: Optional[str] = None
    role: Role = Role.USER


class UserUpdate(CamelModel):
    email: Optional[EmailStr] = None
    password: Optional[str] = Field(default=None, min_length=6)
    name: Optional[str] = None
    role: Optional[Role] = None


class LoginRequest(CamelModel):
    email: EmailStr
    password: str = Field(min_length=1)


class MeResponse(CamelModel):
    user: UserResponse
    capabilities: Dict[str, bool]


class LoginResponse(MeResponse):
    access_token: str
    token_type: str = "bearer"
