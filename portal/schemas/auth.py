from typing import Literal, Optional

from pydantic import BaseModel, EmailStr, Field


Role = Literal["admin", "atc", "student"]


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    role: Role


class TokenData(BaseModel):
    # Database id of the principal (users, subcenters or students document)
    subject: Optional[str] = None
    role: Optional[Role] = None
    center_id: Optional[str] = None


class LoginRequest(BaseModel):
    type: Role
    identifier: str
    password: str


class UserBase(BaseModel):
    username: str
    full_name: Optional[str] = None
    email: EmailStr


class UserCreate(UserBase):
    password: str


class UserOut(UserBase):
    id: str
    role: str
    is_active: bool


class Principal(BaseModel):
    id: str
    role: Role
    name: Optional[str] = None
    email: Optional[str] = None
    login_id: str
    center_id: Optional[str] = None


class ProfileUpdate(BaseModel):
    current_password: str
    email: Optional[EmailStr] = None
    full_name: Optional[str] = None
    new_password: Optional[str] = Field(None, min_length=6)
