from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field, model_validator

from tix.models.user import UserRole

from .base import CamelModel


class UserBase(CamelModel):
    email: EmailStr
    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    profile_image_url: Optional[str] = None


class UserCreate(UserBase):
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    password: str = Field(..., min_length=6, max_length=128)
    confirm_password: str

    @model_validator(mode="after")
    def passwords_match(self) -> "UserCreate":
        if self.password != self.confirm_password:
            raise ValueError("Passwords don't match")
        return self


class UserLogin(CamelModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class User(UserBase):
    id: str
    role: UserRole
    created_at: Optional[datetime] = None


class AuthResponse(CamelModel):
    token: str
    user: User


class TokenPayload(BaseModel):
    sub: Optional[str] = None
