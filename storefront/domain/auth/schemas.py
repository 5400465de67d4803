"""Auth domain schemas - Pydantic models for sign-in"""

from typing import Optional

from pydantic import BaseModel, Field


class SignInRequest(BaseModel):
    identifier: str = Field(min_length=1, max_length=255)  # Email or phone number
    password: str = Field(min_length=1, max_length=128)


class UserResponse(BaseModel):
    id: str
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    role: str


class SignInResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserResponse
