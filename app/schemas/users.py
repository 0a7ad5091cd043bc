import uuid
from datetime import datetime
from typing import Annotated

from pydantic import BaseModel, EmailStr, Field, StringConstraints

from app.schemas.common import ApiModel, PatchModel

TrimmedName = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=200)]


class UserOut(ApiModel):
    id: uuid.UUID
    email: str
    name: str
    avatar_url: str | None = None
    contact: str | None = None


class RegisterIn(BaseModel):
    email: EmailStr
    name: TrimmedName
    password: str = Field(min_length=6, max_length=256)


class LoginIn(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1, max_length=256)


class DemoLoginIn(BaseModel):
    type: str = "owner"


class GoogleLoginIn(BaseModel):
    credential: str = ""


class OtpRequestIn(BaseModel):
    email: EmailStr


class OtpVerifyIn(BaseModel):
    email: EmailStr
    code: str = Field(min_length=4, max_length=10)


class OtpRequestOut(ApiModel):
    ok: bool = True
    expires_at: datetime
    code: str | None = None


class AuthOut(ApiModel):
    access_token: str
    user: UserOut


class ProfileUpdate(PatchModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    avatar_url: str | None = Field(default=None, max_length=2_000_000)
    contact: str | None = Field(default=None, max_length=255)
