"""Schemas for signup, login and the current-user endpoints."""

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, field_validator

from src.constants import MAX_PASSWORD_BYTES, MIN_PASSWORD_LENGTH


class SignupRequest(BaseModel):
    email: str = Field(..., min_length=3, examples=["dev@example.com"])
    password: str = Field(..., min_length=MIN_PASSWORD_LENGTH)
    name: Optional[str] = Field(default=None, max_length=200)

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        v = v.strip().lower()
        local, _, domain = v.partition("@")
        if not local or "." not in domain:
            raise ValueError("Invalid email address")
        return v

    @field_validator("password")
    @classmethod
    def validate_password_length(cls, v: str) -> str:
        if len(v.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise ValueError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")
        return v


class LoginRequest(BaseModel):
    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.strip().lower()


class UserResponse(BaseModel):
    message: Optional[str] = None
    user: Dict[str, Any]
