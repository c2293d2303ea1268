"""
Request bodies of the auth and document routes.

Fields are camelCase on the wire; optional fields whose absence produces a
route-specific error message are declared Optional and checked in the route.
"""

from typing import Optional

from pydantic import Field, field_validator

from vaisu.models.records import CamelModel


class RegisterRequest(CamelModel):
    email: str = Field(..., min_length=3, description="Account email")
    first_name: str = Field(..., min_length=1, max_length=50)
    last_name: str = Field(..., min_length=1, max_length=50)
    password: str = Field(..., min_length=8)

    @field_validator("first_name", "last_name", mode="before")
    @classmethod
    def strip_names(cls, value):
        return value.strip() if isinstance(value, str) else value

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, value):
        return value.strip().lower() if isinstance(value, str) else value


class LoginRequest(CamelModel):
    email: str = Field(..., min_length=3)
    password: str = Field(..., min_length=1)
    remember_me: Optional[bool] = None

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, value):
        return value.strip().lower() if isinstance(value, str) else value


class RefreshRequest(CamelModel):
    refresh_token: Optional[str] = None


class LogoutRequest(CamelModel):
    session_id: Optional[str] = None


class LogoutAllRequest(CamelModel):
    user_id: Optional[str] = None


class VerifyEmailRequest(CamelModel):
    user_id: str = Field(..., min_length=1)
    token: str = Field(..., min_length=1)


class PasswordResetRequest(CamelModel):
    email: str = Field(..., min_length=3)

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, value):
        return value.strip().lower() if isinstance(value, str) else value


class ResetPasswordRequest(CamelModel):
    user_id: str = Field(..., min_length=1)
    token: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=8)


class RevokeSessionRequest(CamelModel):
    session_id: Optional[str] = None


class UpdateProfileRequest(CamelModel):
    first_name: Optional[str] = Field(default=None, min_length=1, max_length=50)
    last_name: Optional[str] = Field(default=None, min_length=1, max_length=50)

    @field_validator("first_name", "last_name", mode="before")
    @classmethod
    def strip_names(cls, value):
        return value.strip() if isinstance(value, str) else value


class ChangePasswordRequest(CamelModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=8)


class DeleteAccountRequest(CamelModel):
    password: Optional[str] = None


class AnalyzeRequest(CamelModel):
    """Analyze an uploaded document by id, or raw text directly."""

    document_id: Optional[str] = None
    text: Optional[str] = None
    filename: Optional[str] = None
