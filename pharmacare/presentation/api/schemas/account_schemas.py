"""Pydantic schemas for account lifecycle endpoints."""

from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field


class LoginRequest(BaseModel):
    """Request schema for signing in."""

    email: EmailStr
    password: str


class RegisterRequest(BaseModel):
    """Request schema for account registration."""

    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    email: EmailStr
    password: str
    confirm_password: str


class VerifyOtpRequest(BaseModel):
    otp: str


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    token: str
    new_password: str


class FormViewResponse(BaseModel):
    """Data needed to render a form, including the submission token."""

    csrf_token: str
    message: Optional[str] = None
    redirect_to: Optional[str] = None


class OutcomeResponse(BaseModel):
    message: str
    next_step: str
    redirect_to: str


class SessionUserResponse(BaseModel):
    id: int
    name: str
    role: str


class LoginResponse(BaseModel):
    message: str
    redirect_to: str
    user: SessionUserResponse
    csrf_token: str


class ErrorResponse(BaseModel):
    error: str
    detail: str
    violations: List[str] = Field(default_factory=list)
    fields: List[str] = Field(default_factory=list)
