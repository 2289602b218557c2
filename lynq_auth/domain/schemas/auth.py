from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from ..validation import email_violation, normalize_email, password_violation


# ---------- requests ----------
class _EmailIn(BaseModel):
    email: Optional[str] = None

    @field_validator("email")
    @classmethod
    def normalize(cls, v):
        if v is None:
            return None
        return normalize_email(v) or None


class SignupIn(_EmailIn):
    password: Optional[str] = None

    @model_validator(mode="after")
    def check(self):
        if not self.email or not self.password:
            raise ValueError("Email and password are required")
        problem = email_violation(self.email) or password_violation(self.password)
        if problem:
            raise ValueError(problem)
        return self


class LoginIn(_EmailIn):
    password: Optional[str] = None

    @model_validator(mode="after")
    def check(self):
        if not self.email or not self.password:
            raise ValueError("Email and password are required")
        return self


class VerifyCodeIn(_EmailIn):
    code: Optional[str] = None

    @field_validator("code")
    @classmethod
    def strip_code(cls, v):
        return v.strip() if v is not None else None

    @model_validator(mode="after")
    def check(self):
        if not self.email or not self.code:
            raise ValueError("Email and verification code are required")
        return self


class ResendCodeIn(_EmailIn):
    @model_validator(mode="after")
    def check(self):
        if not self.email:
            raise ValueError("Email is required")
        return self


# ---------- responses ----------
class UserOut(BaseModel):
    id: str
    email: str
    name: str
    is_verified: bool = Field(serialization_alias="isVerified")

    @classmethod
    def from_model(cls, u) -> "UserOut":
        return cls(id=str(u.id), email=u.email, name=u.name, is_verified=u.is_verified)


class MessageOut(BaseModel):
    success: bool = True
    message: str


class SignupOut(MessageOut):
    email: str


class LoginOut(MessageOut):
    email: str
    needs_verification: bool = Field(default=True, serialization_alias="needsVerification")


class VerifyOut(MessageOut):
    token: str
    user: UserOut


class ErrorOut(BaseModel):
    success: bool = False
    message: str
