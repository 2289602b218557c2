from __future__ import annotations
import uuid
from typing import Any, Dict

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel

from ...auth.deps import get_current_claims
from ...deps import get_auth_service
from ...domain.schemas.auth import (
    LoginIn, LoginOut, MessageOut, ResendCodeIn, SignupIn, SignupOut, UserOut, VerifyCodeIn, VerifyOut,
)
from ...services.auth_flow import AuthService
from ...services.rate_limit import limit_otp_request, limit_otp_verify
from ..errors import fails_as

router = APIRouter(tags=["auth"])


class MeOut(BaseModel):
    success: bool = True
    user: UserOut


# Signup - email + password -> code by email
@router.post(
    "/signup",
    response_model=SignupOut,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(limit_otp_request)],
)
async def signup(payload: SignupIn, svc: AuthService = Depends(get_auth_service)):
    async with fails_as("signup", "Signup failed. Please try again."):
        await svc.signup(payload.email, payload.password)
    return SignupOut(message="Verification code sent to email", email=payload.email)


# Login - email + password -> always a code step, never a token
@router.post("/login", response_model=LoginOut, dependencies=[Depends(limit_otp_request)])
async def login(payload: LoginIn, svc: AuthService = Depends(get_auth_service)):
    async with fails_as("login", "Login failed. Please try again."):
        result = await svc.login(payload.email, payload.password)
    return LoginOut(message=result.message, email=result.email)


# Verify code (signup and login)
@router.post("/verify-code", response_model=VerifyOut, dependencies=[Depends(limit_otp_verify)])
async def verify_code(payload: VerifyCodeIn, svc: AuthService = Depends(get_auth_service)):
    async with fails_as("verify_code", "Verification failed. Please try again."):
        session = await svc.verify_code(payload.email, payload.code)
    return VerifyOut(
        message="Verification successful",
        token=session.token,
        user=UserOut.from_model(session.user),
    )


@router.post("/resend-code", response_model=MessageOut, dependencies=[Depends(limit_otp_request)])
async def resend_code(payload: ResendCodeIn, svc: AuthService = Depends(get_auth_service)):
    async with fails_as("resend_code", "Failed to resend code. Please try again."):
        await svc.resend_code(payload.email)
    return MessageOut(message="New verification code sent to email")


@router.get("/me", response_model=MeOut)
async def me(
    claims: Dict[str, Any] = Depends(get_current_claims),
    svc: AuthService = Depends(get_auth_service),
):
    async with fails_as("me", "Could not load profile. Please try again."):
        user = await svc.profile(uuid.UUID(claims["id"]))
    return MeOut(user=UserOut.from_model(user))
