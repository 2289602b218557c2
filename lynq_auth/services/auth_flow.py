from __future__ import annotations
import logging
import uuid
from dataclasses import dataclass

from ..auth.passwords import PasswordHasher
from ..domain.errors import (
    AccountExists, Conflict, InvalidCredentials, NotFound, UserNotFound, ValidationError,
)
from ..domain.validation import default_display_name, email_violation, password_violation
from ..models import User
from ..repos.base import UserStore
from .otp import OtpIssuer
from .verifier import Verifier, VerifiedSession

log = logging.getLogger("lynq_auth.flow")


@dataclass
class SignupResult:
    email: str
    resumed: bool  # True when an unverified account was picked up again


@dataclass
class LoginResult:
    email: str
    purpose: str  # 'signup' until the account is verified, then 'login'

    @property
    def message(self) -> str:
        if self.purpose == "signup":
            return "Please verify your email. Verification code sent."
        return "Verifying it's really you. Check your email for the code."


class AuthService:
    """Signup, login, code verification and resend.

    Login never hands out a token: every path ends with a code sent by email
    and a follow-up verify_code call.
    """

    def __init__(
        self,
        users: UserStore,
        issuer: OtpIssuer,
        verifier: Verifier,
        hasher: PasswordHasher,
    ) -> None:
        self._users = users
        self._issuer = issuer
        self._verifier = verifier
        self._hasher = hasher

    async def signup(self, email: str, password: str) -> SignupResult:
        problem = email_violation(email) or password_violation(password)
        if problem:
            raise ValidationError(problem)

        existing = await self._users.find_by_email(email)
        if existing is not None:
            if existing.is_verified:
                raise AccountExists()
            # unverified: let them pick a new password and get a fresh code
            await self._users.update(email, password_hash=await self._hasher.hash(password))
            await self._issuer.issue(email, "signup", name=_display_name(existing))
            log.info("signup_resumed", extra={"email": email})
            return SignupResult(email=email, resumed=True)

        password_hash = await self._hasher.hash(password)
        try:
            user = await self._users.create(
                email=email, password_hash=password_hash, name=default_display_name(email)
            )
        except Conflict:
            # lost a race with a concurrent signup for the same email
            user = await self._users.find_by_email(email)
            if user is None or user.is_verified:
                raise AccountExists()
        log.info("user_created", extra={"email": email, "user_id": str(user.id)})
        await self._issuer.issue(email, "signup", name=_display_name(user))
        return SignupResult(email=email, resumed=False)

    async def login(self, email: str, password: str) -> LoginResult:
        user = await self._users.find_by_email(email)
        if user is None:
            raise NotFound()

        if not await self._hasher.verify(password, user.password_hash):
            log.info("login_bad_password", extra={"email": email})
            raise InvalidCredentials()

        purpose = "login" if user.is_verified else "signup"
        await self._issuer.issue(email, purpose, name=_display_name(user))
        return LoginResult(email=email, purpose=purpose)

    async def verify_code(self, email: str, code: str) -> VerifiedSession:
        session = await self._verifier.verify(email, code)
        log.info("user_authenticated", extra={"email": email, "user_id": str(session.user.id)})
        return session

    async def resend_code(self, email: str) -> str:
        user = await self._users.find_by_email(email)
        if user is None:
            raise UserNotFound()
        purpose = "login" if user.is_verified else "signup"
        await self._issuer.issue(email, purpose, name=_display_name(user))
        return purpose

    async def profile(self, user_id: uuid.UUID) -> User:
        user = await self._users.get_by_id(user_id)
        if user is None:
            raise UserNotFound()
        return user


def _display_name(user: User) -> str:
    return user.name or default_display_name(user.email)
