"""Authentication API endpoints."""

import logging
from typing import Annotated, Any

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, ValidationInfo, field_validator

from dancehub.auth.dependencies import require_identity
from dancehub.auth.jwt_service import JWTService
from dancehub.auth.password import PasswordService
from dancehub.auth.recaptcha import RecaptchaVerifier
from dancehub.auth.resolver import SESSION_COOKIE
from dancehub.auth.types import DEFAULT_ROLE, Identity
from dancehub.crud.config import apply_projection
from dancehub.crud.errors import Conflict, DomainError, Forbidden, NotFound, Unauthorized
from dancehub.crud.responses import success_response
from dancehub.features.common import timestamp
from dancehub.features.schemas import Email, PersonName
from dancehub.features.users import find_user_by_email
from dancehub.persistence import DocumentStore

logger = logging.getLogger(__name__)

HIDDEN_USER_FIELDS = {"password": 0}


def _passwords_match(value: str, info: ValidationInfo, field: str) -> str:
    if field in info.data and value != info.data[field]:
        raise ValueError("Passwords don't match")
    return value


class RegisterRequest(BaseModel):
    """Request body for self-registration."""

    name: PersonName
    email: Email
    password: Annotated[str, Field(min_length=6)]
    confirmPassword: str
    recaptchaToken: str | None = None

    @field_validator("confirmPassword")
    @classmethod
    def confirm_matches(cls, value: str, info: ValidationInfo) -> str:
        return _passwords_match(value, info, "password")


class LoginRequest(BaseModel):
    """Request body for login."""

    email: str
    password: str


class ChangePasswordRequest(BaseModel):
    """Request body for changing password."""

    currentPassword: Annotated[str, Field(min_length=1)]
    newPassword: Annotated[str, Field(min_length=6)]
    confirmPassword: str

    @field_validator("confirmPassword")
    @classmethod
    def confirm_matches(cls, value: str, info: ValidationInfo) -> str:
        return _passwords_match(value, info, "newPassword")


def public_user(user: dict[str, Any]) -> dict[str, Any]:
    """A user record without its password hash."""
    return apply_projection(user, HIDDEN_USER_FIELDS)


def create_auth_router(
    jwt_service: JWTService,
    password_service: PasswordService,
    store: DocumentStore,
    recaptcha: RecaptchaVerifier | None = None,
    cookie_name: str = SESSION_COOKIE,
    cookie_secure: bool = False,
) -> APIRouter:
    """Create the auth router with injected dependencies.

    Args:
        jwt_service: JWT service for session tokens
        password_service: Password service for hashing and verification
        store: Document store holding the ``users`` collection
        recaptcha: Verifier for registration; None disables the check
        cookie_name: Name of the session cookie
        cookie_secure: Mark the session cookie Secure (HTTPS only)

    Returns:
        Configured APIRouter
    """
    router = APIRouter(prefix="/api/auth", tags=["auth"])

    @router.post("/register")
    async def register(request: RegisterRequest) -> JSONResponse:
        """Register a new visitor account.

        Raises:
            DomainError: reCAPTCHA verification failed
            Conflict: A user with this email already exists
        """
        if recaptcha is not None and not await recaptcha.verify(request.recaptchaToken):
            raise DomainError("reCAPTCHA verification failed. Please try again.")

        if find_user_by_email(store, request.email) is not None:
            raise Conflict("User with this email already exists")

        now = timestamp()
        user = store.insert_one(
            "users",
            {
                "name": request.name,
                "email": request.email,
                "password": password_service.hash(request.password),
                "role": DEFAULT_ROLE,
                "status": "active",
                "createdAt": now,
                "updatedAt": now,
            },
        )
        logger.info("Registered user %s", user["id"])

        return success_response(public_user(user), status_code=201).to_json_response()

    @router.post("/login")
    async def login(request: LoginRequest) -> JSONResponse:
        """Authenticate a user and start a session.

        The session token is set as an HTTP-only cookie and also returned
        in the body for Bearer use.

        Raises:
            Unauthorized: Credentials invalid
            Forbidden: User account is disabled
        """
        user = find_user_by_email(store, request.email)
        if user is None or not password_service.verify(request.password, user.get("password")):
            raise Unauthorized("Invalid email or password")

        if user.get("status") == "inactive":
            raise Forbidden("User account is disabled")

        role = user.get("role") or DEFAULT_ROLE
        token = jwt_service.generate_access_token(user["id"], role)

        response = success_response(
            {"token": token, "user": public_user(user)}
        ).to_json_response()
        response.set_cookie(
            cookie_name,
            token,
            max_age=jwt_service.ACCESS_TOKEN_TTL,
            httponly=True,
            secure=cookie_secure,
            samesite="lax",
        )
        return response

    @router.post("/logout")
    async def logout() -> JSONResponse:
        """End the session by clearing the cookie."""
        response = success_response({"loggedOut": True}).to_json_response()
        response.delete_cookie(cookie_name)
        return response

    @router.get("/me")
    async def me(identity: Identity = Depends(require_identity)) -> JSONResponse:
        """Return the signed-in user's record."""
        user = store.get("users", identity.subject)
        if user is None:
            raise NotFound("User not found")
        return success_response(public_user(user)).to_json_response()

    @router.put("/change-password")
    async def change_password(
        request: ChangePasswordRequest,
        identity: Identity = Depends(require_identity),
    ) -> JSONResponse:
        """Change the signed-in user's password.

        Raises:
            NotFound: The user record no longer exists
            DomainError: Current password is incorrect
        """
        user = store.get("users", identity.subject)
        if user is None:
            raise NotFound("User not found")

        if not password_service.verify(request.currentPassword, user.get("password")):
            raise DomainError("Current password is incorrect")

        store.update_one(
            "users",
            identity.subject,
            {"password": password_service.hash(request.newPassword), "updatedAt": timestamp()},
        )
        logger.info("Password changed for user %s", identity.subject)

        return success_response({"id": identity.subject}).to_json_response()

    return router
