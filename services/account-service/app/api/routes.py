"""HTTP route definitions for the account service."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request, Response, status
from pydantic import BaseModel, ConfigDict, EmailStr, Field

from schemas import AccountProfile, Role

from ..domain.account import Account
from ..domain.contracts import ProfileUpdate, RegisterAccountInput, RoleUpdate
from ..domain.errors import AuthenticationError, NotFoundError, PermissionDeniedError
from ..domain.service import AccountService
from ..security.tokens import SessionIssuer, SessionToken

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1")

NAME_MIN_LEN = 4
NAME_MAX_LEN = 30
PASSWORD_MIN_LEN = 8
PASSWORD_MAX_LEN = 128


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class RegisterRequest(BaseModel):
    """Payload accepted when registering a storefront account."""

    name: str = Field(..., min_length=NAME_MIN_LEN, max_length=NAME_MAX_LEN)
    email: EmailStr
    password: str = Field(..., min_length=PASSWORD_MIN_LEN, max_length=PASSWORD_MAX_LEN)
    avatar: str = Field(..., min_length=1, description="Image as a data URI or remote URL")


class LoginRequest(BaseModel):
    """Credentials for login; presence is checked by the service."""

    email: str | None = None
    password: str | None = None


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class ResetPasswordRequest(_CamelModel):
    password: str = Field(..., min_length=PASSWORD_MIN_LEN, max_length=PASSWORD_MAX_LEN)
    confirm_password: str = Field(..., alias="confirmPassword")


class UpdatePasswordRequest(_CamelModel):
    old_password: str = Field(..., alias="oldPassword", max_length=PASSWORD_MAX_LEN)
    new_password: str = Field(
        ..., alias="newPassword", min_length=PASSWORD_MIN_LEN, max_length=PASSWORD_MAX_LEN
    )
    confirm_password: str = Field(..., alias="confirmPassword")


class UpdateProfileRequest(BaseModel):
    name: str = Field(..., min_length=NAME_MIN_LEN, max_length=NAME_MAX_LEN)
    email: EmailStr


class UpdateRoleRequest(BaseModel):
    name: str = Field(..., min_length=NAME_MIN_LEN, max_length=NAME_MAX_LEN)
    email: EmailStr
    role: Role


class SessionResponse(BaseModel):
    """Returned whenever a request opens a session (register, login, resets)."""

    success: bool = True
    user: AccountProfile
    token: str


class AccountResponse(BaseModel):
    success: bool = True
    user: AccountProfile


class AccountListResponse(BaseModel):
    success: bool = True
    users: list[AccountProfile]


class MessageResponse(BaseModel):
    success: bool = True
    message: str


def get_service(request: Request) -> AccountService:
    """Resolve the `AccountService` stored on the FastAPI application state."""
    service: AccountService = request.app.state.account_service
    return service


def get_sessions(request: Request) -> SessionIssuer:
    """Resolve the `SessionIssuer` stored on the FastAPI application state."""
    sessions: SessionIssuer = request.app.state.session_issuer
    return sessions


def get_current_account(
    request: Request,
    service: AccountService = Depends(get_service),
    sessions: SessionIssuer = Depends(get_sessions),
) -> Account:
    """Require a valid session cookie and return the account it belongs to."""
    token = request.cookies.get(sessions.cookie_name)
    if not token:
        raise AuthenticationError("Please Login to access this resource")
    account_id = sessions.decode(token)
    try:
        return service.get_account(account_id)
    except NotFoundError as exc:
        raise AuthenticationError("Please Login to access this resource") from exc


def require_admin(account: Account = Depends(get_current_account)) -> Account:
    """Require an authenticated account with the admin role."""
    if account.role != Role.admin:
        raise PermissionDeniedError(f"Role: {account.role.value} is not allowed to access this resource")
    return account


def _open_session(
    account: Account, token: SessionToken, response: Response, sessions: SessionIssuer
) -> SessionResponse:
    sessions.attach(token, response)
    return SessionResponse(user=account.to_profile(), token=token.value)


def _base_url(request: Request) -> str:
    host = request.headers.get("host") or request.url.netloc
    return f"{request.url.scheme}://{host}"


@router.post("/register", response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
def register(
    payload: RegisterRequest,
    response: Response,
    service: AccountService = Depends(get_service),
    sessions: SessionIssuer = Depends(get_sessions),
) -> SessionResponse:
    """Register an account with an avatar and sign it in."""
    account, token = service.register(
        RegisterAccountInput(
            name=payload.name,
            email=payload.email,
            password=payload.password,
            avatar_image=payload.avatar,
        )
    )
    return _open_session(account, token, response, sessions)


@router.post("/login", response_model=SessionResponse)
def login(
    payload: LoginRequest,
    response: Response,
    service: AccountService = Depends(get_service),
    sessions: SessionIssuer = Depends(get_sessions),
) -> SessionResponse:
    account, token = service.login(payload.email, payload.password)
    return _open_session(account, token, response, sessions)


@router.get("/logout", response_model=MessageResponse)
def logout(response: Response, sessions: SessionIssuer = Depends(get_sessions)) -> MessageResponse:
    """Clear the session cookie. Issued tokens stay valid until they expire."""
    sessions.revoke(response)
    return MessageResponse(message="Logged Out")


@router.post("/password/forgot", response_model=MessageResponse)
def forgot_password(
    payload: ForgotPasswordRequest,
    request: Request,
    service: AccountService = Depends(get_service),
) -> MessageResponse:
    account = service.request_password_reset(payload.email, _base_url(request))
    return MessageResponse(message=f"Email sent to {account.email} successfully")


@router.put("/password/reset/{token}", response_model=SessionResponse)
def reset_password(
    token: str,
    payload: ResetPasswordRequest,
    response: Response,
    service: AccountService = Depends(get_service),
    sessions: SessionIssuer = Depends(get_sessions),
) -> SessionResponse:
    account, session = service.reset_password(token, payload.password, payload.confirm_password)
    return _open_session(account, session, response, sessions)


@router.get("/me", response_model=AccountResponse)
def get_own_details(account: Account = Depends(get_current_account)) -> AccountResponse:
    return AccountResponse(user=account.to_profile())


@router.put("/password/update", response_model=SessionResponse)
def update_password(
    payload: UpdatePasswordRequest,
    response: Response,
    account: Account = Depends(get_current_account),
    service: AccountService = Depends(get_service),
    sessions: SessionIssuer = Depends(get_sessions),
) -> SessionResponse:
    """Change the signed-in account's password and rotate its session."""
    updated, token = service.change_password(
        account.account_id,
        payload.old_password,
        payload.new_password,
        payload.confirm_password,
    )
    return _open_session(updated, token, response, sessions)


@router.put("/me/update", response_model=AccountResponse)
def update_profile(
    payload: UpdateProfileRequest,
    account: Account = Depends(get_current_account),
    service: AccountService = Depends(get_service),
) -> AccountResponse:
    updated = service.update_profile(
        account.account_id, ProfileUpdate(name=payload.name, email=payload.email)
    )
    return AccountResponse(user=updated.to_profile())


@router.get("/admin/users", response_model=AccountListResponse)
def list_accounts(
    _admin: Account = Depends(require_admin),
    service: AccountService = Depends(get_service),
) -> AccountListResponse:
    return AccountListResponse(users=[account.to_profile() for account in service.list_accounts()])


@router.get("/admin/user/{account_id}", response_model=AccountResponse)
def get_account(
    account_id: str,
    _admin: Account = Depends(require_admin),
    service: AccountService = Depends(get_service),
) -> AccountResponse:
    return AccountResponse(user=service.get_account(account_id).to_profile())


@router.put("/admin/user/{account_id}", response_model=AccountResponse)
def update_role(
    account_id: str,
    payload: UpdateRoleRequest,
    admin: Account = Depends(require_admin),
    service: AccountService = Depends(get_service),
) -> AccountResponse:
    """Update another account's name, email and role."""
    updated = service.update_role(
        account_id, RoleUpdate(name=payload.name, email=payload.email, role=payload.role)
    )
    logger.info("admin %s updated account %s", admin.account_id, account_id)
    return AccountResponse(user=updated.to_profile())


@router.delete("/admin/user/{account_id}", response_model=MessageResponse)
def delete_account(
    account_id: str,
    admin: Account = Depends(require_admin),
    service: AccountService = Depends(get_service),
) -> MessageResponse:
    service.delete_account(account_id)
    logger.info("admin %s deleted account %s", admin.account_id, account_id)
    return MessageResponse(message="User Deleted Successfully")
