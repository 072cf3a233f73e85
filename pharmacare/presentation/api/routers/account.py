"""API router for the account lifecycle: login, registration, OTP and password reset."""

from typing import Optional

from fastapi import APIRouter, Depends, status

from ....application.services.account_service import (
    NEXT_LOGIN,
    NEXT_REGISTER,
    NEXT_RESET_PASSWORD,
    NEXT_VERIFY_OTP,
    RESET_REQUESTED_MESSAGE,
    AccountOutcome,
    AccountService,
)
from ....core.dependencies import get_account_service
from ....domain.exceptions import UserNotFound
from ....domain.models import RegistrationProfile
from ....infrastructure.session_store import MappingSessionStore
from ..dependencies import get_session_store, issue_csrf_token, require_csrf_token
from ..schemas.account_schemas import (
    ForgotPasswordRequest,
    FormViewResponse,
    LoginRequest,
    LoginResponse,
    OutcomeResponse,
    RegisterRequest,
    ResetPasswordRequest,
    SessionUserResponse,
    VerifyOtpRequest,
)

router = APIRouter(prefix="/account", tags=["account"])

ROUTES = {
    NEXT_LOGIN: "/account/login",
    NEXT_REGISTER: "/account/register",
    NEXT_VERIFY_OTP: "/account/verify-otp",
    NEXT_RESET_PASSWORD: "/account/reset-password",
}


def _outcome(outcome: AccountOutcome) -> OutcomeResponse:
    return OutcomeResponse(
        message=outcome.message,
        next_step=outcome.next_step,
        redirect_to=ROUTES[outcome.next_step],
    )


# Login / logout ---------------------------------------------------------------
@router.get("/login", response_model=FormViewResponse)
async def login_form(
    session: MappingSessionStore = Depends(get_session_store),
    account_service: AccountService = Depends(get_account_service),
) -> FormViewResponse:
    """Login form; signed-in visitors are pointed at their landing page."""
    landing = account_service.login_view(session)
    return FormViewResponse(csrf_token=issue_csrf_token(session), redirect_to=landing)


@router.post("/login", response_model=LoginResponse, dependencies=[Depends(require_csrf_token)])
async def login(
    payload: LoginRequest,
    session: MappingSessionStore = Depends(get_session_store),
    account_service: AccountService = Depends(get_account_service),
) -> LoginResponse:
    result = await account_service.login(session, payload.email, payload.password)
    return LoginResponse(
        message=f"Welcome, {result.user.display_name}!",
        redirect_to=result.landing_route,
        user=SessionUserResponse(
            id=result.user.id,
            name=result.user.display_name,
            role=result.user.role,
        ),
        csrf_token=issue_csrf_token(session),
    )


@router.post("/logout", response_model=OutcomeResponse, dependencies=[Depends(require_csrf_token)])
async def logout(
    session: MappingSessionStore = Depends(get_session_store),
    account_service: AccountService = Depends(get_account_service),
) -> OutcomeResponse:
    return _outcome(account_service.logout(session))


# Registration -----------------------------------------------------------------
@router.get("/register", response_model=FormViewResponse)
async def register_form(
    session: MappingSessionStore = Depends(get_session_store),
) -> FormViewResponse:
    return FormViewResponse(csrf_token=issue_csrf_token(session))


@router.post(
    "/register",
    response_model=OutcomeResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_csrf_token)],
)
async def register(
    payload: RegisterRequest,
    session: MappingSessionStore = Depends(get_session_store),
    account_service: AccountService = Depends(get_account_service),
) -> OutcomeResponse:
    profile = RegistrationProfile(
        email=payload.email,
        first_name=payload.first_name,
        last_name=payload.last_name,
    )
    outcome = await account_service.register(
        session, profile, payload.password, payload.confirm_password
    )
    return _outcome(outcome)


# Email verification -----------------------------------------------------------
@router.get("/verify-otp", response_model=FormViewResponse)
async def verify_otp_form(
    session: MappingSessionStore = Depends(get_session_store),
    account_service: AccountService = Depends(get_account_service),
) -> FormViewResponse:
    outcome = account_service.verify_otp_view(session)
    redirect_to: Optional[str] = None
    if outcome.next_step != NEXT_VERIFY_OTP:
        redirect_to = ROUTES[outcome.next_step]
    return FormViewResponse(
        csrf_token=issue_csrf_token(session),
        message=outcome.message,
        redirect_to=redirect_to,
    )


@router.post("/verify-otp", response_model=OutcomeResponse, dependencies=[Depends(require_csrf_token)])
async def verify_otp(
    payload: VerifyOtpRequest,
    session: MappingSessionStore = Depends(get_session_store),
    account_service: AccountService = Depends(get_account_service),
) -> OutcomeResponse:
    return _outcome(await account_service.verify_otp(session, payload.otp))


@router.post("/resend-otp", response_model=OutcomeResponse, dependencies=[Depends(require_csrf_token)])
async def resend_otp(
    session: MappingSessionStore = Depends(get_session_store),
    account_service: AccountService = Depends(get_account_service),
) -> OutcomeResponse:
    return _outcome(await account_service.resend_otp(session))


# Password reset ---------------------------------------------------------------
@router.get("/forgot-password", response_model=FormViewResponse)
async def forgot_password_form(
    session: MappingSessionStore = Depends(get_session_store),
) -> FormViewResponse:
    return FormViewResponse(csrf_token=issue_csrf_token(session))


@router.post(
    "/forgot-password",
    response_model=OutcomeResponse,
    dependencies=[Depends(require_csrf_token)],
)
async def forgot_password(
    payload: ForgotPasswordRequest,
    account_service: AccountService = Depends(get_account_service),
) -> OutcomeResponse:
    try:
        outcome = await account_service.forgot_password(payload.email)
    except UserNotFound:
        # Same answer as for a registered address.
        outcome = AccountOutcome(RESET_REQUESTED_MESSAGE, NEXT_LOGIN)
    return _outcome(outcome)


@router.get("/reset-password", response_model=FormViewResponse)
async def reset_password_form(
    token: str = "",
    session: MappingSessionStore = Depends(get_session_store),
    account_service: AccountService = Depends(get_account_service),
) -> FormViewResponse:
    outcome = account_service.reset_password_view(token)
    return FormViewResponse(csrf_token=issue_csrf_token(session), message=outcome.message)


@router.post("/reset-password", response_model=OutcomeResponse, dependencies=[Depends(require_csrf_token)])
async def reset_password(
    payload: ResetPasswordRequest,
    account_service: AccountService = Depends(get_account_service),
) -> OutcomeResponse:
    return _outcome(await account_service.reset_password(payload.token, payload.new_password))
