import logging

from fastapi import APIRouter, Depends, status

from fuelwarden.api.deps import forget_token, get_auth_context, get_new_auth_context
from fuelwarden.core.exceptions import NotAuthenticatedError
from fuelwarden.models.user import AuthUser
from fuelwarden.schemas.auth_request import (
    AuthStateResponse,
    OAuthRequest,
    PasswordRecoveryRequest,
    SignInRequest,
    SignInResponse,
    SignUpRequest,
    UpdateNameRequest,
    UpdatePasswordRequest,
)
from fuelwarden.services.auth_context import AuthContext
from fuelwarden.services.identity import OAuthRedirect

logger = logging.getLogger(__name__)
router = APIRouter()


def _signed_in(context: AuthContext) -> SignInResponse:
    return SignInResponse(
        status=context.status.value,
        user=context.user,
        session=context.session,
        has_completed_onboarding=context.has_completed_onboarding,
    )


@router.post(
    "/signup",
    response_model=SignInResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create an email/password account and sign it in",
)
async def sign_up(
    payload: SignUpRequest,
    context: AuthContext = Depends(get_new_auth_context),
):
    await context.sign_up(payload.email, payload.password, payload.name)
    return _signed_in(context)


@router.post("/signin", response_model=SignInResponse, summary="Sign in with email and password")
async def sign_in(
    payload: SignInRequest,
    context: AuthContext = Depends(get_new_auth_context),
):
    await context.sign_in(payload.email, payload.password)
    return _signed_in(context)


@router.post("/signout", status_code=status.HTTP_204_NO_CONTENT, summary="Sign out")
async def sign_out(context: AuthContext = Depends(get_auth_context)):
    """
    Ends the current session. The response is the same whether or not the
    identity provider could be reached.
    """
    if context.session is not None:
        forget_token(context.session.id_token)
    await context.sign_out()
    if context.error is not None:
        logger.warning(f"Sign-out completed locally only: {context.error.message}")


@router.post("/oauth", response_model=OAuthRedirect, summary="Start an OAuth sign-in")
async def create_oauth_session(
    payload: OAuthRequest,
    context: AuthContext = Depends(get_new_auth_context),
):
    return await context.create_oauth_session(
        payload.provider, payload.success_url, payload.failure_url
    )


@router.get("/me", response_model=AuthStateResponse, summary="Get the signed-in user")
async def read_users_me(context: AuthContext = Depends(get_auth_context)):
    """
    Get the current authenticated user and whether they have completed onboarding.
    """
    if not context.is_authenticated:
        raise NotAuthenticatedError()
    return AuthStateResponse(
        status=context.status.value,
        user=context.user,
        has_completed_onboarding=context.has_completed_onboarding,
    )


@router.post(
    "/recovery",
    status_code=status.HTTP_202_ACCEPTED,
    summary="Send a password recovery email",
)
async def create_password_recovery(
    payload: PasswordRecoveryRequest,
    context: AuthContext = Depends(get_new_auth_context),
):
    await context.create_password_recovery(payload.email, payload.url)
    return {"message": "If the account exists, a recovery email has been sent."}


@router.put("/password", response_model=AuthUser, summary="Change the account password")
async def update_password(
    payload: UpdatePasswordRequest,
    context: AuthContext = Depends(get_auth_context),
):
    return await context.update_password(payload.password)


@router.put("/name", response_model=AuthUser, summary="Change the account display name")
async def update_name(
    payload: UpdateNameRequest,
    context: AuthContext = Depends(get_auth_context),
):
    return await context.update_name(payload.name)
