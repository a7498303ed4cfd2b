"""
TaskBoard Backend - Auth Route Handlers
=======================================

What:  POST /auth/signup, POST /auth/signin, DELETE /auth/logout.
How:   Validate the body, call AuthService, translate the outcome into a
       response and the session cookie.
Who:   Called by the frontend login and registration screens.

Cookie:
    <SESSION_COOKIE_NAME>=<token>; HttpOnly; Path=/; SameSite=Lax;
    Max-Age=<SESSION_LIFETIME>; Secure when SESSION_COOKIE_SECURE=true
"""

import logging

from fastapi import APIRouter, Depends, Response, status

from taskboard.config import settings
from taskboard.dependencies import SessionContext, get_auth_service, require_session
from taskboard.exceptions import UserNotFoundError, WrongLoginOrPasswordError
from taskboard.schemas.auth import SignInParams, SignInRequest, SignUpParams, SignUpRequest
from taskboard.schemas.common import ErrorResponse
from taskboard.schemas.user import UserResponse
from taskboard.services.auth_service import AuthService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Auth"])


def set_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=settings.session_cookie_name,
        value=token,
        max_age=settings.session_lifetime,
        path="/",
        httponly=True,
        secure=settings.session_cookie_secure,
        samesite="lax",
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(
        key=settings.session_cookie_name,
        path="/",
        httponly=True,
        secure=settings.session_cookie_secure,
        samesite="lax",
    )


@router.post(
    "/signup",
    response_model=UserResponse,
    responses={
        409: {"description": "Username already taken", "model": ErrorResponse},
        422: {"description": "Malformed request body"},
        500: {"description": "Server error", "model": ErrorResponse},
    },
    summary="Register a new user and open a session",
)
async def sign_up(
    body: SignUpRequest,
    response: Response,
    auth: AuthService = Depends(get_auth_service),
) -> UserResponse:
    user, token = await auth.sign_up(SignUpParams(**body.model_dump()))
    set_session_cookie(response, token)
    return UserResponse.model_validate(user, from_attributes=True)


@router.post(
    "/signin",
    response_model=UserResponse,
    responses={
        401: {"description": "Wrong login or password", "model": ErrorResponse},
        500: {"description": "Server error", "model": ErrorResponse},
    },
    summary="Sign in with username and password",
)
async def sign_in(
    body: SignInRequest,
    response: Response,
    auth: AuthService = Depends(get_auth_service),
) -> UserResponse:
    """
    Unknown usernames and wrong passwords produce the same 401 body, so the
    response cannot be used to discover which usernames exist.
    """
    try:
        user, token = await auth.sign_in(SignInParams(**body.model_dump()))
    except UserNotFoundError as e:
        raise WrongLoginOrPasswordError() from e

    set_session_cookie(response, token)
    return UserResponse.model_validate(user, from_attributes=True)


@router.delete(
    "/logout",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={401: {"description": "No live session", "model": ErrorResponse}},
    summary="Revoke the current session",
)
async def logout(
    ctx: SessionContext = Depends(require_session),
    auth: AuthService = Depends(get_auth_service),
) -> Response:
    await auth.logout(ctx.user_id, ctx.token)
    response = Response(status_code=status.HTTP_204_NO_CONTENT)
    clear_session_cookie(response)
    return response
