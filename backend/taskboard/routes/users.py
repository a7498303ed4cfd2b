"""
TaskBoard Backend - User Route Handlers
=======================================

What:  GET /users, GET /users/me, GET /users/{user_id}, PATCH /users/me,
       DELETE /users/me.
How:   All endpoints sit behind the session gate; handlers delegate to
       UserService and map records to UserResponse (no password hash).
"""

import logging

from fastapi import APIRouter, Depends, Query, Response, status

from taskboard.dependencies import SessionContext, get_user_service, require_session
from taskboard.routes.auth import clear_session_cookie
from taskboard.schemas.common import ErrorResponse
from taskboard.schemas.user import UserListResponse, UserResponse, UserUpdateRequest
from taskboard.services.user_service import UserService

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/users",
    tags=["Users"],
    responses={401: {"description": "No live session", "model": ErrorResponse}},
)


@router.get(
    "",
    response_model=UserListResponse,
    summary="List users with offset pagination",
)
async def list_users(
    response: Response,
    limit: int = Query(default=20, ge=1, le=100, description="Items per page (max 100)"),
    offset: int = Query(default=0, ge=0),
    ctx: SessionContext = Depends(require_session),
    users: UserService = Depends(get_user_service),
) -> UserListResponse:
    records, total = await users.list(limit=limit, offset=offset)
    response.headers["X-Total-Count"] = str(total)
    return UserListResponse(
        users=[UserResponse.model_validate(r, from_attributes=True) for r in records],
        total_count=total,
        limit=limit,
        offset=offset,
    )


@router.get("/me", response_model=UserResponse, summary="Current user")
async def get_me(
    ctx: SessionContext = Depends(require_session),
    users: UserService = Depends(get_user_service),
) -> UserResponse:
    return UserResponse.model_validate(await users.get(ctx.user_id), from_attributes=True)


@router.patch(
    "/me",
    response_model=UserResponse,
    responses={
        400: {"description": "Username or name outside allowed length", "model": ErrorResponse},
        409: {"description": "Username already taken", "model": ErrorResponse},
    },
    summary="Update the current user's profile",
)
async def update_me(
    body: UserUpdateRequest,
    ctx: SessionContext = Depends(require_session),
    users: UserService = Depends(get_user_service),
) -> UserResponse:
    record = await users.update(ctx.user_id, body.changes())
    return UserResponse.model_validate(record, from_attributes=True)


@router.delete(
    "/me",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete the current user and all of their sessions",
)
async def delete_me(
    ctx: SessionContext = Depends(require_session),
    users: UserService = Depends(get_user_service),
) -> Response:
    await users.delete(ctx.user_id)
    response = Response(status_code=status.HTTP_204_NO_CONTENT)
    clear_session_cookie(response)
    return response


@router.get(
    "/{user_id}",
    response_model=UserResponse,
    responses={404: {"description": "User not found", "model": ErrorResponse}},
    summary="Get a user by id",
)
async def get_user(
    user_id: int,
    ctx: SessionContext = Depends(require_session),
    users: UserService = Depends(get_user_service),
) -> UserResponse:
    return UserResponse.model_validate(await users.get(user_id), from_attributes=True)
