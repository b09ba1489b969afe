from fastapi import APIRouter
from pydantic import BaseModel, Field

from aidfusion.core.modules.user.models import AdminUserView
from aidfusion.web.deps import AppDep, SessionDep
from aidfusion.web.openapi import ErrorResponse

router = APIRouter(tags=["admin"])


class UserListResponse(BaseModel):
    users: list[AdminUserView] = Field(..., description="All users, newest first")


class UpdateRoleRequest(BaseModel):
    """Role change request."""

    role: str = Field(..., description="New role: 'user' or 'admin'")


class UpdateRoleResponse(BaseModel):
    success: bool = Field(..., description="Whether the role was updated")


@router.get(
    "/admin/users",
    summary="List all users",
    description="Get all users in the system. Only accessible by admin users.",
    operation_id="listUsers",
    responses={
        200: {"description": "List of all users"},
        401: {"model": ErrorResponse, "description": "Not authenticated"},
        403: {"model": ErrorResponse, "description": "Admin privileges required"},
    },
)
async def list_users(app: AppDep, claims: SessionDep) -> UserListResponse:
    return UserListResponse(users=await app.list_users(claims))


@router.patch(
    "/admin/users/{user_id}",
    summary="Change user role",
    description="Grant or revoke admin access. Only accessible by admin users; admins cannot revoke their own access.",
    operation_id="updateUserRole",
    responses={
        200: {"description": "Role updated"},
        400: {"model": ErrorResponse, "description": "Invalid user id or role"},
        401: {"model": ErrorResponse, "description": "Not authenticated"},
        403: {"model": ErrorResponse, "description": "Admin privileges required or self-demotion"},
        404: {"model": ErrorResponse, "description": "User not found"},
    },
)
async def update_user_role(user_id: str, request: UpdateRoleRequest, app: AppDep, claims: SessionDep) -> UpdateRoleResponse:
    await app.change_user_role(claims, user_id, request.role)
    return UpdateRoleResponse(success=True)
