import uuid

from fastapi import APIRouter, Depends

from app.api.dependencies import require_super_admin
from app.cqrs.commands import roles as roles_commands
from app.cqrs.queries import roles as roles_queries
from app.models.schemas import AdminCreate, RoleAssign, RoleOut, RoleRevoked, UserRoleOut

router = APIRouter(
    prefix="/admin/users",
    tags=["admin-users"],
    dependencies=[Depends(require_super_admin)],
)


@router.get("", response_model=list[UserRoleOut])
def list_users():
    return roles_queries.list_users()


@router.post("", response_model=UserRoleOut, status_code=201)
def create_admin(payload: AdminCreate):
    return roles_commands.create_admin(payload.email, payload.password)


@router.put("/{user_id}/role", response_model=RoleOut)
def set_role(user_id: uuid.UUID, payload: RoleAssign):
    return roles_commands.set_role(user_id, payload.role)


@router.delete("/{user_id}/role", response_model=RoleRevoked)
def revoke_role(user_id: uuid.UUID):
    return roles_commands.revoke_role(user_id)
