import math

from fastapi import APIRouter, Depends, Query

from ....application.ports import IRefreshTokenRepository, IUserRepository
from ....application.use_cases.manage_users import ManageUsers
from ....domain.entities import Identity, Role
from ....domain.errors import ValidationError
from ..authz import get_token_repo, get_user_repo, require_admin, require_moderator
from ..schemas import Pagination, RoleReq, SuccessResp, UserEnvelope, UserListResp, UserResp

router = APIRouter(prefix="/api/admin", tags=["admin"])

def get_manage_users(
    repo: IUserRepository = Depends(get_user_repo),
    tokens: IRefreshTokenRepository = Depends(get_token_repo),
) -> ManageUsers:
    return ManageUsers(repo, tokens)

@router.get("/users", response_model=UserListResp, dependencies=[Depends(require_moderator)])
def list_users(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    role: str | None = Query(None),
    search: str | None = Query(None, max_length=100),
    uc: ManageUsers = Depends(get_manage_users),
):
    try:
        role_filter = Role(role) if role else None
    except ValueError:
        raise ValidationError(f"Unknown role: {role}")
    users, total = uc.list_users(page=page, limit=limit, role=role_filter, search=search)
    return UserListResp(
        users=[UserResp.from_user(u) for u in users],
        pagination=Pagination(page=page, limit=limit, total=total, pages=math.ceil(total / limit)),
    )

@router.get("/users/{user_id}", response_model=UserEnvelope, dependencies=[Depends(require_moderator)])
def get_user(user_id: int, uc: ManageUsers = Depends(get_manage_users)):
    return UserEnvelope(user=UserResp.from_user(uc.get_user(user_id)))

@router.put("/users/{user_id}/role", response_model=UserEnvelope)
def change_role(
    user_id: int,
    payload: RoleReq,
    actor: Identity = Depends(require_admin),
    uc: ManageUsers = Depends(get_manage_users),
):
    user = uc.change_role(actor, user_id, payload.role)
    return UserEnvelope(user=UserResp.from_user(user))

@router.delete("/users/{user_id}", response_model=SuccessResp)
def deactivate_user(
    user_id: int,
    actor: Identity = Depends(require_admin),
    uc: ManageUsers = Depends(get_manage_users),
):
    uc.deactivate(actor, user_id)
    return SuccessResp()
