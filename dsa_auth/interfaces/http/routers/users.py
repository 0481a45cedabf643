from fastapi import APIRouter, Depends

from ....application.ports import IRefreshTokenRepository, IUserRepository
from ....application.use_cases.manage_users import UpdateProfile, close_account, get_public_profile
from ....domain.entities import User
from ..authz import get_current_user, get_token_repo, get_user_repo
from ..schemas import PublicUserEnvelope, PublicUserResp, SuccessResp, UpdateProfileReq, UserEnvelope, UserResp

router = APIRouter(prefix="/api/users", tags=["users"])

@router.get("/profile", response_model=UserEnvelope)
def get_profile(user: User = Depends(get_current_user)):
    return UserEnvelope(user=UserResp.from_user(user))

@router.put("/profile", response_model=UserEnvelope)
def update_profile(
    payload: UpdateProfileReq,
    user: User = Depends(get_current_user),
    repo: IUserRepository = Depends(get_user_repo),
):
    updated = UpdateProfile(repo).execute(
        user.id, full_name=payload.full_name, username=payload.username, bio=payload.bio,
    )
    return UserEnvelope(user=UserResp.from_user(updated))

@router.delete("/account", response_model=SuccessResp)
def delete_account(
    user: User = Depends(get_current_user),
    repo: IUserRepository = Depends(get_user_repo),
    tokens: IRefreshTokenRepository = Depends(get_token_repo),
):
    close_account(repo, tokens, user.id)
    return SuccessResp()

# после /profile и /account, иначе они уйдут сюда как username
@router.get("/{username}", response_model=PublicUserEnvelope)
def public_profile(username: str, repo: IUserRepository = Depends(get_user_repo)):
    return PublicUserEnvelope(user=PublicUserResp.from_user(get_public_profile(repo, username)))
