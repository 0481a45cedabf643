from fastapi import APIRouter, Depends, Request, status

from ....application.ports import IPasswordHasher, IUserRepository
from ....application.use_cases.account_tokens import EmailVerification, PasswordReset
from ....application.use_cases.register_user import RegisterUser
from ....application.use_cases.session import SessionAuthenticator
from ....config import settings
from ....domain.entities import Identity, User
from ....domain.errors import InvalidCredentials, InvalidRefreshToken
from ....infrastructure.metrics import auth_logins_total, auth_refresh_total, auth_registrations_total
from ....infrastructure.rate_limit import limiter
from ..authz import (
    get_authenticator, get_current_user, get_email_verification, get_hasher, get_identity,
    get_password_reset, get_user_repo,
)
from ..schemas import (
    ForgotPasswordReq, LoginReq, LoginResp, MessageResp, RefreshReq, RegisterReq, ResetPasswordReq,
    SuccessResp, TokenResp, UpdatePasswordReq, UserEnvelope, UserResp,
)

router = APIRouter(prefix="/api/auth", tags=["auth"])

@router.get("/health")
def health():
    return {"status": "ok"}

@router.post("/register", response_model=UserEnvelope, status_code=status.HTTP_201_CREATED)
@limiter.limit(f"{settings.RATE_LIMIT_PER_MINUTE}/minute")
def register(
    request: Request,
    payload: RegisterReq,
    repo: IUserRepository = Depends(get_user_repo),
    hasher: IPasswordHasher = Depends(get_hasher),
    verification: EmailVerification = Depends(get_email_verification),
):
    uc = RegisterUser(repo=repo, hasher=hasher, verification=verification)
    user = uc.execute(
        email=payload.email,
        password=payload.password,
        username=payload.username,
        full_name=payload.full_name,
    )
    auth_registrations_total.inc()
    return UserEnvelope(user=UserResp.from_user(user))

# на логин лимит строже: защита от перебора
@router.post("/login", response_model=LoginResp)
@limiter.limit(f"{settings.LOGIN_RATE_LIMIT_PER_MINUTE}/minute")
def login(
    request: Request,
    payload: LoginReq,
    auth: SessionAuthenticator = Depends(get_authenticator),
):
    try:
        user, pair = auth.login(payload.email, payload.password)
    except InvalidCredentials:
        auth_logins_total.labels(outcome="failure").inc()
        raise
    auth_logins_total.labels(outcome="success").inc()
    return LoginResp(token=pair.access_token, refresh_token=pair.refresh_token,
                     user=UserResp.from_user(user))

@router.post("/refresh", response_model=TokenResp)
def refresh(payload: RefreshReq, auth: SessionAuthenticator = Depends(get_authenticator)):
    try:
        pair = auth.refresh(payload.refresh_token)
    except InvalidRefreshToken:
        auth_refresh_total.labels(outcome="rejected").inc()
        raise
    auth_refresh_total.labels(outcome="rotated").inc()
    return TokenResp(token=pair.access_token, refresh_token=pair.refresh_token)

@router.post("/logout", response_model=SuccessResp)
def logout(
    payload: RefreshReq,
    identity: Identity = Depends(get_identity),
    auth: SessionAuthenticator = Depends(get_authenticator),
):
    auth.logout(payload.refresh_token, user_id=identity.user_id)
    return SuccessResp()

@router.put("/update-password", response_model=SuccessResp)
def update_password(
    payload: UpdatePasswordReq,
    user: User = Depends(get_current_user),
    auth: SessionAuthenticator = Depends(get_authenticator),
):
    auth.change_password(user.id, payload.current_password, payload.new_password)
    return SuccessResp()

@router.get("/me", response_model=UserEnvelope)
def me(user: User = Depends(get_current_user)):
    return UserEnvelope(user=UserResp.from_user(user))

# одинаковый ответ для любого email, чтобы нельзя было перебирать аккаунты
@router.post("/forgot-password", response_model=MessageResp)
@limiter.limit(f"{settings.LOGIN_RATE_LIMIT_PER_MINUTE}/minute")
def forgot_password(
    request: Request,
    payload: ForgotPasswordReq,
    uc: PasswordReset = Depends(get_password_reset),
):
    uc.request(payload.email)
    return MessageResp(message="If the account exists, a reset link has been sent")

@router.post("/reset-password/{token}", response_model=SuccessResp)
@limiter.limit(f"{settings.LOGIN_RATE_LIMIT_PER_MINUTE}/minute")
def reset_password(
    request: Request,
    token: str,
    payload: ResetPasswordReq,
    uc: PasswordReset = Depends(get_password_reset),
):
    uc.reset(token, payload.password)
    return SuccessResp()

@router.get("/verify-email/{token}", response_model=SuccessResp)
def verify_email(token: str, uc: EmailVerification = Depends(get_email_verification)):
    uc.verify(token)
    return SuccessResp()
