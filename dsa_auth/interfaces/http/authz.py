from datetime import timedelta

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from ...application.authorization import authorize
from ...application.ports import (
    IAccountTokenRepository, INotifier, IPasswordHasher, IRefreshTokenRepository, ISigner, IUserRepository,
)
from ...application.token_issuer import TokenIssuer
from ...application.use_cases.account_tokens import EmailVerification, PasswordReset
from ...application.use_cases.session import SessionAuthenticator
from ...config import settings
from ...domain.entities import Identity, Role, User
from ...domain.errors import Forbidden, Unauthorized
from ...infrastructure.db import get_db
from ...infrastructure.notifier import LogNotifier
from ...infrastructure.repositories import AccountTokenRepository, RefreshTokenRepository, UserRepository
from ...infrastructure.security import JoseSigner, PasswordHasher

# auto_error=False: без заголовка отдаём свой 401, а не ответ FastAPI
bearer = HTTPBearer(auto_error=False)

def get_user_repo(db: Session = Depends(get_db)) -> IUserRepository:
    return UserRepository(db)

def get_token_repo(db: Session = Depends(get_db)) -> IRefreshTokenRepository:
    return RefreshTokenRepository(db)

def get_account_token_repo(db: Session = Depends(get_db)) -> IAccountTokenRepository:
    return AccountTokenRepository(db)

def get_notifier() -> INotifier:
    return LogNotifier()

def get_hasher() -> IPasswordHasher:
    return PasswordHasher()

def get_signer() -> ISigner:
    return JoseSigner()

def get_issuer(
    signer: ISigner = Depends(get_signer),
    tokens: IRefreshTokenRepository = Depends(get_token_repo),
) -> TokenIssuer:
    return TokenIssuer(
        signer=signer,
        tokens=tokens,
        access_ttl=timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
        refresh_ttl=timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS),
    )

def get_authenticator(
    users: IUserRepository = Depends(get_user_repo),
    tokens: IRefreshTokenRepository = Depends(get_token_repo),
    hasher: IPasswordHasher = Depends(get_hasher),
    issuer: TokenIssuer = Depends(get_issuer),
) -> SessionAuthenticator:
    return SessionAuthenticator(users=users, tokens=tokens, hasher=hasher, issuer=issuer)

def get_identity(
    creds: HTTPAuthorizationCredentials | None = Depends(bearer),
    auth: SessionAuthenticator = Depends(get_authenticator),
) -> Identity:
    return auth.authenticate(creds.credentials if creds else None)

def get_current_user(
    identity: Identity = Depends(get_identity),
    users: IUserRepository = Depends(get_user_repo),
) -> User:
    user = users.get_by_id(identity.user_id)
    if user is None or not user.is_active:
        raise Unauthorized("User not found")
    return user

def require_role(role: Role):
    # роль берём из БД, а не из токена: понижение или блокировка действуют сразу
    def _check(user: User = Depends(get_current_user)) -> Identity:
        identity = Identity(user_id=user.id, role=user.role)
        if not authorize(identity, role):
            raise Forbidden(f"{role.value.capitalize()} role required")
        return identity
    return _check

require_moderator = require_role(Role.MODERATOR)
require_admin = require_role(Role.ADMIN)

def get_password_reset(
    users: IUserRepository = Depends(get_user_repo),
    account_tokens: IAccountTokenRepository = Depends(get_account_token_repo),
    refresh_tokens: IRefreshTokenRepository = Depends(get_token_repo),
    hasher: IPasswordHasher = Depends(get_hasher),
    notifier: INotifier = Depends(get_notifier),
) -> PasswordReset:
    return PasswordReset(
        users, account_tokens, refresh_tokens, hasher, notifier,
        ttl=timedelta(minutes=settings.PASSWORD_RESET_EXPIRE_MINUTES),
    )

def get_email_verification(
    users: IUserRepository = Depends(get_user_repo),
    account_tokens: IAccountTokenRepository = Depends(get_account_token_repo),
    notifier: INotifier = Depends(get_notifier),
) -> EmailVerification:
    return EmailVerification(
        users, account_tokens, notifier,
        ttl=timedelta(hours=settings.EMAIL_VERIFICATION_EXPIRE_HOURS),
    )
