import secrets
from datetime import datetime, timedelta
from typing import Callable

import structlog

from ...domain.entities import AccountTokenRecord, TokenPurpose, User
from ...domain.errors import ValidationError
from ..ports import (
    IAccountTokenRepository, INotifier, IPasswordHasher, IRefreshTokenRepository, IUserRepository,
)
from ..token_issuer import hash_token, utcnow
from .register_user import check_password, normalize_email

logger = structlog.get_logger()


class _OneTimeTokens:
    purpose: TokenPurpose

    def __init__(self, users: IUserRepository, account_tokens: IAccountTokenRepository,
                 notifier: INotifier, ttl: timedelta,
                 clock: Callable[[], datetime] = utcnow):
        self.users = users
        self.account_tokens = account_tokens
        self.notifier = notifier
        self.ttl = ttl
        self.clock = clock

    def _issue(self, user: User) -> str:
        now = self.clock()
        # старые ссылки той же цели перестают работать
        self.account_tokens.invalidate_for_user(user.id, self.purpose, now)
        token = secrets.token_urlsafe(32)
        self.account_tokens.add(AccountTokenRecord(
            token_hash=hash_token(token),
            user_id=user.id,
            purpose=self.purpose,
            expires_at=now + self.ttl,
        ))
        return token

    def _consume(self, token: str) -> int:
        user_id = self.account_tokens.consume(hash_token(token), self.purpose, self.clock())
        if user_id is None:
            raise ValidationError("Invalid or expired token")
        return user_id


class PasswordReset(_OneTimeTokens):
    purpose = TokenPurpose.PASSWORD_RESET

    def __init__(self, users: IUserRepository, account_tokens: IAccountTokenRepository,
                 refresh_tokens: IRefreshTokenRepository, hasher: IPasswordHasher, notifier: INotifier,
                 ttl: timedelta = timedelta(minutes=10),
                 clock: Callable[[], datetime] = utcnow):
        super().__init__(users, account_tokens, notifier, ttl, clock)
        self.refresh_tokens = refresh_tokens
        self.hasher = hasher

    def request(self, email: str) -> None:
        """Ответ один и тот же, есть такой email или нет."""
        user = self.users.get_by_email(normalize_email(email))
        if user is None or not user.is_active:
            logger.info("password_reset_skipped")
            return
        self.notifier.send_password_reset(user, self._issue(user))

    def reset(self, token: str, new_password: str) -> None:
        check_password(new_password)
        user_id = self._consume(token)
        user = self.users.get_by_id(user_id)
        if user is None or not user.is_active:
            raise ValidationError("Invalid or expired token")
        self.users.set_password_hash(user_id, self.hasher.hash(new_password))
        revoked = self.refresh_tokens.revoke_all_for_user(user_id, self.clock())
        logger.info("password_reset", user_id=user_id, revoked=revoked)


class EmailVerification(_OneTimeTokens):
    purpose = TokenPurpose.EMAIL_VERIFICATION

    def __init__(self, users: IUserRepository, account_tokens: IAccountTokenRepository,
                 notifier: INotifier, ttl: timedelta = timedelta(hours=24),
                 clock: Callable[[], datetime] = utcnow):
        super().__init__(users, account_tokens, notifier, ttl, clock)

    def send(self, user: User) -> None:
        if user.is_verified:
            return
        self.notifier.send_email_verification(user, self._issue(user))

    def verify(self, token: str) -> None:
        user_id = self._consume(token)
        self.users.mark_verified(user_id)
        logger.info("email_verified", user_id=user_id)
