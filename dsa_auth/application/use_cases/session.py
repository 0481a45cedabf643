import hmac

import structlog

from ...domain.entities import Identity, TokenPair, User
from ...domain.errors import (
    AuthError, InvalidCredentials, InvalidRefreshToken, Unauthorized,
)
from ..ports import IPasswordHasher, IRefreshTokenRepository, IUserRepository
from ..token_issuer import TokenIssuer, hash_token, new_jti
from .register_user import check_password, normalize_email

logger = structlog.get_logger()


class SessionAuthenticator:
    """Вход, проверка токена на каждом запросе, ротация refresh-токенов и выход.

    Anonymous -> Authenticated -> (Refreshed)* -> LoggedOut. Каждый refresh-токен
    одноразовый: `refresh` отзывает предъявленный и выдаёт новую пару,
    `logout` просто отзывает.
    """

    def __init__(
        self,
        users: IUserRepository,
        tokens: IRefreshTokenRepository,
        hasher: IPasswordHasher,
        issuer: TokenIssuer,
    ):
        self.users = users
        self.tokens = tokens
        self.hasher = hasher
        self.issuer = issuer

    def _pair_for(self, user: User) -> TokenPair:
        return TokenPair(
            access_token=self.issuer.issue_access_token(user.id, user.role),
            refresh_token=self.issuer.issue_refresh_token(user.id),
        )

    def login(self, email: str, password: str) -> tuple[User, TokenPair]:
        user = self.users.get_by_email(normalize_email(email))
        if user is None:
            self.hasher.dummy_verify(password)
            logger.info("login_failed", reason="unknown_email")
            raise InvalidCredentials()
        if not self.hasher.verify(password, user.password_hash):
            logger.info("login_failed", reason="bad_password", user_id=user.id)
            raise InvalidCredentials()
        if not user.is_active:
            logger.info("login_failed", reason="inactive", user_id=user.id)
            raise InvalidCredentials()
        logger.info("login_succeeded", user_id=user.id)
        return user, self._pair_for(user)

    def authenticate(self, bearer_token: str | None) -> Identity:
        if not bearer_token:
            raise Unauthorized()
        # TokenInvalid и TokenExpired оба Unauthorized
        return self.issuer.verify(bearer_token)

    def refresh(self, refresh_token: str) -> TokenPair:
        try:
            claims = self.issuer.decode_refresh(refresh_token)
        except AuthError as e:
            raise InvalidRefreshToken() from e

        jti = claims["jti"]
        user_id = int(claims["sub"])
        record = self.tokens.get(jti)
        if record is None or record.user_id != user_id:
            raise InvalidRefreshToken()
        if not hmac.compare_digest(record.token_hash, hash_token(refresh_token)):
            raise InvalidRefreshToken()

        now = self.issuer.clock()
        if record.revoked:
            # повтор после потерянного ответа тоже сюда попадает, остальные сессии не трогаем
            if record.replaced_by:
                logger.warning("refresh_token_reused", user_id=user_id)
            raise InvalidRefreshToken()
        if record.expires_at <= now:
            self.tokens.revoke(jti, now)
            raise InvalidRefreshToken()

        user = self.users.get_by_id(user_id)
        if user is None or not user.is_active:
            self.tokens.revoke(jti, now)
            raise InvalidRefreshToken()

        successor = new_jti()
        # условный UPDATE: из двух параллельных ротаций вторая проигрывает здесь
        if not self.tokens.rotate(jti, successor, now):
            raise InvalidRefreshToken()
        logger.info("refresh_rotated", user_id=user_id)
        return TokenPair(
            access_token=self.issuer.issue_access_token(user.id, user.role),
            refresh_token=self.issuer.issue_refresh_token(user.id, jti=successor),
        )

    def logout(self, refresh_token: str, user_id: int | None = None) -> None:
        """Отозвать refresh-токен. Неизвестный или уже отозванный токен не ошибка."""
        try:
            # истёкший тоже отзываем, чтобы в реестре был виден выход
            claims = self.issuer.decode_refresh(refresh_token, check_expiry=False)
        except AuthError:
            return
        if user_id is not None and claims["sub"] != str(user_id):
            return
        if self.tokens.revoke(claims["jti"], self.issuer.clock()):
            logger.info("logout", user_id=claims.get("sub"))

    def change_password(self, user_id: int, current_password: str, new_password: str) -> None:
        user = self.users.get_by_id(user_id)
        if user is None or not self.hasher.verify(current_password, user.password_hash):
            raise InvalidCredentials()
        check_password(new_password)
        self.users.set_password_hash(user_id, self.hasher.hash(new_password))
        revoked = self.tokens.revoke_all_for_user(user_id, self.issuer.clock())
        logger.info("password_changed", user_id=user_id, revoked=revoked)
