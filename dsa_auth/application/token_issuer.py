import hashlib
import uuid
from datetime import datetime, timedelta, timezone
from typing import Callable

from ..domain.entities import Identity, RefreshTokenRecord, Role
from ..domain.errors import TokenExpired, TokenInvalid
from .ports import IRefreshTokenRepository, ISigner

ACCESS = "access"
REFRESH = "refresh"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def hash_token(token: str) -> str:
    # ключ для поиска, сам токен уже подписан
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


class TokenIssuer:
    def __init__(
        self,
        signer: ISigner,
        tokens: IRefreshTokenRepository,
        access_ttl: timedelta = timedelta(minutes=60),
        refresh_ttl: timedelta = timedelta(days=30),
        clock: Callable[[], datetime] = utcnow,
    ):
        self.signer = signer
        self.tokens = tokens
        self.access_ttl = access_ttl
        self.refresh_ttl = refresh_ttl
        self.clock = clock

    def issue_access_token(self, user_id: int, role: Role) -> str:
        now = self.clock()
        return self.signer.encode({
            "sub": str(user_id),
            "role": Role(role).value,
            "typ": ACCESS,
            "iat": int(now.timestamp()),
            "exp": int((now + self.access_ttl).timestamp()),
        })

    def issue_refresh_token(self, user_id: int, jti: str | None = None) -> str:
        """Выпустить refresh-токен и записать его в реестр."""
        now = self.clock()
        expires_at = now + self.refresh_ttl
        jti = jti or new_jti()
        token = self.signer.encode({
            "sub": str(user_id),
            "typ": REFRESH,
            "jti": jti,
            "iat": int(now.timestamp()),
            "exp": int(expires_at.timestamp()),
        })
        self.tokens.add(RefreshTokenRecord(
            jti=jti,
            user_id=user_id,
            token_hash=hash_token(token),
            issued_at=now,
            expires_at=expires_at,
        ))
        return token

    def decode(self, token: str, expected_type: str, check_expiry: bool = True) -> dict:
        """Проверка подписи, типа и срока. Бросает TokenInvalid или TokenExpired."""
        claims = self.signer.decode(token)
        if claims.get("typ") != expected_type:
            raise TokenInvalid()
        sub = claims.get("sub")
        if not sub or not str(sub).isdigit():
            raise TokenInvalid()
        exp = claims.get("exp")
        if not isinstance(exp, (int, float)):
            raise TokenInvalid()
        if check_expiry and exp <= self.clock().timestamp():
            raise TokenExpired()
        return claims

    def verify(self, token: str, expected_type: str = ACCESS) -> Identity:
        claims = self.decode(token, expected_type)
        try:
            role = Role(claims.get("role", Role.STUDENT.value))
        except ValueError:
            raise TokenInvalid()
        return Identity(user_id=int(claims["sub"]), role=role)

    def decode_refresh(self, token: str, check_expiry: bool = True) -> dict:
        claims = self.decode(token, REFRESH, check_expiry=check_expiry)
        if not claims.get("jti"):
            raise TokenInvalid()
        return claims


def new_jti() -> str:
    return uuid.uuid4().hex
