from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class Role(str, Enum):
    STUDENT = "student"
    MODERATOR = "moderator"
    ADMIN = "admin"

    @property
    def rank(self) -> int:
        return _ROLE_RANK[self]

    def satisfies(self, required: "Role") -> bool:
        return self.rank >= required.rank


_ROLE_RANK = {Role.STUDENT: 0, Role.MODERATOR: 1, Role.ADMIN: 2}


@dataclass(frozen=True)
class User:
    id: int | None
    email: str
    username: str
    full_name: str
    role: Role = Role.STUDENT
    password_hash: str = field(default="", repr=False)
    is_active: bool = True
    is_verified: bool = False
    bio: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass(frozen=True)
class Identity:
    """Кто вызывает, по проверенному access-токену."""
    user_id: int
    role: Role


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str


@dataclass(frozen=True)
class RefreshTokenRecord:
    jti: str
    user_id: int
    token_hash: str
    issued_at: datetime
    expires_at: datetime
    revoked_at: datetime | None = None
    replaced_by: str | None = None

    @property
    def revoked(self) -> bool:
        return self.revoked_at is not None


class TokenPurpose(str, Enum):
    PASSWORD_RESET = "password_reset"
    EMAIL_VERIFICATION = "email_verification"


@dataclass(frozen=True)
class AccountTokenRecord:
    """Одноразовый токен из письма: хранится только sha256."""
    token_hash: str
    user_id: int
    purpose: TokenPurpose
    expires_at: datetime
    used_at: datetime | None = None
