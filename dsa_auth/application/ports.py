from datetime import datetime

from ..domain.entities import AccountTokenRecord, RefreshTokenRecord, Role, TokenPurpose, User


class IUserRepository:
    def get_by_id(self, user_id: int) -> User | None: ...
    def get_by_email(self, email: str) -> User | None: ...
    def get_by_username(self, username: str) -> User | None: ...
    def create(self, email: str, username: str, full_name: str, password_hash: str,
               role: Role = Role.STUDENT) -> User: ...
    def update_profile(self, user_id: int, **fields) -> User | None: ...
    def set_password_hash(self, user_id: int, password_hash: str) -> None: ...
    def set_role(self, user_id: int, role: Role) -> User | None: ...
    def deactivate(self, user_id: int) -> bool: ...
    def mark_verified(self, user_id: int) -> None: ...
    def list(self, limit: int, offset: int, role: Role | None = None,
             search: str | None = None) -> tuple[list[User], int]: ...


class IRefreshTokenRepository:
    def add(self, record: RefreshTokenRecord) -> None: ...
    def get(self, jti: str) -> RefreshTokenRecord | None: ...
    def rotate(self, jti: str, replaced_by: str, now: datetime) -> bool:
        """Отозвать `jti`, только если он ещё жив. True, если отозвал этот вызов."""
    def revoke(self, jti: str, now: datetime) -> bool: ...
    def revoke_all_for_user(self, user_id: int, now: datetime) -> int: ...
    def prune_expired(self, now: datetime) -> int: ...


class IPasswordHasher:
    def hash(self, plain: str) -> str: ...
    def verify(self, plain: str, hashed: str) -> bool: ...
    def dummy_verify(self, plain: str) -> None:
        """Потратить время одной проверки, когда пользователя нет."""


class ISigner:
    def encode(self, claims: dict) -> str: ...
    def decode(self, token: str) -> dict:
        """Проверить подпись и вернуть claims. Срок здесь не проверяется."""


class IAccountTokenRepository:
    def add(self, record: AccountTokenRecord) -> None: ...
    def consume(self, token_hash: str, purpose: TokenPurpose, now: datetime) -> int | None:
        """Погасить живой токен. Возвращает user_id только тому вызову, который его погасил."""
    def invalidate_for_user(self, user_id: int, purpose: TokenPurpose, now: datetime) -> int: ...


class INotifier:
    def send_password_reset(self, user: User, token: str) -> None: ...
    def send_email_verification(self, user: User, token: str) -> None: ...
