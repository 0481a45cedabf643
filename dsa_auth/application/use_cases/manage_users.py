from datetime import datetime, timezone

import structlog

from ...domain.entities import Identity, Role, User
from ...domain.errors import NotFound, ValidationError
from ..ports import IRefreshTokenRepository, IUserRepository
from .register_user import check_username

logger = structlog.get_logger()


class UpdateProfile:
    def __init__(self, repo: IUserRepository):
        self.repo = repo

    def execute(self, user_id: int, full_name: str | None = None,
                username: str | None = None, bio: str | None = None) -> User:
        fields = {}
        if full_name is not None:
            if not full_name.strip():
                raise ValidationError("Full name is required")
            fields["full_name"] = full_name.strip()
        if username is not None:
            username = username.strip()
            check_username(username)
            other = self.repo.get_by_username(username)
            if other and other.id != user_id:
                raise ValidationError("Username already taken")
            fields["username"] = username
        if bio is not None:
            fields["bio"] = bio
        user = self.repo.update_profile(user_id, **fields)
        if user is None:
            raise NotFound("User not found")
        return user


class ManageUsers:
    """Операции модератора и админа. Аккаунты только отключаются, не удаляются."""

    def __init__(self, repo: IUserRepository, tokens: IRefreshTokenRepository):
        self.repo = repo
        self.tokens = tokens

    def list_users(self, page: int = 1, limit: int = 20, role: Role | None = None,
                   search: str | None = None) -> tuple[list[User], int]:
        return self.repo.list(limit=limit, offset=(page - 1) * limit, role=role, search=search)

    def change_role(self, actor: Identity, user_id: int, role: str) -> User:
        try:
            new_role = Role(role)
        except ValueError:
            raise ValidationError(f"Unknown role: {role}")
        user = self.repo.set_role(user_id, new_role)
        if user is None:
            raise NotFound("User not found")
        logger.info("role_changed", actor_id=actor.user_id, user_id=user_id, role=new_role.value)
        return user

    def deactivate(self, actor: Identity, user_id: int) -> None:
        if actor.user_id == user_id:
            raise ValidationError("You cannot disable your own account")
        if not self.repo.deactivate(user_id):
            raise NotFound("User not found")
        self.tokens.revoke_all_for_user(user_id, datetime.now(timezone.utc))
        logger.info("user_deactivated", actor_id=actor.user_id, user_id=user_id)

    def get_user(self, user_id: int) -> User:
        user = self.repo.get_by_id(user_id)
        if user is None:
            raise NotFound("User not found")
        return user


def get_public_profile(repo: IUserRepository, username: str) -> User:
    user = repo.get_by_username(username)
    if user is None or not user.is_active:
        raise NotFound("User not found")
    return user


def close_account(repo: IUserRepository, tokens: IRefreshTokenRepository, user_id: int) -> None:
    """Удаление аккаунта самим пользователем: мягкое отключение и отзыв всех сессий."""
    if not repo.deactivate(user_id):
        raise NotFound("User not found")
    tokens.revoke_all_for_user(user_id, datetime.now(timezone.utc))
    logger.info("account_closed", user_id=user_id)
