import structlog

from ...domain.entities import Role, User
from ..ports import IPasswordHasher, IUserRepository
from .register_user import normalize_email

logger = structlog.get_logger()


class BootstrapAdmin:
    """Создать администратора из настроек или выдать роль admin существующему."""

    def __init__(self, repo: IUserRepository, hasher: IPasswordHasher):
        self.repo = repo
        self.hasher = hasher

    def execute(self, email: str, password: str, username: str = "admin") -> User:
        email = normalize_email(email)
        user = self.repo.get_by_email(email)
        if user is None:
            user = self.repo.create(
                email=email,
                username=username,
                full_name="Administrator",
                password_hash=self.hasher.hash(password),
                role=Role.ADMIN,
            )
            logger.info("admin_created", user_id=user.id)
        elif user.role != Role.ADMIN:
            user = self.repo.set_role(user.id, Role.ADMIN)
            logger.info("admin_promoted", user_id=user.id)
        return user
