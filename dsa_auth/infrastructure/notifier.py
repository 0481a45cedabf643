import structlog

from ..application.ports import INotifier
from ..domain.entities import User

logger = structlog.get_logger()


class LogNotifier(INotifier):
    """Доставка писем через лог: почтовый сервис подписывается на эти события."""

    def send_password_reset(self, user: User, token: str) -> None:
        logger.info("mail_password_reset", user_id=user.id, email=user.email,
                    path=f"/api/auth/reset-password/{token}")

    def send_email_verification(self, user: User, token: str) -> None:
        logger.info("mail_email_verification", user_id=user.id, email=user.email,
                    path=f"/api/auth/verify-email/{token}")
