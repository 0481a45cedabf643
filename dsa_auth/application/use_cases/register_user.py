import re

import structlog

from ...domain.entities import User
from ...domain.errors import ValidationError
from ..ports import IPasswordHasher, IUserRepository

logger = structlog.get_logger()

USERNAME_RE = re.compile(r"^[A-Za-z0-9_.-]{3,30}$")
MIN_PASSWORD_LENGTH = 6


def normalize_email(email: str) -> str:
    return email.strip().lower()


def check_password(password: str) -> None:
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")


def check_username(username: str) -> None:
    if not USERNAME_RE.match(username):
        raise ValidationError("Username must be 3-30 letters, digits, '.', '_' or '-'")


class RegisterUser:
    def __init__(self, repo: IUserRepository, hasher: IPasswordHasher, verification=None):
        self.repo = repo
        self.hasher = hasher
        # EmailVerification; без неё письмо не отправляется
        self.verification = verification

    def execute(self, email: str, password: str, username: str, full_name: str) -> User:
        email = normalize_email(email)
        username = username.strip()
        full_name = full_name.strip()
        if "@" not in email:
            raise ValidationError("Invalid email")
        if not full_name:
            raise ValidationError("Full name is required")
        check_username(username)
        check_password(password)
        if self.repo.get_by_email(email):
            raise ValidationError("Email already registered")
        if self.repo.get_by_username(username):
            raise ValidationError("Username already taken")
        user = self.repo.create(
            email=email,
            username=username,
            full_name=full_name,
            password_hash=self.hasher.hash(password),
        )
        logger.info("user_registered", user_id=user.id)
        if self.verification is not None:
            self.verification.send(user)
        return user
