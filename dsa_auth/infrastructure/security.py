from functools import lru_cache

from passlib.context import CryptContext
from jose import jwt, JWTError
from ..config import settings
from ..domain.errors import TokenInvalid
from ..application.ports import IPasswordHasher, ISigner

pwd = CryptContext(
    schemes=["bcrypt_sha256"],
    deprecated="auto",
    bcrypt_sha256__rounds=settings.PASSWORD_HASH_ROUNDS,
    bcrypt_sha256__truncate_error=False,
)


@lru_cache(maxsize=1)
def _dummy_hash() -> str:
    return pwd.hash("dsa-auth-timing-equalizer")


class PasswordHasher(IPasswordHasher):
    def hash(self, plain: str) -> str: return pwd.hash(plain)
    def verify(self, plain: str, hashed: str) -> bool: return pwd.verify(plain, hashed)
    def dummy_verify(self, plain: str) -> None: pwd.verify(plain, _dummy_hash())


class JoseSigner(ISigner):
    def __init__(self, secret: str = settings.SECRET_KEY, algorithm: str = settings.JWT_ALGORITHM):
        self.secret = secret
        self.algorithm = algorithm

    def encode(self, claims: dict) -> str:
        return jwt.encode(claims, self.secret, algorithm=self.algorithm)

    def decode(self, token: str) -> dict:
        """Только подпись; срок действия проверяет TokenIssuer по своим часам."""
        try:
            return jwt.decode(
                token, self.secret, algorithms=[self.algorithm],
                options={"verify_exp": False},
            )
        except JWTError as e:
            raise TokenInvalid() from e
