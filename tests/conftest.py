import hmac
import os
import sys
import threading
from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest

CURRENT_DIR = os.path.dirname(__file__)
SERVICE_ROOT = os.path.dirname(CURRENT_DIR)
if SERVICE_ROOT not in sys.path:
    sys.path.insert(0, SERVICE_ROOT)

# настройки читаются при импорте, поэтому задаём их до импорта приложения
os.environ.setdefault("DATABASE_URL", "sqlite:///./test_auth.db")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("PASSWORD_HASH_ROUNDS", "4")

from dsa_auth.application.ports import (
    IAccountTokenRepository, INotifier, IPasswordHasher, IRefreshTokenRepository, IUserRepository,
)
from dsa_auth.application.token_issuer import TokenIssuer
from dsa_auth.application.use_cases.session import SessionAuthenticator
from dsa_auth.domain.entities import AccountTokenRecord, RefreshTokenRecord, Role, User
from dsa_auth.domain.errors import ValidationError
from dsa_auth.infrastructure.security import JoseSigner


class InMemoryUserRepository(IUserRepository):
    def __init__(self):
        self.rows: dict[int, User] = {}
        self._next_id = 1

    def get_by_id(self, user_id):
        return self.rows.get(user_id)

    def get_by_email(self, email):
        return next((u for u in self.rows.values() if u.email == email), None)

    def get_by_username(self, username):
        return next((u for u in self.rows.values() if u.username == username), None)

    def create(self, email, username, full_name, password_hash, role=Role.STUDENT):
        if self.get_by_email(email) or self.get_by_username(username):
            raise ValidationError("Email or username already registered")
        now = datetime.now(timezone.utc)
        user = User(
            id=self._next_id, email=email, username=username, full_name=full_name,
            role=Role(role), password_hash=password_hash, created_at=now, updated_at=now,
        )
        self.rows[user.id] = user
        self._next_id += 1
        return user

    def update_profile(self, user_id, **fields):
        if user_id not in self.rows:
            return None
        self.rows[user_id] = replace(self.rows[user_id], **fields)
        return self.rows[user_id]

    def set_password_hash(self, user_id, password_hash):
        self.rows[user_id] = replace(self.rows[user_id], password_hash=password_hash)

    def set_role(self, user_id, role):
        return self.update_profile(user_id, role=Role(role))

    def deactivate(self, user_id):
        return self.update_profile(user_id, is_active=False) is not None

    def mark_verified(self, user_id):
        self.update_profile(user_id, is_verified=True)

    def list(self, limit, offset, role=None, search=None):
        users = sorted(self.rows.values(), key=lambda u: u.id)
        if role is not None:
            users = [u for u in users if u.role == role]
        if search:
            s = search.lower()
            users = [u for u in users if s in u.email or s in u.username.lower() or s in u.full_name.lower()]
        return users[offset:offset + limit], len(users)


class InMemoryRefreshTokenRepository(IRefreshTokenRepository):
    def __init__(self):
        self.rows: dict[str, RefreshTokenRecord] = {}
        self._lock = threading.Lock()

    def add(self, record):
        with self._lock:
            self.rows[record.jti] = record

    def get(self, jti):
        return self.rows.get(jti)

    def rotate(self, jti, replaced_by, now):
        with self._lock:
            rec = self.rows.get(jti)
            if rec is None or rec.revoked:
                return False
            self.rows[jti] = replace(rec, revoked_at=now, replaced_by=replaced_by)
            return True

    def revoke(self, jti, now):
        with self._lock:
            rec = self.rows.get(jti)
            if rec is None or rec.revoked:
                return False
            self.rows[jti] = replace(rec, revoked_at=now)
            return True

    def revoke_all_for_user(self, user_id, now):
        with self._lock:
            live = [r.jti for r in self.rows.values() if r.user_id == user_id and not r.revoked]
        return sum(self.revoke(jti, now) for jti in live)

    def prune_expired(self, now):
        with self._lock:
            expired = [jti for jti, r in self.rows.items() if r.expires_at <= now]
            for jti in expired:
                del self.rows[jti]
        return len(expired)


class InMemoryAccountTokenRepository(IAccountTokenRepository):
    def __init__(self):
        self.rows: dict[str, AccountTokenRecord] = {}

    def add(self, record):
        self.rows[record.token_hash] = record

    def consume(self, token_hash, purpose, now):
        rec = self.rows.get(token_hash)
        if rec is None or rec.purpose != purpose or rec.used_at is not None or rec.expires_at <= now:
            return None
        self.rows[token_hash] = replace(rec, used_at=now)
        return rec.user_id

    def invalidate_for_user(self, user_id, purpose, now):
        live = [h for h, r in self.rows.items()
                if r.user_id == user_id and r.purpose == purpose and r.used_at is None]
        for h in live:
            self.rows[h] = replace(self.rows[h], used_at=now)
        return len(live)


class RecordingNotifier(INotifier):
    """Вместо почты складывает (email, token) в списки."""

    def __init__(self):
        self.resets = []
        self.verifications = []

    def send_password_reset(self, user, token):
        self.resets.append((user.email, token))

    def send_email_verification(self, user, token):
        self.verifications.append((user.email, token))


class PlainHasher(IPasswordHasher):
    """Замена bcrypt без хэширования, считает холостые проверки."""

    def __init__(self):
        self.dummy_calls = 0

    def hash(self, plain):
        return "plain$" + plain

    def verify(self, plain, hashed):
        return hmac.compare_digest("plain$" + plain, hashed)

    def dummy_verify(self, plain):
        self.dummy_calls += 1


class FakeClock:
    def __init__(self, now=None):
        self.now = now or datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture
def users():
    return InMemoryUserRepository()


@pytest.fixture
def tokens():
    return InMemoryRefreshTokenRepository()


@pytest.fixture
def account_tokens():
    return InMemoryAccountTokenRepository()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def hasher():
    return PlainHasher()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def signer():
    return JoseSigner(secret="test-secret", algorithm="HS256")


@pytest.fixture
def issuer(signer, tokens, clock):
    return TokenIssuer(
        signer=signer,
        tokens=tokens,
        access_ttl=timedelta(minutes=15),
        refresh_ttl=timedelta(days=30),
        clock=clock,
    )


@pytest.fixture
def authenticator(users, tokens, hasher, issuer):
    return SessionAuthenticator(users=users, tokens=tokens, hasher=hasher, issuer=issuer)


@pytest.fixture
def alice(users, hasher):
    return users.create(
        email="alice@example.com", username="alice", full_name="Alice Liddell",
        password_hash=hasher.hash("wonderland1"),
    )
