from datetime import datetime, timezone

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .models import AccountTokenORM, RefreshTokenORM, UserORM
from ..domain.entities import AccountTokenRecord, RefreshTokenRecord, Role, TokenPurpose, User
from ..domain.errors import ValidationError
from ..application.ports import IAccountTokenRepository, IRefreshTokenRepository, IUserRepository


def _aware(dt: datetime | None) -> datetime | None:
    # sqlite отдаёт naive datetime даже для timezone=True
    if dt is not None and dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def to_domain(u: UserORM) -> User:
    return User(
        id=u.id,
        email=u.email,
        username=u.username,
        full_name=u.full_name,
        role=Role(u.role),
        password_hash=u.password_hash,
        is_active=bool(u.is_active),
        is_verified=bool(u.is_verified),
        bio=u.bio,
        created_at=_aware(u.created_at),
        updated_at=_aware(u.updated_at),
    )


def token_to_domain(t: RefreshTokenORM) -> RefreshTokenRecord:
    return RefreshTokenRecord(
        jti=t.jti,
        user_id=t.user_id,
        token_hash=t.token_hash,
        issued_at=_aware(t.issued_at),
        expires_at=_aware(t.expires_at),
        revoked_at=_aware(t.revoked_at),
        replaced_by=t.replaced_by,
    )


class UserRepository(IUserRepository):
    def __init__(self, db: Session): self.db = db

    def get_by_id(self, user_id: int) -> User | None:
        row = self.db.get(UserORM, user_id)
        return to_domain(row) if row else None

    def get_by_email(self, email: str) -> User | None:
        row = self.db.query(UserORM).filter(UserORM.email == email).first()
        return to_domain(row) if row else None

    def get_by_username(self, username: str) -> User | None:
        row = self.db.query(UserORM).filter(UserORM.username == username).first()
        return to_domain(row) if row else None

    def create(self, email: str, username: str, full_name: str, password_hash: str,
               role: Role = Role.STUDENT) -> User:
        row = UserORM(
            email=email,
            username=username,
            full_name=full_name,
            password_hash=password_hash,
            role=Role(role).value,
        )
        self.db.add(row)
        try:
            self.db.commit()
        except IntegrityError:
            # параллельная регистрация с тем же email/username успела раньше
            self.db.rollback()
            raise ValidationError("Email or username already registered")
        self.db.refresh(row)
        return to_domain(row)

    def update_profile(self, user_id: int, **fields) -> User | None:
        row = self.db.get(UserORM, user_id)
        if not row:
            return None
        for name, value in fields.items():
            setattr(row, name, value)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise ValidationError("Username already taken")
        self.db.refresh(row)
        return to_domain(row)

    def set_password_hash(self, user_id: int, password_hash: str) -> None:
        self.db.execute(
            update(UserORM).where(UserORM.id == user_id).values(password_hash=password_hash)
        )
        self.db.commit()

    def set_role(self, user_id: int, role: Role) -> User | None:
        row = self.db.get(UserORM, user_id)
        if not row:
            return None
        row.role = Role(role).value
        self.db.commit(); self.db.refresh(row)
        return to_domain(row)

    def deactivate(self, user_id: int) -> bool:
        result = self.db.execute(
            update(UserORM).where(UserORM.id == user_id).values(is_active=False)
        )
        self.db.commit()
        return result.rowcount == 1

    def mark_verified(self, user_id: int) -> None:
        self.db.execute(update(UserORM).where(UserORM.id == user_id).values(is_verified=True))
        self.db.commit()

    def list(self, limit: int, offset: int, role: Role | None = None,
             search: str | None = None) -> tuple[list[User], int]:
        q = select(UserORM)
        if role is not None:
            q = q.where(UserORM.role == Role(role).value)
        if search:
            pattern = f"%{search}%"
            q = q.where(or_(
                UserORM.email.ilike(pattern),
                UserORM.username.ilike(pattern),
                UserORM.full_name.ilike(pattern),
            ))
        total = self.db.execute(select(func.count()).select_from(q.subquery())).scalar_one()
        rows = self.db.execute(q.order_by(UserORM.id).limit(limit).offset(offset)).scalars().all()
        return [to_domain(r) for r in rows], total


class RefreshTokenRepository(IRefreshTokenRepository):
    """Реестр refresh-токенов. Ротация и отзыв: один условный UPDATE."""

    def __init__(self, db: Session): self.db = db

    def add(self, record: RefreshTokenRecord) -> None:
        self.db.add(RefreshTokenORM(
            jti=record.jti,
            user_id=record.user_id,
            token_hash=record.token_hash,
            issued_at=record.issued_at,
            expires_at=record.expires_at,
            revoked_at=record.revoked_at,
            replaced_by=record.replaced_by,
        ))
        self.db.commit()

    def get(self, jti: str) -> RefreshTokenRecord | None:
        row = self.db.query(RefreshTokenORM).filter(RefreshTokenORM.jti == jti).first()
        return token_to_domain(row) if row else None

    def rotate(self, jti: str, replaced_by: str, now: datetime) -> bool:
        result = self.db.execute(
            update(RefreshTokenORM)
            .where(RefreshTokenORM.jti == jti, RefreshTokenORM.revoked_at.is_(None))
            .values(revoked_at=now, replaced_by=replaced_by)
        )
        self.db.commit()
        return result.rowcount == 1

    def revoke(self, jti: str, now: datetime) -> bool:
        result = self.db.execute(
            update(RefreshTokenORM)
            .where(RefreshTokenORM.jti == jti, RefreshTokenORM.revoked_at.is_(None))
            .values(revoked_at=now)
        )
        self.db.commit()
        return result.rowcount == 1

    def revoke_all_for_user(self, user_id: int, now: datetime) -> int:
        result = self.db.execute(
            update(RefreshTokenORM)
            .where(RefreshTokenORM.user_id == user_id, RefreshTokenORM.revoked_at.is_(None))
            .values(revoked_at=now)
        )
        self.db.commit()
        return result.rowcount

    def prune_expired(self, now: datetime) -> int:
        result = self.db.execute(
            delete(RefreshTokenORM).where(RefreshTokenORM.expires_at <= now)
        )
        self.db.commit()
        return result.rowcount


class AccountTokenRepository(IAccountTokenRepository):
    def __init__(self, db: Session): self.db = db

    def add(self, record: AccountTokenRecord) -> None:
        self.db.add(AccountTokenORM(
            token_hash=record.token_hash,
            user_id=record.user_id,
            purpose=TokenPurpose(record.purpose).value,
            expires_at=record.expires_at,
            used_at=record.used_at,
        ))
        self.db.commit()

    def consume(self, token_hash: str, purpose: TokenPurpose, now: datetime) -> int | None:
        row = self.db.query(AccountTokenORM).filter(
            AccountTokenORM.token_hash == token_hash,
            AccountTokenORM.purpose == TokenPurpose(purpose).value,
        ).first()
        if row is None or row.used_at is not None or _aware(row.expires_at) <= now:
            return None
        user_id = row.user_id
        # гасим условным UPDATE: из двух одновременных запросов выигрывает один
        result = self.db.execute(
            update(AccountTokenORM)
            .where(AccountTokenORM.id == row.id, AccountTokenORM.used_at.is_(None))
            .values(used_at=now)
        )
        self.db.commit()
        return user_id if result.rowcount == 1 else None

    def invalidate_for_user(self, user_id: int, purpose: TokenPurpose, now: datetime) -> int:
        result = self.db.execute(
            update(AccountTokenORM)
            .where(
                AccountTokenORM.user_id == user_id,
                AccountTokenORM.purpose == TokenPurpose(purpose).value,
                AccountTokenORM.used_at.is_(None),
            )
            .values(used_at=now)
        )
        self.db.commit()
        return result.rowcount
