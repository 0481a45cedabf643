from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from ...domain.entities import User

class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

class RegisterReq(CamelModel):
    full_name: str = Field(alias="fullName", min_length=1, max_length=255)
    username: str = Field(min_length=3, max_length=30)
    email: EmailStr
    password: str = Field(min_length=6, max_length=256)

# str, а не EmailStr: вход и ответы не должны падать на адресах вроде admin@localhost
class LoginReq(BaseModel):
    email: str = Field(min_length=1, max_length=255)
    password: str

class RefreshReq(CamelModel):
    refresh_token: str = Field(alias="refreshToken", min_length=1)

class UpdatePasswordReq(CamelModel):
    current_password: str = Field(alias="currentPassword")
    new_password: str = Field(alias="newPassword", min_length=6, max_length=256)

class UpdateProfileReq(CamelModel):
    full_name: str | None = Field(default=None, alias="fullName", max_length=255)
    username: str | None = Field(default=None, max_length=30)
    bio: str | None = Field(default=None, max_length=2000)

class RoleReq(BaseModel):
    role: str

class ForgotPasswordReq(BaseModel):
    email: str = Field(min_length=1, max_length=255)

class ResetPasswordReq(BaseModel):
    password: str = Field(min_length=6, max_length=256)

class UserResp(CamelModel):
    id: int
    email: str
    username: str
    full_name: str = Field(alias="fullName")
    role: str
    bio: str | None = None
    is_verified: bool = Field(default=False, alias="isVerified")
    created_at: datetime | None = Field(default=None, alias="createdAt")

    @classmethod
    def from_user(cls, u: User) -> "UserResp":
        return cls(
            id=u.id, email=u.email, username=u.username, full_name=u.full_name,
            role=u.role.value, bio=u.bio, is_verified=u.is_verified, created_at=u.created_at,
        )

class PublicUserResp(CamelModel):
    id: int
    username: str
    full_name: str = Field(alias="fullName")
    role: str
    bio: str | None = None
    created_at: datetime | None = Field(default=None, alias="createdAt")

    @classmethod
    def from_user(cls, u: User) -> "PublicUserResp":
        return cls(
            id=u.id, username=u.username, full_name=u.full_name,
            role=u.role.value, bio=u.bio, created_at=u.created_at,
        )

class SuccessResp(BaseModel):
    success: bool = True

class MessageResp(SuccessResp):
    message: str

class UserEnvelope(SuccessResp):
    user: UserResp

class PublicUserEnvelope(SuccessResp):
    user: PublicUserResp

class TokenResp(CamelModel):
    success: bool = True
    token: str
    refresh_token: str = Field(alias="refreshToken")
    token_type: str = Field(default="bearer", alias="tokenType")

class LoginResp(TokenResp):
    user: UserResp

class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int

class UserListResp(SuccessResp):
    users: list[UserResp]
    pagination: Pagination
