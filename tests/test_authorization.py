import pytest

from dsa_auth.application.authorization import authorize
from dsa_auth.domain.entities import Identity, Role


@pytest.mark.parametrize(
    "role, required, allowed",
    [
        (Role.STUDENT, Role.STUDENT, True),
        (Role.STUDENT, Role.MODERATOR, False),
        (Role.STUDENT, Role.ADMIN, False),
        (Role.MODERATOR, Role.STUDENT, True),
        (Role.MODERATOR, Role.MODERATOR, True),
        (Role.MODERATOR, Role.ADMIN, False),
        (Role.ADMIN, Role.STUDENT, True),
        (Role.ADMIN, Role.MODERATOR, True),
        (Role.ADMIN, Role.ADMIN, True),
    ],
)
def test_role_order(role, required, allowed):
    assert authorize(Identity(user_id=1, role=role), required) is allowed


def test_accepts_role_values():
    assert authorize(Identity(user_id=1, role=Role("admin")), Role("moderator"))


def test_role_is_closed():
    with pytest.raises(ValueError):
        Role("owner")
