import pytest
from fastapi.testclient import TestClient

from dsa_auth.domain.entities import Role
from dsa_auth.infrastructure.security import PasswordHasher
from dsa_auth.interfaces.http.authz import get_account_token_repo, get_notifier, get_token_repo, get_user_repo
from dsa_auth.main import app


@pytest.fixture
def client(users, tokens, account_tokens, notifier):
    app.dependency_overrides[get_user_repo] = lambda: users
    app.dependency_overrides[get_token_repo] = lambda: tokens
    app.dependency_overrides[get_account_token_repo] = lambda: account_tokens
    app.dependency_overrides[get_notifier] = lambda: notifier
    yield TestClient(app)
    app.dependency_overrides.clear()


def bearer(token):
    return {"Authorization": f"Bearer {token}"}


def make_user(users, email, username, role=Role.STUDENT, password="password123"):
    return users.create(email=email, username=username, full_name=username.title(),
                        password_hash=PasswordHasher().hash(password), role=role)


def token_for(client, email, password="password123"):
    return client.post("/api/auth/login", json={"email": email, "password": password}).json()["token"]


def test_full_session_lifecycle(client):
    """register -> login -> profile -> refresh -> logout -> refresh уже не работает"""
    register = client.post("/api/auth/register", json={
        "fullName": "A X", "username": "ax", "email": "a@x.com", "password": "pw12345",
    })
    assert register.status_code == 201

    login = client.post("/api/auth/login", json={"email": "a@x.com", "password": "pw12345"})
    assert login.status_code == 200
    first = login.json()

    profile = client.get("/api/users/profile", headers=bearer(first["token"]))
    assert profile.status_code == 200
    assert profile.json()["user"]["email"] == "a@x.com"

    refreshed = client.post("/api/auth/refresh", json={"refreshToken": first["refreshToken"]})
    assert refreshed.status_code == 200
    second = refreshed.json()
    assert second["success"] is True

    stale = client.post("/api/auth/refresh", json={"refreshToken": first["refreshToken"]})
    assert stale.status_code == 401

    logout = client.post("/api/auth/logout", headers=bearer(second["token"]),
                         json={"refreshToken": second["refreshToken"]})
    assert logout.status_code == 200
    assert logout.json() == {"success": True}

    after = client.post("/api/auth/refresh", json={"refreshToken": second["refreshToken"]})
    assert after.status_code == 401
    assert after.json()["message"] == "Invalid refresh token"


def test_multiple_users_see_their_own_profile(client):
    emails = [f"user{i}@example.com" for i in range(3)]
    for i, email in enumerate(emails):
        response = client.post("/api/auth/register", json={
            "fullName": f"User {i}", "username": f"user{i}", "email": email, "password": f"password{i}",
        })
        assert response.status_code == 201

    for i, email in enumerate(emails):
        token = token_for(client, email, f"password{i}")
        me = client.get("/api/users/profile", headers=bearer(token))
        assert me.json()["user"]["email"] == email


def test_admin_users_requires_moderator(client, users):
    make_user(users, "s@example.com", "student")
    make_user(users, "m@example.com", "moder", Role.MODERATOR)

    student = client.get("/api/admin/users", headers=bearer(token_for(client, "s@example.com")))
    assert student.status_code == 403
    assert student.json()["success"] is False

    moderator = client.get("/api/admin/users?limit=1&page=2",
                           headers=bearer(token_for(client, "m@example.com")))
    assert moderator.status_code == 200
    body = moderator.json()
    assert body["pagination"] == {"page": 2, "limit": 1, "total": 2, "pages": 2}
    assert [u["username"] for u in body["users"]] == ["moder"]


def test_admin_users_role_filter(client, users):
    make_user(users, "admin@example.com", "admin", Role.ADMIN)
    make_user(users, "s@example.com", "student")
    token = token_for(client, "admin@example.com")

    response = client.get("/api/admin/users?role=student", headers=bearer(token))
    assert [u["username"] for u in response.json()["users"]] == ["student"]
    assert client.get("/api/admin/users?role=owner", headers=bearer(token)).status_code == 400


def test_role_change_is_admin_only(client, users):
    make_user(users, "admin@example.com", "admin", Role.ADMIN)
    moderator = make_user(users, "m@example.com", "moder", Role.MODERATOR)
    student = make_user(users, "s@example.com", "student")

    forbidden = client.put(f"/api/admin/users/{student.id}/role", json={"role": "admin"},
                           headers=bearer(token_for(client, "m@example.com")))
    assert forbidden.status_code == 403

    admin_token = token_for(client, "admin@example.com")
    ok = client.put(f"/api/admin/users/{student.id}/role", json={"role": "moderator"},
                    headers=bearer(admin_token))
    assert ok.status_code == 200
    assert ok.json()["user"]["role"] == "moderator"

    bad_role = client.put(f"/api/admin/users/{moderator.id}/role", json={"role": "owner"},
                          headers=bearer(admin_token))
    assert bad_role.status_code == 400

    missing = client.put("/api/admin/users/999/role", json={"role": "admin"},
                         headers=bearer(admin_token))
    assert missing.status_code == 404


def test_deactivated_user_is_locked_out(client, users):
    admin = make_user(users, "admin@example.com", "admin", Role.ADMIN)
    make_user(users, "s@example.com", "student")
    session = client.post("/api/auth/login",
                          json={"email": "s@example.com", "password": "password123"}).json()
    admin_token = token_for(client, "admin@example.com")

    response = client.delete(f"/api/admin/users/{session['user']['id']}", headers=bearer(admin_token))
    assert response.status_code == 200

    assert client.get("/api/users/profile", headers=bearer(session["token"])).status_code == 401
    assert client.post("/api/auth/refresh",
                       json={"refreshToken": session["refreshToken"]}).status_code == 401
    relogin = client.post("/api/auth/login", json={"email": "s@example.com", "password": "password123"})
    assert relogin.status_code == 401

    self_delete = client.delete(f"/api/admin/users/{admin.id}", headers=bearer(admin_token))
    assert self_delete.status_code == 400


def test_disabled_admin_loses_admin_access_at_once(client, users):
    first = make_user(users, "a1@example.com", "admin1", Role.ADMIN)
    second = make_user(users, "a2@example.com", "admin2", Role.ADMIN)
    student = make_user(users, "s@example.com", "student")
    second_token = token_for(client, "a2@example.com")

    client.delete(f"/api/admin/users/{second.id}", headers=bearer(token_for(client, "a1@example.com")))

    # токен admin2 ещё не истёк, но аккаунт отключён
    role = client.put(f"/api/admin/users/{student.id}/role", json={"role": "admin"},
                      headers=bearer(second_token))
    assert role.status_code == 401
    delete = client.delete(f"/api/admin/users/{first.id}", headers=bearer(second_token))
    assert delete.status_code == 401
    assert users.get_by_id(student.id).role == Role.STUDENT
    assert users.get_by_id(first.id).is_active


def test_demoted_admin_is_forbidden_at_once(client, users):
    admin = make_user(users, "admin@example.com", "admin", Role.ADMIN)
    student = make_user(users, "s@example.com", "student")
    token = token_for(client, "admin@example.com")
    users.set_role(admin.id, Role.STUDENT)

    response = client.put(f"/api/admin/users/{student.id}/role", json={"role": "admin"},
                          headers=bearer(token))
    assert response.status_code == 403
    assert client.get("/api/admin/users", headers=bearer(token)).status_code == 403


def test_admin_user_detail(client, users):
    make_user(users, "m@example.com", "moder", Role.MODERATOR)
    student = make_user(users, "s@example.com", "student")

    response = client.get(f"/api/admin/users/{student.id}",
                          headers=bearer(token_for(client, "m@example.com")))
    assert response.status_code == 200
    assert response.json()["user"]["email"] == "s@example.com"

    missing = client.get("/api/admin/users/999", headers=bearer(token_for(client, "m@example.com")))
    assert missing.status_code == 404
    own = client.get(f"/api/admin/users/{student.id}", headers=bearer(token_for(client, "s@example.com")))
    assert own.status_code == 403


def test_public_profile_hides_email(client, users):
    make_user(users, "s@example.com", "student")
    response = client.get("/api/users/student")
    assert response.status_code == 200
    user = response.json()["user"]
    assert user["username"] == "student"
    assert user["fullName"] == "Student"
    assert "email" not in user
    assert client.get("/api/users/nobody").status_code == 404


def test_delete_own_account(client, users):
    make_user(users, "s@example.com", "student")
    session = client.post("/api/auth/login",
                          json={"email": "s@example.com", "password": "password123"}).json()

    response = client.delete("/api/users/account", headers=bearer(session["token"]))
    assert response.status_code == 200
    assert response.json() == {"success": True}

    assert client.get("/api/users/profile", headers=bearer(session["token"])).status_code == 401
    assert client.post("/api/auth/refresh",
                       json={"refreshToken": session["refreshToken"]}).status_code == 401
    assert client.get("/api/users/student").status_code == 404
    relogin = client.post("/api/auth/login", json={"email": "s@example.com", "password": "password123"})
    assert relogin.status_code == 401


def test_delete_account_requires_auth(client):
    assert client.delete("/api/users/account").status_code == 401
