"""Registration, login and logout endpoint tests."""
import time
from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from app.core.errors import EmailTaken
from app.core.security import PasswordHasher
from app.services.accounts import register_user

TEST_EMAIL = "ann@x.com"
TEST_PASSWORD = "Abcd123!"


def test_register_page(client):
    response = client.get("/register")
    assert response.status_code == 200
    assert "<form" in response.text


def test_register_user(client):
    response = client.post(
        "/register", data={"name": "Ann", "email": "ann@x.com", "password": "Abcd123!"}
    )
    assert response.status_code == 201
    assert "User registered successfully!" in response.text


def test_register_duplicate_email(client, registered_user):
    response = client.post(
        "/register",
        data={"name": "Other", "email": registered_user["email"], "password": "Xyzw987$"},
    )
    assert response.status_code == 400
    assert "Email already registered" in response.text


def test_register_email_is_case_sensitive(client, registered_user):
    response = client.post(
        "/register", data={"name": "Ann", "email": "ANN@x.com", "password": TEST_PASSWORD}
    )
    assert response.status_code == 201


def test_register_invalid_email(client):
    response = client.post(
        "/register", data={"name": "Ann", "email": "not-an-email", "password": "Abcd123!"}
    )
    assert response.status_code == 400
    assert "Invalid email format" in response.text


def test_register_weak_password(client):
    response = client.post(
        "/register", data={"name": "Ann", "email": "ann@x.com", "password": "password"}
    )
    assert response.status_code == 400
    assert "at least 8 characters" in response.text


def test_register_blank_name(client):
    response = client.post(
        "/register", data={"name": "   ", "email": "ann@x.com", "password": "Abcd123!"}
    )
    assert response.status_code == 400
    assert "Name is required" in response.text


def test_rejected_registration_keeps_form_values(client):
    response = client.post(
        "/register", data={"name": "Ann", "email": "ann@x.com", "password": "weak"}
    )
    assert 'value="ann@x.com"' in response.text
    assert "weak" not in response.text


def test_register_store_error_returns_500(client):
    with patch(
        "app.services.accounts.get_user_by_email",
        side_effect=OperationalError("SELECT", {}, Exception("database is locked")),
    ):
        response = client.post(
            "/register", data={"name": "Ann", "email": "ann@x.com", "password": "Abcd123!"}
        )
    assert response.status_code == 500
    assert response.text == "Server error"


def test_register_race_maps_unique_violation_to_email_taken(app, client, registered_user):
    # both requests passed the existence check; the second insert hits the constraint
    hasher = PasswordHasher(method="pbkdf2:sha256:1000")
    with app.state.session_factory() as db:
        with patch("app.services.accounts.get_user_by_email", return_value=None):
            with pytest.raises(EmailTaken):
                register_user(db, hasher, "Ann", TEST_EMAIL, TEST_PASSWORD)


def test_password_hash_is_stored_not_plaintext(app, registered_user):
    from app.models.user import User

    with app.state.session_factory() as db:
        user = db.query(User).filter(User.email == TEST_EMAIL).one()
    assert user.password_hash != TEST_PASSWORD
    assert app.state.hasher.verify(TEST_PASSWORD, user.password_hash)


def test_login_page(client):
    response = client.get("/login")
    assert response.status_code == 200
    assert 'action="/login"' in response.text


def test_login_redirects_to_notes(client, registered_user, settings):
    response = client.post(
        "/login",
        data={"email": TEST_EMAIL, "password": TEST_PASSWORD},
        follow_redirects=False,
    )
    assert response.status_code == 303
    assert response.headers["location"] == "/notes"
    cookie = response.headers["set-cookie"]
    assert cookie.startswith(f"{settings.session_cookie_name}=")
    assert "HttpOnly" in cookie


def test_session_binds_only_user_id(app, client, registered_user, settings):
    client.post("/login", data={"email": TEST_EMAIL, "password": TEST_PASSWORD}, follow_redirects=False)
    token = client.cookies.get(settings.session_cookie_name)
    user_id = app.state.session_manager.resolve(token)
    assert isinstance(user_id, int)


def test_login_wrong_password(client, registered_user):
    response = client.post("/login", data={"email": TEST_EMAIL, "password": "wrong"})
    assert response.status_code == 401
    assert "Invalid credentials" in response.text


def test_login_does_not_reveal_which_accounts_exist(client, registered_user):
    wrong_password = client.post("/login", data={"email": TEST_EMAIL, "password": "Wrong123!"})
    unknown_email = client.post("/login", data={"email": "nobody@x.com", "password": "Wrong123!"})

    assert wrong_password.status_code == unknown_email.status_code
    assert wrong_password.text == unknown_email.text
    assert "set-cookie" not in unknown_email.headers


def test_login_replaces_previous_session(app, client, registered_user, settings):
    client.post("/login", data={"email": TEST_EMAIL, "password": TEST_PASSWORD}, follow_redirects=False)
    first = client.cookies.get(settings.session_cookie_name)

    client.post("/login", data={"email": TEST_EMAIL, "password": TEST_PASSWORD}, follow_redirects=False)
    second = client.cookies.get(settings.session_cookie_name)

    assert first != second
    assert app.state.session_manager.resolve(first) is None
    assert app.state.session_manager.resolve(second) is not None


def test_logout(app, logged_in_client, settings):
    token = logged_in_client.cookies.get(settings.session_cookie_name)

    response = logged_in_client.post("/logout", follow_redirects=False)

    assert response.status_code == 303
    assert response.headers["location"] == "/login"
    assert app.state.session_manager.resolve(token) is None
    assert logged_in_client.get("/files", follow_redirects=False).status_code == 303


def test_logout_clears_cookie_even_if_destroy_fails(app, logged_in_client, settings):
    with patch.object(app.state.session_manager, "destroy", side_effect=RuntimeError("store down")):
        response = logged_in_client.post("/logout", follow_redirects=False)

    assert response.status_code == 303
    assert response.headers["location"] == "/login"
    assert f'{settings.session_cookie_name}=""' in response.headers["set-cookie"]


def test_logout_without_session(client):
    response = client.post("/logout", follow_redirects=False)
    assert response.status_code == 303
    assert response.headers["location"] == "/login"


def test_home_redirects_by_login_state(client, registered_user):
    assert client.get("/", follow_redirects=False).headers["location"] == "/login"
    client.post("/login", data={"email": TEST_EMAIL, "password": TEST_PASSWORD}, follow_redirects=False)
    assert client.get("/", follow_redirects=False).headers["location"] == "/notes"


def test_healthz(client):
    assert client.get("/healthz").json() == {"status": "ok"}


def test_database_session_backend(tmp_path):
    from fastapi.testclient import TestClient

    from app.core.config import Settings
    from app.core.sessions import DatabaseSessionManager
    from app.main import create_app

    settings = Settings(
        _env_file=None,
        database_url=f"sqlite:///{tmp_path / 'db.sqlite'}",
        upload_dir=str(tmp_path / "uploads"),
        session_backend="database",
        password_hash_method="pbkdf2:sha256:1000",
    )
    app = create_app(settings)
    with TestClient(app) as client:
        assert isinstance(app.state.session_manager, DatabaseSessionManager)
        client.post("/register", data={"name": "Ann", "email": TEST_EMAIL, "password": TEST_PASSWORD})
        client.post("/login", data={"email": TEST_EMAIL, "password": TEST_PASSWORD}, follow_redirects=False)
        assert client.get("/files").json() == []


def test_register_login_scenario(client):
    response = client.post("/register", data={"name": "Ann", "email": "ann@x.com", "password": "Abcd123!"})
    assert response.status_code == 201

    response = client.post(
        "/login", data={"email": "ann@x.com", "password": "Abcd123!"}, follow_redirects=False
    )
    assert response.status_code == 303
    assert response.headers["location"] == "/notes"
    assert client.get("/files").json() == []

    client.cookies.clear()
    response = client.post("/login", data={"email": "ann@x.com", "password": "wrong"})
    assert response.status_code == 401
    assert "Invalid credentials" in response.text

    response = client.get("/files", follow_redirects=False)
    assert response.status_code == 303
    assert response.headers["location"] == "/login"


def test_login_succeeds_when_dropping_old_session_fails(app, logged_in_client, settings):
    with patch.object(app.state.session_manager, "destroy", side_effect=RuntimeError("store down")):
        response = logged_in_client.post(
            "/login",
            data={"email": TEST_EMAIL, "password": TEST_PASSWORD},
            follow_redirects=False,
        )

    assert response.status_code == 303
    assert response.headers["location"] == "/notes"
    assert logged_in_client.get("/files", follow_redirects=False).status_code == 200


def test_login_cleans_up_abandoned_sessions(app, client, registered_user, settings):
    manager = app.state.session_manager
    abandoned = manager.create(1)

    later = time.time() + settings.session_ttl_seconds + 1
    with patch.object(manager, "_clock", lambda: later):
        client.post("/login", data={"email": TEST_EMAIL, "password": TEST_PASSWORD}, follow_redirects=False)
        assert manager.destroy(abandoned) is False
