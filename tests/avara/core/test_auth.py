import jwt
import pytest
from avara.core.auth import CurrentUser, decode_token, get_current_user
from avara.core.exceptions import AuthenticationError, register_exception_handlers
from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient

SECRET = "unit-secret"


def _token(payload: dict, secret: str = SECRET) -> str:
    return jwt.encode(payload, secret, algorithm="HS256")


def test_decode_token_reads_subject_in_order():
    assert decode_token(_token({"sub": "u1", "userId": "u2"}), secret=SECRET).id == "u1"
    assert decode_token(_token({"userId": "u2", "id": "u3"}), secret=SECRET).id == "u2"
    assert decode_token(_token({"id": 42}), secret=SECRET).id == "42"


def test_decode_token_roles_and_email():
    user = decode_token(_token({"sub": "u1", "email": "f@example.com", "roles": "admin"}), secret=SECRET)
    assert user == CurrentUser(id="u1", email="f@example.com", roles=("admin",))


def test_decode_token_rejects_bad_signature_and_missing_subject():
    with pytest.raises(AuthenticationError):
        decode_token(_token({"sub": "u1"}, secret="other"), secret=SECRET)
    with pytest.raises(AuthenticationError, match="no subject"):
        decode_token(_token({"email": "x@example.com"}), secret=SECRET)


def _app() -> FastAPI:
    app = FastAPI()
    register_exception_handlers(app)

    @app.get("/me")
    def _me(user: CurrentUser = Depends(get_current_user)) -> dict:
        return {"id": user.id}

    return app


def test_missing_token_is_401():
    client = TestClient(_app())
    resp = client.get("/me")
    assert resp.status_code == 401
    assert resp.json()["code"] == "unauthorized"


def test_valid_token_resolves_user(monkeypatch):
    from avara.core import auth

    monkeypatch.setattr(auth, "decode_token", lambda token: CurrentUser(id=f"user-for-{token}"))
    client = TestClient(_app())
    resp = client.get("/me", headers={"Authorization": "Bearer abc"})
    assert resp.status_code == 200
    assert resp.json() == {"id": "user-for-abc"}
