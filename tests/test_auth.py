from datetime import datetime, timezone

import pytest
from fastapi import HTTPException
from pydantic import ValidationError as SchemaValidationError

from app.core.best_effort import recent_failures
from app.core.dependencies import get_current_user_id, is_super_user
from app.core.exceptions import ConflictError, ValidationError
from app.main import app
from app.modules.auth.schemas import LoginRequest, RegisterRequest, normalize_phone
from app.modules.auth.service import AuthService
from app.modules.auth.verification import PhoneVerificationService

PHONE = "010-2222-0003"


def _verified(db, phone=PHONE):
    now = datetime.now(timezone.utc).isoformat()
    db.seed(
        "phone_verifications",
        phone=phone,
        purpose="signup",
        verification_code="123456",
        attempts=0,
        is_verified=True,
        is_expired=False,
        expires_at=now,
        verified_at=now,
    )


def _request(**overrides):
    data = {
        "phone": PHONE,
        "name": "sua",
        "email": "sua@mail.com",
        "password": "Passw0rd!",
        "gender": "female",
        "age": 31,
    }
    data.update(overrides)
    return RegisterRequest(**data)


@pytest.fixture
def service(db, sms):
    return AuthService(db, PhoneVerificationService(db, sms))


@pytest.mark.parametrize("raw, expected", [
    ("010-1234-5678", "010-1234-5678"),
    ("01012345678", "010-1234-5678"),
    (" 010-12345678 ", "010-1234-5678"),
])
def test_normalize_phone(raw, expected):
    assert normalize_phone(raw) == expected


@pytest.mark.parametrize("raw", ["011-1234-5678", "010-123-5678", "phone", ""])
def test_invalid_phone_is_rejected(raw):
    with pytest.raises(SchemaValidationError):
        _request(phone=raw)


def test_register_requires_verified_phone(db, service):
    with pytest.raises(ValidationError) as exc:
        service.register(_request())
    assert exc.value.detail == "Phone number must be verified before registration"
    assert db.rows("users") == []


def test_register_creates_account_profile_and_ticket(db, service):
    _verified(db)

    response = service.register(_request())

    [user] = db.rows("users")
    assert user["id"] == response.user_id
    assert user["phone"] == PHONE
    assert user["phone_verified"] is True
    assert db.auth.accounts["sua@mail.com"]["id"] == response.user_id
    [tickets] = db.rows("user_tickets")
    assert tickets["user_id"] == response.user_id
    assert tickets["free_tickets"] == 1


@pytest.mark.parametrize("overrides, detail", [
    ({"email": "taken@mail.com"}, "Email already exists"),
    ({"phone": "010-5555-5555"}, "Phone number already exists"),
    ({"name": "taken"}, "Name already exists"),
])
def test_register_rejects_duplicates(db, service, make_user, overrides, detail):
    make_user(name="taken", phone="010-5555-5555", email="taken@mail.com")
    request = _request(**overrides)
    _verified(db, request.phone)

    with pytest.raises(ConflictError) as exc:
        service.register(request)
    assert exc.value.detail == detail


def test_register_survives_ticket_failure(db, service):
    _verified(db)
    db.fail("user_tickets", "insert")

    response = service.register(_request())

    assert response.user_id
    assert [f.label for f in recent_failures()] == [f"initial_ticket:{response.user_id}"]


def test_login(db, service):
    db.auth.add_user("u1", "sua@mail.com", password="Passw0rd!")

    token = service.login(LoginRequest(email="sua@mail.com", password="Passw0rd!"))
    assert token.access_token == "token-u1"
    assert token.user_id == "u1"

    with pytest.raises(HTTPException) as exc:
        service.login(LoginRequest(email="sua@mail.com", password="wrong"))
    assert exc.value.status_code == 401


def test_current_user_is_cached_until_logout(db, service):
    db.auth.add_user("u1", "sua@mail.com", token="tok")

    assert service.get_current_user("tok")["id"] == "u1"
    assert service.get_current_user("tok")["id"] == "u1"
    assert db.auth.get_user_calls == 1

    assert service.logout("tok") is True
    service.get_current_user("tok")
    assert db.auth.get_user_calls == 2


def test_invalid_token(service):
    with pytest.raises(HTTPException) as exc:
        service.get_current_user("bogus")
    assert exc.value.status_code == 401


def test_get_me_merges_profile(db, service, make_user):
    user = make_user(name="yeeun", gender="female", age=28)

    me = service.get_me({"id": user["id"], "email": "other@mail.com", "app_metadata": {"type": "super_user"}})

    assert me.name == "yeeun"
    assert me.email == user["email"]
    assert me.is_super_user
    assert service.get_me({"id": "fresh", "email": "new@mail.com"}).email == "new@mail.com"


def test_is_super_user():
    assert is_super_user({"app_metadata": {"type": "super_user"}})
    assert not is_super_user({"app_metadata": {}})
    assert not is_super_user({"app_metadata": None})


def test_signup_flow_over_http(client, db, sms):
    app.dependency_overrides.pop(get_current_user_id)

    assert client.post("/api/v1/auth/phone/send-code", json={"phone": "01022220003"}).status_code == 200
    code = sms.last_code(PHONE)
    wrong = "000000" if code != "000000" else "111111"
    assert client.post("/api/v1/auth/phone/verify", json={"phone": PHONE, "code": wrong}).status_code == 400
    verified = client.post("/api/v1/auth/phone/verify", json={"phone": PHONE, "code": code})
    assert verified.json()["verified"] is True

    registered = client.post("/api/v1/auth/register", json={
        "phone": PHONE, "name": "sua", "email": "sua@mail.com",
        "password": "Passw0rd!", "gender": "female", "age": 31,
    })
    assert registered.status_code == 201

    login = client.post("/api/v1/auth/login", json={"email": "sua@mail.com", "password": "Passw0rd!"})
    token = login.json()["access_token"]
    headers = {"Authorization": f"Bearer {token}"}

    me = client.get("/api/v1/auth/me", headers=headers)
    assert me.status_code == 200
    assert me.json()["phone_verified"] is True
    assert client.get("/api/v1/tickets/balance", headers=headers).json()["free_tickets"] == 1

    assert client.post("/api/v1/auth/logout", headers=headers).status_code == 200
    assert client.get("/api/v1/auth/me", headers={"Authorization": "Bearer nope"}).status_code == 401
    assert client.get("/api/v1/auth/me").status_code in (401, 403)


def test_existing_user_phone_flow_over_http(client, db, sms, make_user, auth_user):
    user = make_user(phone="010-7777-8888", phone_verified=False)
    auth_user["id"] = user["id"]

    assert client.post("/api/v1/auth/phone/send-code/existing").status_code == 200
    code = sms.last_code("010-7777-8888")
    response = client.post("/api/v1/auth/phone/verify/existing", json={"code": code})

    assert response.status_code == 200
    assert db.rows("users")[0]["phone_verified"] is True
    assert client.post("/api/v1/auth/phone/verify/existing", json={"code": "12"}).status_code == 422
