import os

os.environ["ENVIRONMENT"] = "test"
os.environ["ENABLE_SCHEDULERS"] = "false"

import uuid

import pytest
from fastapi.testclient import TestClient

from app.core.best_effort import clear_failures
from app.core.dependencies import get_current_user_id
from app.database.supabase_client import get_supabase
from app.main import app
from app.modules.auth.service import clear_auth_cache
from app.modules.auth.sms_client import get_sms_client
from app.modules.chat.connection_manager import ConnectionManager, get_connection_manager
from app.modules.notifications import service as notification_service
from app.modules.photos.storage import get_photo_storage
from tests.fakes import FakeMessaging, FakePhotoStorage, FakeSms, FakeSupabase


@pytest.fixture(autouse=True)
def _reset_process_state():
    clear_failures()
    clear_auth_cache()
    yield
    clear_failures()
    clear_auth_cache()


@pytest.fixture
def db():
    return FakeSupabase()


@pytest.fixture(autouse=True)
def messaging(monkeypatch):
    fake = FakeMessaging()
    monkeypatch.setattr(notification_service, "get_messaging", lambda: fake)
    return fake


@pytest.fixture
def storage():
    return FakePhotoStorage()


@pytest.fixture
def sms():
    return FakeSms()


@pytest.fixture
def manager():
    return ConnectionManager()


@pytest.fixture
def auth_user():
    """Identity returned by the overridden auth dependency; tests set "id" as needed."""
    return {"id": None, "email": None, "user_metadata": {}, "app_metadata": {}}


@pytest.fixture
def client(db, storage, sms, manager, auth_user):
    app.dependency_overrides[get_supabase] = lambda: db
    app.dependency_overrides[get_current_user_id] = lambda: auth_user
    app.dependency_overrides[get_photo_storage] = lambda: storage
    app.dependency_overrides[get_sms_client] = lambda: sms
    app.dependency_overrides[get_connection_manager] = lambda: manager
    yield TestClient(app)
    app.dependency_overrides.clear()


_counter = {"n": 0}


def _next():
    _counter["n"] += 1
    return _counter["n"]


@pytest.fixture
def make_user(db):
    def _make(gender="male", age=30, name=None, phone=None, phone_verified=True, lat=None, lon=None, **extra):
        n = _next()
        row = {
            "id": str(uuid.uuid4()),
            "name": name or f"user{n}",
            "email": f"user{n}@mail.com",
            "phone": phone or f"010-{n:04d}-{n:04d}",
            "phone_verified": phone_verified,
            "gender": gender,
            "age": age,
            "last_latitude": lat,
            "last_longitude": lon,
            **extra,
        }
        return db.seed("users", **row)
    return _make


@pytest.fixture
def add_travel_photo(db):
    def _add(user_id, lat, lon, is_public=True, is_deleted=False, **extra):
        return db.seed(
            "travel_photos",
            user_id=user_id,
            file_url=f"https://cdn.test/travel-photos/{user_id}/{_next()}.jpg",
            file_name="trip.jpg",
            latitude=lat,
            longitude=lon,
            is_public=is_public,
            is_deleted=is_deleted,
            **extra,
        )
    return _add


@pytest.fixture
def add_profile_photo(db):
    def _add(user_id, is_active=True):
        return db.seed(
            "profile_photos",
            user_id=user_id,
            file_url=f"https://cdn.test/profile-photos/{user_id}/{_next()}.jpg",
            file_name="me.jpg",
            is_active=is_active,
        )
    return _add


@pytest.fixture
def add_push_token(db):
    def _add(user_id, token=None, device_id=None, is_active=True):
        return db.seed(
            "push_tokens",
            user_id=user_id,
            token=token or f"fcm-{user_id}",
            device_type="android",
            device_id=device_id,
            is_active=is_active,
        )
    return _add
