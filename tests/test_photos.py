import pytest

from app.core.exceptions import ForbiddenError, NotFoundError, ValidationError
from app.modules.photos.schemas import TravelPhotoUpdate
from app.modules.photos.service import PhotoService
from app.modules.photos.storage import get_photo_storage
from app.main import app

JPEG = b"\xff\xd8\xff\xe0fake-jpeg-bytes"


@pytest.fixture
def owner(make_user, auth_user):
    user = make_user()
    auth_user["id"] = user["id"]
    return user


@pytest.fixture
def service(db, storage):
    return PhotoService(db, storage)


def _upload_profile(client, name="me.jpg", content=JPEG, content_type="image/jpeg"):
    return client.post("/api/v1/photos/profile", files={"file": (name, content, content_type)})


# Profile photos

def test_upload_profile_photo(client, db, storage, owner):
    response = _upload_profile(client)

    assert response.status_code == 201
    body = response.json()
    assert body["is_active"] is True
    assert body["file_size"] == len(JPEG)
    [key] = storage.objects
    assert key.startswith(f"profile-photos/{owner['id']}/")
    assert key.endswith(".jpg")
    assert body["file_url"] == f"https://cdn.test/{key}"


def test_new_profile_photo_replaces_active_one(client, db, owner):
    first = _upload_profile(client, name="one.png", content_type="image/png").json()
    second = _upload_profile(client, name="two.jpg").json()

    rows = {r["id"]: r for r in db.rows("profile_photos")}
    assert rows[first["id"]]["is_active"] is False
    assert rows[second["id"]]["is_active"] is True

    current = client.get(f"/api/v1/photos/profile/{owner['id']}")
    assert current.status_code == 200
    assert current.json()["id"] == second["id"]


def test_non_image_upload_is_rejected(client, storage, owner):
    response = _upload_profile(client, name="notes.txt", content=b"hello", content_type="text/plain")

    assert response.status_code == 400
    assert response.json()["detail"] == "File must be an image"
    assert storage.objects == {}


def test_empty_upload_is_rejected(client, owner):
    response = _upload_profile(client, content=b"")
    assert response.status_code == 400


def test_upload_without_storage(client, owner):
    app.dependency_overrides[get_photo_storage] = lambda: None

    response = _upload_profile(client)

    assert response.status_code == 502
    assert response.json()["detail"] == "Photo storage is not configured"


def test_failed_row_insert_discards_upload(client, db, storage, owner):
    db.fail("profile_photos", "insert")

    response = _upload_profile(client)

    assert response.status_code == 502
    assert storage.objects == {}
    assert len(storage.deleted) == 1


def test_delete_profile_photo(client, db, storage, owner):
    _upload_profile(client)

    response = client.delete("/api/v1/photos/profile")

    assert response.status_code == 204
    assert db.rows("profile_photos") == []
    assert storage.objects == {}
    assert client.get(f"/api/v1/photos/profile/{owner['id']}").status_code == 404
    assert client.delete("/api/v1/photos/profile").status_code == 404


# Travel photos

def test_upload_travel_photo(client, db, storage, owner):
    response = client.post(
        "/api/v1/photos/travel",
        files={"file": ("river.jpg", JPEG, "image/jpeg")},
        data={"latitude": "37.5283", "longitude": "126.9294", "title": "Hangang", "is_public": "false"},
    )

    assert response.status_code == 201
    body = response.json()
    assert body["latitude"] == 37.5283
    assert body["title"] == "Hangang"
    assert body["is_public"] is False
    assert body["is_deleted"] is False
    [key] = storage.objects
    assert key.startswith(f"travel-photos/{owner['id']}/")


@pytest.mark.parametrize("form", [
    {"longitude": "126.9"},
    {"latitude": "91", "longitude": "126.9"},
    {"latitude": "37.5", "longitude": "-181"},
])
def test_travel_photo_needs_valid_coordinates(client, storage, owner, form):
    response = client.post("/api/v1/photos/travel", files={"file": ("x.jpg", JPEG, "image/jpeg")}, data=form)

    assert response.status_code == 422
    assert storage.objects == {}


def test_list_own_travel_photos_skips_deleted(client, db, owner, add_travel_photo):
    older = add_travel_photo(owner["id"], 37.5, 127.0)
    newer = add_travel_photo(owner["id"], 37.6, 127.1, is_public=False)
    add_travel_photo(owner["id"], 37.7, 127.2, is_deleted=True)

    body = client.get("/api/v1/photos/travel").json()

    assert body["total"] == 2
    assert [p["id"] for p in body["photos"]] == [newer["id"], older["id"]]


def test_update_travel_photo(service, owner, add_travel_photo):
    photo = add_travel_photo(owner["id"], 37.5, 127.0)

    updated = service.update_travel_photo(photo["id"], owner["id"], TravelPhotoUpdate(title="Namsan", latitude=37.55))

    assert updated.title == "Namsan"
    assert updated.latitude == 37.55
    assert updated.longitude == 127.0


def test_update_rules(service, owner, make_user, add_travel_photo):
    photo = add_travel_photo(owner["id"], 37.5, 127.0)
    stranger = make_user()

    with pytest.raises(ForbiddenError):
        service.update_travel_photo(photo["id"], stranger["id"], TravelPhotoUpdate(title="mine now"))
    with pytest.raises(ValidationError):
        service.update_travel_photo(photo["id"], owner["id"], TravelPhotoUpdate())
    with pytest.raises(ValidationError):
        service.update_travel_photo(photo["id"], owner["id"], TravelPhotoUpdate(latitude=None))
    with pytest.raises(NotFoundError):
        service.update_travel_photo("missing", owner["id"], TravelPhotoUpdate(title="x"))


def test_delete_travel_photo_is_soft(client, db, owner, make_user, add_travel_photo):
    photo = add_travel_photo(owner["id"], 37.5, 127.0)
    stranger = make_user()
    service = PhotoService(db)

    with pytest.raises(ForbiddenError):
        service.delete_travel_photo(photo["id"], stranger["id"])

    assert client.delete(f"/api/v1/photos/travel/{photo['id']}").status_code == 204
    assert db.rows("travel_photos")[0]["is_deleted"] is True
    assert client.get(f"/api/v1/photos/travel/{photo['id']}").status_code == 404


def test_nearby_search_orders_by_distance(client, make_user, add_travel_photo):
    a, b = make_user(), make_user()
    far = add_travel_photo(a["id"], 37.55, 127.0)
    near = add_travel_photo(b["id"], 37.501, 127.0)
    add_travel_photo(a["id"], 37.5, 127.0, is_public=False)
    add_travel_photo(b["id"], 37.5, 127.0, is_deleted=True)
    add_travel_photo(a["id"], 38.5, 127.0)

    response = client.get("/api/v1/photos/travel/search/nearby", params={"latitude": 37.5, "longitude": 127.0, "radius_km": 10})

    assert response.status_code == 200
    body = response.json()
    assert body["total"] == 2
    assert body["search_radius_km"] == 10
    assert [p["id"] for p in body["photos"]] == [near["id"], far["id"]]
    assert body["photos"][0]["distance_km"] == pytest.approx(0.11, abs=0.01)


def test_nearby_search_across_antimeridian(service, make_user, add_travel_photo):
    user = make_user()
    east = add_travel_photo(user["id"], 0.0, 179.99)
    west = add_travel_photo(user["id"], 0.0, -179.99)

    result = service.search_nearby_photos(0.0, 179.995, radius_km=5)

    assert {p.id for p in result.photos} == {east["id"], west["id"]}


def test_nearby_search_limit(service, make_user, add_travel_photo):
    user = make_user()
    for i in range(4):
        add_travel_photo(user["id"], 37.5 + i * 0.001, 127.0)

    result = service.search_nearby_photos(37.5, 127.0, radius_km=5, limit=2)

    assert len(result.photos) == 2
    assert result.total == 4
