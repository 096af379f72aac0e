import pytest
from pydantic import ValidationError as SchemaValidationError

from app.config import settings
from app.core.best_effort import recent_failures
from app.core.exceptions import InsufficientCreditError, UpstreamError, ValidationError
from app.modules.discovery.schemas import NearbyUsersRequest
from app.modules.discovery.service import DiscoveryService
from app.modules.tickets.service import TicketService, _today

GANGNAM = (37.4979, 127.0276)
KM = 0.009  # roughly one kilometre of latitude


@pytest.fixture
def service(db):
    return DiscoveryService(db)


@pytest.fixture
def searcher(make_user, add_travel_photo):
    user = make_user(gender="male", age=30, lat=37.5665, lon=126.9780)
    add_travel_photo(user["id"], *GANGNAM)
    return user


def _set_balance(db, user_id, free=0, paid=0):
    db.seed(
        "user_tickets",
        user_id=user_id,
        free_tickets=free,
        paid_tickets=paid,
        total_purchased_tickets=paid,
        last_free_ticket_date=_today(),
    )


def test_finds_opposite_gender_users_nearest_first(db, service, searcher, make_user, add_travel_photo):
    near = make_user(gender="female", age=28)
    nearer = make_user(gender="female", age=27)
    far = make_user(gender="female", age=29)
    same_gender = make_user(gender="male", age=31)
    add_travel_photo(near["id"], GANGNAM[0] + 3 * KM, GANGNAM[1])
    add_travel_photo(nearer["id"], GANGNAM[0] + KM, GANGNAM[1])
    add_travel_photo(far["id"], GANGNAM[0] + 50 * KM, GANGNAM[1])
    add_travel_photo(same_gender["id"], *GANGNAM)

    result = service.find_nearby_users(searcher["id"], NearbyUsersRequest(radius_km=10))

    assert [u.id for u in result.users] == [nearer["id"], near["id"]]
    assert result.total == 2
    assert result.user_photos_count == 1
    assert result.users[0].closest_distance_km == pytest.approx(1.0, abs=0.01)
    assert result.users[0].common_locations_count == 1
    assert result.remaining_tickets == 0


def test_search_costs_one_ticket_and_marks_results_seen(db, service, searcher, make_user, add_travel_photo):
    match = make_user(gender="female")
    add_travel_photo(match["id"], *GANGNAM)

    service.find_nearby_users(searcher["id"], NearbyUsersRequest())

    balance = TicketService(db).get_balance(searcher["id"])
    assert balance.total_tickets == 0
    used = [t for t in db.rows("ticket_transactions") if t["transaction_type"] == "used"]
    assert len(used) == 1
    seen = db.rows("seen_users")
    assert [(s["searcher_id"], s["seen_user_id"], s["seen_count"]) for s in seen] == [
        (searcher["id"], match["id"], 1)
    ]


def test_seen_users_are_excluded_from_later_searches(db, service, searcher, make_user, add_travel_photo):
    match = make_user(gender="female")
    add_travel_photo(match["id"], *GANGNAM)
    TicketService(db).purchase_tickets(searcher["id"], 1)

    first = service.find_nearby_users(searcher["id"], NearbyUsersRequest())
    second = service.find_nearby_users(searcher["id"], NearbyUsersRequest())

    assert [u.id for u in first.users] == [match["id"]]
    assert second.users == []
    assert second.total == 0


def test_no_tickets_means_no_search_and_no_side_effects(db, service, searcher, make_user, add_travel_photo):
    _set_balance(db, searcher["id"], free=0, paid=0)
    match = make_user(gender="female")
    add_travel_photo(match["id"], *GANGNAM)

    with pytest.raises(InsufficientCreditError):
        service.find_nearby_users(searcher["id"], NearbyUsersRequest())

    assert db.rows("seen_users") == []
    assert db.rows("ticket_transactions") == []


def test_searcher_without_photos_still_pays(db, service, make_user):
    lonely = make_user(gender="female")

    result = service.find_nearby_users(lonely["id"], NearbyUsersRequest())

    assert result.users == []
    assert result.user_photos_count == 0
    assert result.remaining_tickets == 0


def test_private_and_deleted_photos_are_ignored(db, service, searcher, make_user, add_travel_photo):
    hidden = make_user(gender="female")
    removed = make_user(gender="female")
    add_travel_photo(hidden["id"], *GANGNAM, is_public=False)
    add_travel_photo(removed["id"], *GANGNAM, is_deleted=True)

    result = service.find_nearby_users(searcher["id"], NearbyUsersRequest())

    assert result.users == []


def test_only_photos_in_range_are_returned(db, service, searcher, make_user, add_travel_photo):
    match = make_user(gender="female")
    in_range = add_travel_photo(match["id"], *GANGNAM)
    add_travel_photo(match["id"], GANGNAM[0] + 80 * KM, GANGNAM[1])

    user = service.find_nearby_users(searcher["id"], NearbyUsersRequest()).users[0]

    assert [p.id for p in user.travel_photos] == [in_range["id"]]
    assert user.common_locations_count == 1


def test_age_filter(db, service, searcher, make_user, add_travel_photo):
    young = make_user(gender="female", age=22)
    mid = make_user(gender="female", age=30)
    old = make_user(gender="female", age=45)
    for user in (young, mid, old):
        add_travel_photo(user["id"], *GANGNAM)

    result = service.find_nearby_users(searcher["id"], NearbyUsersRequest(min_age=25, max_age=40))

    assert [u.id for u in result.users] == [mid["id"]]
    assert result.age_filter.min_age == 25
    assert result.age_filter.max_age == 40


def test_invalid_age_range_is_rejected():
    with pytest.raises(ValueError):
        NearbyUsersRequest(min_age=40, max_age=30)


def test_pagination_keeps_full_total(db, service, searcher, make_user, add_travel_photo):
    users = [make_user(gender="female") for _ in range(5)]
    for i, user in enumerate(users):
        add_travel_photo(user["id"], GANGNAM[0] + i * KM, GANGNAM[1])

    result = service.find_nearby_users(searcher["id"], NearbyUsersRequest(page=2, limit=2))

    assert result.total == 5
    assert [u.id for u in result.users] == [users[2]["id"], users[3]["id"]]
    assert len(db.rows("seen_users")) == 5


def test_optional_result_fields(db, service, searcher, make_user, add_travel_photo, add_profile_photo):
    match = make_user(gender="female", lat=37.5665, lon=126.9880, last_location_name="Myeongdong")
    add_travel_photo(match["id"], *GANGNAM)
    photo = add_profile_photo(match["id"])

    request = NearbyUsersRequest(include_last_location=True, include_travel_photos=False)
    user = service.find_nearby_users(searcher["id"], request).users[0]

    assert user.profile_photo.file_url == photo["file_url"]
    assert user.travel_photos == []
    assert user.common_locations_count == 1
    assert user.direct_distance_km == pytest.approx(0.88, abs=0.02)
    assert user.last_location.location_name == "Myeongdong"


def test_direct_distance_omitted_without_locations(db, service, searcher, make_user, add_travel_photo):
    match = make_user(gender="female")
    add_travel_photo(match["id"], *GANGNAM)

    user = service.find_nearby_users(searcher["id"], NearbyUsersRequest()).users[0]

    assert user.direct_distance_km is None
    assert user.last_location is None


def test_searcher_without_gender_is_rejected(service, make_user):
    user = make_user(gender=None)
    with pytest.raises(ValidationError):
        service.find_nearby_users(user["id"], NearbyUsersRequest())


def test_failed_seen_marking_does_not_fail_search(db, service, searcher, make_user, add_travel_photo):
    match = make_user(gender="female")
    add_travel_photo(match["id"], *GANGNAM)
    db.fail("seen_users", "upsert")

    result = service.find_nearby_users(searcher["id"], NearbyUsersRequest())

    assert [u.id for u in result.users] == [match["id"]]
    assert [f.label for f in recent_failures()] == [f"seen_users:{searcher['id']}"]


def test_failed_lookup_before_debit_keeps_ticket(db, service, searcher):
    db.fail("seen_users", "select")

    with pytest.raises(UpstreamError):
        service.find_nearby_users(searcher["id"], NearbyUsersRequest())

    assert TicketService(db).get_balance(searcher["id"]).total_tickets == 1


def test_radius_limits_follow_settings(monkeypatch):
    monkeypatch.setattr(settings, "discovery_default_radius_km", 7.5)
    monkeypatch.setattr(settings, "discovery_max_radius_km", 20.0)

    assert NearbyUsersRequest().radius_km == 7.5
    assert NearbyUsersRequest(radius_km=20).radius_km == 20
    with pytest.raises(SchemaValidationError):
        NearbyUsersRequest(radius_km=20.5)
    with pytest.raises(SchemaValidationError):
        NearbyUsersRequest(radius_km=0)
