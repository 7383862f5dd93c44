"""
End-to-end tests for the HTTP API: status codes, error bodies and the main
booking flow through registration, login, booking, payment and cancellation.
"""
import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from teamtango.api.main import app
from teamtango.database.db import get_db_session
from teamtango.utils.constants import ADMIN, SUPER_ADMIN

PASSWORD = "pass1234"


@pytest_asyncio.fixture
async def client(test_engine):
    """Test client whose request sessions use the per-test database."""
    session_maker = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)

    async def override_get_db_session():
        async with session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db_session] = override_get_db_session
    yield TestClient(app)
    app.dependency_overrides.clear()


def register_and_login(client, email, user_type="player", name="Test User"):
    response = client.post(
        "/api/auth/register",
        json={
            "name": name,
            "email": email,
            "password": PASSWORD,
            "phone_number": "9822000000",
            "userType": user_type,
        },
    )
    assert response.status_code == 201, response.text
    return login(client, email, PASSWORD)


def login(client, email, password):
    response = client.post("/api/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


def create_venue(client, headers, **overrides):
    payload = {"name": "Viman Nagar Arena", "address": "Phoenix Rd", "sport_id": 1, "price_per_hour": 800}
    payload.update(overrides)
    response = client.post("/api/venues", json=payload, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


@pytest.mark.asyncio
async def test_status_and_health(client):
    assert client.get("/api/status").json()["status"] == "ok"
    health = client.get("/api/health")
    assert health.status_code == 200
    assert health.json()["status"] == "healthy"


@pytest.mark.asyncio
async def test_unknown_api_route_is_json_404(client):
    response = client.get("/api/does-not-exist")
    assert response.status_code == 404
    assert response.json()["error"] == "not_found"


@pytest.mark.asyncio
async def test_register_validation_error_body(client):
    response = client.post("/api/auth/register", json={"name": "No Email", "userType": "player"})
    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "validation_error"
    assert "email" in body["message"]


@pytest.mark.asyncio
async def test_register_duplicate_is_409(client):
    register_and_login(client, "dup@example.com")
    response = client.post(
        "/api/auth/register",
        json={"name": "Again", "email": "dup@example.com", "password": "x1", "phone_number": "1", "userType": "player"},
    )
    assert response.status_code == 409
    assert response.json()["error"] == "conflict"


@pytest.mark.asyncio
async def test_login_failure_is_generic(client):
    register_and_login(client, "asha@example.com")
    response = client.post("/api/auth/login", json={"email": "asha@example.com", "password": "wrong"})
    assert response.status_code == 401
    assert response.json() == {"error": "invalid_credentials", "message": "Invalid email or password"}


@pytest.mark.asyncio
async def test_missing_and_invalid_tokens(client):
    missing = client.get("/api/bookings")
    assert missing.status_code == 401
    assert missing.json()["error"] == "missing_token"

    invalid = client.get("/api/bookings", headers={"Authorization": "Bearer nonsense"})
    assert invalid.status_code == 403
    assert invalid.json()["error"] == "invalid_token"


@pytest.mark.asyncio
async def test_profile_round_trip(client):
    headers = register_and_login(client, "profile@example.com", name="Before")
    assert client.get("/api/auth/profile", headers=headers).json()["name"] == "Before"

    updated = client.put("/api/auth/profile", json={"name": "After"}, headers=headers)
    assert updated.status_code == 200
    assert updated.json()["name"] == "After"


@pytest.mark.asyncio
async def test_permission_check_endpoint(client):
    headers = register_and_login(client, "perm@example.com")
    allowed = client.get("/api/auth/permissions/Bookings/insert", headers=headers).json()
    denied = client.get("/api/auth/permissions/Venues/delete", headers=headers).json()
    assert allowed["has_permission"] is True
    assert denied["has_permission"] is False


@pytest.mark.asyncio
async def test_player_cannot_create_venue(client):
    headers = register_and_login(client, "player@example.com")
    response = client.post("/api/venues", json={"name": "X", "address": "Y"}, headers=headers)
    assert response.status_code == 403
    assert response.json()["error"] == "insufficient_role"


@pytest.mark.asyncio
async def test_booking_flow(client, play_date):
    owner = register_and_login(client, "owner@example.com", user_type="venue_owner", name="Owner")
    player = register_and_login(client, "player@example.com", name="Player")
    rival = register_and_login(client, "rival@example.com", name="Rival")
    venue = create_venue(client, owner)

    booking = client.post(
        "/api/bookings",
        json={"venue_id": venue["id"], "booking_date": play_date.isoformat(), "start_time": "18:00", "end_time": "19:00"},
        headers=player,
    )
    assert booking.status_code == 201, booking.text
    booking = booking.json()
    assert booking["status"] == "Pending"
    assert booking["total_amount"] == 800.0

    taken = client.post(
        "/api/bookings",
        json={"venue_id": venue["id"], "booking_date": play_date.isoformat(), "start_time": "18:00", "end_time": "19:00"},
        headers=rival,
    )
    assert taken.status_code == 409

    slots = client.get(f"/api/venues/{venue['id']}/timeslots", params={"date": play_date.isoformat()}).json()
    assert [s["is_available"] for s in slots] == [False]

    assert client.get(f"/api/bookings/{booking['id']}", headers=rival).status_code == 403
    assert len(client.get(f"/api/venues/{venue['id']}/bookings", headers=owner).json()) == 1
    assert len(client.get("/api/bookings/my", headers=player).json()) == 1

    paid = client.post(
        "/api/payments", json={"booking_id": booking["id"], "amount": 800, "method": "UPI"}, headers=player
    )
    assert paid.status_code == 201, paid.text
    assert paid.json()["booking_status"] == "Confirmed"

    unread = client.get("/api/notifications/unread-count", headers=owner).json()
    assert unread["count"] == 1

    cancelled = client.delete(f"/api/bookings/{booking['id']}", headers=player)
    assert cancelled.status_code == 200
    assert cancelled.json()["status"] == "Cancelled"

    rebooked = client.post(
        "/api/bookings",
        json={"venue_id": venue["id"], "booking_date": play_date.isoformat(), "start_time": "18:00", "end_time": "19:00"},
        headers=rival,
    )
    assert rebooked.status_code == 201


@pytest.mark.asyncio
async def test_past_booking_is_400(client):
    owner = register_and_login(client, "owner@example.com", user_type="venue_owner")
    player = register_and_login(client, "player@example.com")
    venue = create_venue(client, owner)
    response = client.post(
        "/api/bookings",
        json={"venue_id": venue["id"], "booking_date": "2020-01-01", "start_time": "18:00", "end_time": "19:00"},
        headers=player,
    )
    assert response.status_code == 400
    assert response.json()["error"] == "validation_error"


@pytest.mark.asyncio
async def test_other_owner_cannot_edit_venue(client):
    owner = register_and_login(client, "owner@example.com", user_type="venue_owner")
    rival = register_and_login(client, "rival-owner@example.com", user_type="venue_owner")
    venue = create_venue(client, owner)

    response = client.put(f"/api/venues/{venue['id']}", json={"price_per_hour": 1}, headers=rival)
    assert response.status_code == 403
    assert response.json()["error"] == "not_owner"


@pytest.mark.asyncio
async def test_venue_search_requires_term(client):
    assert client.get("/api/venues/search").status_code == 400
    assert client.get("/api/venues/search", params={"q": "nothing"}).json() == []


@pytest.mark.asyncio
async def test_team_routes(client):
    captain = register_and_login(client, "captain@example.com")
    member = register_and_login(client, "member@example.com")

    team = client.post("/api/teams", json={"name": "Shivajinagar Strikers", "sport_id": 1}, headers=captain)
    assert team.status_code == 201
    team_id = team.json()["id"]

    assert client.post(f"/api/teams/{team_id}/join", json={"position": "Keeper"}, headers=member).status_code == 200
    leave = client.post(f"/api/teams/{team_id}/leave", headers=captain)
    assert leave.status_code == 400
    assert leave.json()["error"] == "captain_cannot_leave"

    assert client.put(f"/api/teams/{team_id}", json={"name": "Hijack"}, headers=member).status_code == 403
    assert client.get(f"/api/teams/{team_id}").json()["member_count"] == 2


@pytest.mark.asyncio
async def test_admin_routes(client, make_user):
    admin = await make_user(ADMIN, email="admin@example.com")
    root = await make_user(SUPER_ADMIN, email="root@example.com")
    admin_headers = login(client, admin["email"], "s3cret-pass")
    root_headers = login(client, root["email"], "s3cret-pass")
    player_headers = register_and_login(client, "player@example.com")

    users = client.get("/api/users", headers=admin_headers)
    assert users.status_code == 200
    player_id = next(u["id"] for u in users.json() if u["email"] == "player@example.com")

    assert client.get("/api/users", headers=player_headers).status_code == 403
    assert client.delete(f"/api/users/{player_id}", headers=admin_headers).status_code == 403
    assert client.delete(f"/api/users/{root['id']}", headers=root_headers).status_code == 400

    promoted = client.post(f"/api/users/{player_id}/promote", headers=root_headers)
    assert promoted.status_code == 200
    assert promoted.json()["role_id"] == ADMIN

    player_activity = client.get(f"/api/users/{player_id}/activity", headers=admin_headers).json()
    assert {"CREATE", "LOGIN"} <= {entry["action"] for entry in player_activity}
    root_activity = client.get(f"/api/users/{root['id']}/activity", headers=admin_headers).json()
    assert any(entry["action"] == "UPDATE_ROLE" for entry in root_activity)


@pytest.mark.asyncio
async def test_analytics_access(client):
    player = register_and_login(client, "player@example.com")
    assert client.get("/api/analytics/popular-sports").status_code == 200
    assert client.get("/api/analytics/available-timeslots").json() == []
    assert client.get("/api/analytics/venue-utilization", headers=player).status_code == 403
    assert client.get("/api/analytics/booking-summaries", headers=player).json() == []
