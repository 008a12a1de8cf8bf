"""HTTP tests for the community feed endpoint."""
from datetime import datetime, timedelta

from sqlalchemy.exc import OperationalError

from shareskippy.models import ProfileRole

T0 = datetime(2026, 5, 4, 9, 0, 0)


def test_feed_items_shape(client, make_profile):
    make_profile(
        "a1",
        first_name="Maya",
        last_name="Lopez",
        city="San Francisco",
        neighborhood="Mission",
        display_lat=37.76,
        display_lng=-122.41,
        bio="b" * 200,
        activity=[T0],
    )
    response = client.get("/api/community/profiles")
    assert response.status_code == 200
    body = response.get_json()
    assert body["nextCursor"] is None
    (item,) = body["items"]
    assert item["id"] == "a1"
    assert item["display_name"] == "Maya L."
    assert item["city"] == "San Francisco"
    assert item["role"] == "dog_owner"
    assert item["bio_excerpt"] == "b" * 140 + "..."
    assert item["last_online_at"].startswith("2026-05-04T09:00:00")
    assert "email" not in item and "phone_number" not in item


def test_feed_pagination_through_query_string(client, make_profile):
    for n in range(5):
        make_profile(f"p{n}", activity=[T0 + timedelta(minutes=n)])
    first = client.get("/api/community/profiles?limit=2").get_json()
    assert [item["id"] for item in first["items"]] == ["p4", "p3"]
    second = client.get("/api/community/profiles", query_string={"limit": 2, "cursor": first["nextCursor"]}).get_json()
    assert [item["id"] for item in second["items"]] == ["p2", "p1"]
    third = client.get("/api/community/profiles", query_string={"limit": 2, "cursor": second["nextCursor"]}).get_json()
    assert [item["id"] for item in third["items"]] == ["p0"]
    assert third["nextCursor"] is None


def test_feed_is_lenient_with_query_parameters(client, make_profile):
    make_profile("x", role=ProfileRole.PETPAL, activity=[T0])
    response = client.get("/api/community/profiles?limit=abc&role=cat_owner&lat=37.7")
    assert response.status_code == 200
    assert [item["id"] for item in response.get_json()["items"]] == ["x"]


def test_feed_role_and_radius(client, make_profile):
    make_profile("near", role=ProfileRole.PETPAL, display_lat=37.7749, display_lng=-122.4194, activity=[T0])
    make_profile("far", role=ProfileRole.PETPAL, display_lat=40.7128, display_lng=-74.0060, activity=[T0])
    make_profile("owner", role=ProfileRole.DOG_OWNER, display_lat=37.7749, display_lng=-122.4194, activity=[T0])
    response = client.get(
        "/api/community/profiles",
        query_string={"role": "petpal", "lat": "37.77", "lng": "-122.42", "radius": "10"},
    )
    assert [item["id"] for item in response.get_json()["items"]] == ["near"]


def test_feed_bad_cursor_returns_empty_page(client, make_profile):
    make_profile("a", activity=[T0])
    response = client.get("/api/community/profiles?cursor=not-a-cursor")
    assert response.status_code == 200
    assert response.get_json() == {"items": [], "nextCursor": None}


def test_feed_storage_failure_is_500(client, monkeypatch):
    from shareskippy.services import profile_feed

    def failing(role):
        raise OperationalError("SELECT", {}, Exception("database is locked"))

    monkeypatch.setattr(profile_feed, "_fetch_candidates", failing)
    response = client.get("/api/community/profiles")
    assert response.status_code == 500
    assert response.get_json() == {"error": "Storage is unavailable. Please try again later."}


def test_feed_ignores_non_finite_geo(client, make_profile):
    make_profile("x", display_lat=37.7749, display_lng=-122.4194, activity=[T0])
    make_profile("y", activity=[T0])
    for radius in ("nan", "inf"):
        response = client.get(
            "/api/community/profiles", query_string={"lat": "37.77", "lng": "-122.42", "radius": radius}
        )
        assert [item["id"] for item in response.get_json()["items"]] == ["y", "x"]
    response = client.get("/api/community/profiles", query_string={"lat": "nan", "lng": "-122.42", "radius": "5"})
    assert len(response.get_json()["items"]) == 2
