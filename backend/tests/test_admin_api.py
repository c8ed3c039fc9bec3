import pytest
from fastapi.testclient import TestClient

from app.main import app
from app.models import Venue, VibeReport

ADMIN = {"x-admin-key": "test-admin-key"}


@pytest.fixture
def client(db):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def report_ids(db):
    venue = Venue(name="The Rex", slug="the-rex", lat=1.0, lon=2.0)
    db.add(venue)
    db.commit()
    reports = [VibeReport(venue_id=venue.id, vibe_level=level) for level in (1, 5)]
    db.add_all(reports)
    db.commit()
    return [r.id for r in reports]


def test_admin_requires_key(client):
    assert client.get("/admin/reports").status_code == 401
    assert client.get("/admin/reports", headers={"x-admin-key": "wrong"}).status_code == 401


def test_flagging_hides_report_from_public_reads(client, report_ids):
    listing = client.get("/admin/reports", headers=ADMIN).json()
    assert listing["total"] == 2
    assert listing["vibe_reports"][0]["venue"]["slug"] == "the-rex"

    resp = client.patch(f"/admin/reports/{report_ids[0]}", json={"flagged": True}, headers=ADMIN)
    assert resp.status_code == 200
    assert resp.json()["vibe_report"]["flagged"] is True

    public = client.get("/venues/the-rex").json()
    assert public["aggregated_data"]["total_vibes"] == 1
    assert public["aggregated_data"]["average_vibe_level"] == 5.0
    assert [r["id"] for r in public["vibe_reports"]] == [report_ids[1]]

    flagged = client.get("/admin/reports", params={"flagged": True}, headers=ADMIN).json()
    assert [r["id"] for r in flagged["vibe_reports"]] == [report_ids[0]]

    client.patch(f"/admin/reports/{report_ids[0]}", json={"flagged": False}, headers=ADMIN)
    assert client.get("/venues/the-rex").json()["aggregated_data"]["total_vibes"] == 2


def test_flagging_unknown_report_is_404(client):
    assert client.patch("/admin/reports/nope", json={"flagged": True}, headers=ADMIN).status_code == 404
