import asyncio
import threading

import pytest
from sqlalchemy.exc import IntegrityError

from app.core.errors import SlugConflict, VenueNotFound
from app.models import Venue
from app.services import vibe_report_service
from app.services.cache import CacheBackendSelection, LocalBackend
from app.services.materialize import ExternalVenuePayload, ensure_catalog_venue, slug_candidates, slugify
from app.services.rate_limit import RateLimiter
from app.services.venue_service import create_vibe_report
from app.services.vibe_report_service import resolve_target_venue


def payload(pid="p1", name="The Rex", **kwargs):
    return ExternalVenuePayload(external_place_id=pid, name=name, address="1 Main St", lat=1.0, lon=2.0, **kwargs)


def test_slugify():
    assert slugify("The Rex!!") == "the-rex"
    assert slugify("Café  Noir") == "cafe-noir"
    assert slugify("  --Club -- 69--  ") == "club-69"
    assert slugify("!!!") == "venue"
    assert slugify("") == "venue"


def test_slug_candidates_are_bounded():
    assert list(slug_candidates("the-rex", 3)) == ["the-rex", "the-rex-1", "the-rex-2"]


def test_new_place_becomes_catalog_venue(db):
    venue = ensure_catalog_venue(db, payload(photo_url="https://img/rex.jpg", categories=["bar", "bar", "night_club"]))
    assert venue.slug == "the-rex"
    assert venue.external_place_id == "p1"
    assert venue.is_featured is False
    assert venue.cover_photo_url == "https://img/rex.jpg"
    assert venue.categories == ["bar", "night_club"]
    assert venue.vibe_reports == []


def test_taken_slug_gets_numeric_suffix(db):
    db.add(Venue(name="The Rex", slug="the-rex", lat=0.0, lon=0.0))
    db.commit()
    venue = ensure_catalog_venue(db, payload())
    assert venue.slug == "the-rex-1"


def test_already_materialized_place_returns_existing_venue(db):
    first = ensure_catalog_venue(db, payload())
    again = ensure_catalog_venue(db, payload(name="Totally Different Name"))
    assert again.id == first.id
    assert db.query(Venue).count() == 1


def test_slug_exhaustion_raises_conflict(db):
    db.add_all(
        [
            Venue(name="The Rex", slug="the-rex", lat=0.0, lon=0.0),
            Venue(name="The Rex", slug="the-rex-1", lat=0.0, lon=0.0),
        ]
    )
    db.commit()
    with pytest.raises(SlugConflict):
        ensure_catalog_venue(db, payload(), max_attempts=2)


def test_external_slug_requires_matching_payload(db):
    with pytest.raises(VenueNotFound):
        resolve_target_venue(db, "external_p1", None)
    with pytest.raises(VenueNotFound):
        resolve_target_venue(db, "external_p1", payload(pid="other"))

    venue, redirect = resolve_target_venue(db, "external_p1", payload())
    assert redirect == venue.slug == "the-rex"


def test_unknown_catalog_slug_is_not_found(db):
    with pytest.raises(VenueNotFound):
        resolve_target_venue(db, "nope", None)


def test_non_slug_constraint_failure_is_not_reported_as_conflict(db):
    broken = ExternalVenuePayload(external_place_id="p1", name="The Rex", address="", lat=None, lon=2.0)
    with pytest.raises(IntegrityError):
        ensure_catalog_venue(db, broken, max_attempts=5)
    assert db.query(Venue).count() == 0


def test_submission_writes_to_the_catalog_off_the_event_loop(db, monkeypatch):
    db.add(Venue(name="The Rex", slug="the-rex", lat=0.0, lon=0.0))
    db.commit()
    threads = []

    def recording_create(*args, **kwargs):
        threads.append(threading.get_ident())
        return create_vibe_report(*args, **kwargs)

    monkeypatch.setattr(vibe_report_service, "create_vibe_report", recording_create)
    limiter = RateLimiter(CacheBackendSelection(LocalBackend()), max_requests=3, window_seconds=3600)

    async def run():
        loop_thread = threading.get_ident()
        result = await vibe_report_service.submit_vibe_report(db, limiter, slug="the-rex", vibe_level=4, device_id="d1")
        return loop_thread, result

    loop_thread, result = asyncio.run(run())
    assert threads and threads[0] != loop_thread
    assert result.venue.slug == "the-rex"
    assert result.report.vibe_level == 4
    assert result.redirect_slug is None
