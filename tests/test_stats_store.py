import asyncio
import hashlib
from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta

import pytest

from conftest import NOW, KNOWN_LOCATIONS, StaticGeoResolver
from models.page_stats import PageDailyVisitor, PageStats, PageVisitor
from services.errors import ValidationError
from services.geo_resolver import VisitLocation
from services.stats_store import StatsStore, hash_visitor, summarize_stats


@pytest.fixture
def store(db, geo):
    return StatsStore(db, geo)


def view(store, page_id, ip, now=NOW):
    asyncio.run(store.record_view(page_id, ip, now=now))


def test_new_page_starts_with_empty_stats(store, make_page):
    page = make_page()
    stats = store.get_stats(page.id)
    assert stats.total_views == 0
    assert stats.daily_views == {}
    assert stats.total_comments == 0
    assert stats.average_visit_duration == 0


def test_record_view_updates_every_bucket(store, make_page):
    page = make_page()

    view(store, page.id, "8.8.8.8")

    stats = store.get_stats(page.id)
    assert stats.total_views == 1
    assert stats.daily_views == {"2026-10-19": 1}
    assert stats.hourly_views == {"14": 1}
    assert stats.location_views["Mountain View, California, United States"].views == 1
    assert stats.location_views["Mountain View, California, United States"].last_view == NOW
    assert stats.unique_visitors == {"2026-10-19": 1}
    assert stats.total_unique_visitors == 1
    assert stats.last_updated == NOW


def test_unresolved_ip_still_counts_without_location(store, make_page):
    page = make_page()

    view(store, page.id, "10.0.0.4")

    stats = store.get_stats(page.id)
    assert stats.total_views == 1
    assert stats.location_views == {}


def test_location_key_omits_missing_segments(store, make_page):
    page = make_page()
    view(store, page.id, "203.0.113.9")
    assert list(store.get_stats(page.id).location_views) == ["Japan"]


def test_geo_failure_is_not_fatal(db, make_page):
    class BrokenResolver:
        async def resolve(self, ip_address):
            raise RuntimeError("lookup service down")

    page = make_page()
    store = StatsStore(db, BrokenResolver())

    view(store, page.id, "8.8.8.8")

    stats = store.get_stats(page.id)
    assert stats.total_views == 1
    assert stats.location_views == {}


def test_unique_visitors_are_counted_per_day_and_overall(store, make_page):
    page = make_page()
    tomorrow = NOW + timedelta(days=1)

    view(store, page.id, "8.8.8.8")
    view(store, page.id, "8.8.8.8")
    view(store, page.id, "81.2.69.160")
    view(store, page.id, "8.8.8.8", now=tomorrow)

    stats = store.get_stats(page.id)
    assert stats.total_views == 4
    assert stats.unique_visitors == {"2026-10-19": 2, "2026-10-20": 1}
    assert stats.total_unique_visitors == 2
    assert stats.location_views["Mountain View, California, United States"].views == 3


def test_hourly_views_accumulate_across_days(store, make_page):
    page = make_page()

    view(store, page.id, "8.8.8.8", now=NOW)
    view(store, page.id, "8.8.8.8", now=NOW + timedelta(days=1))
    view(store, page.id, "8.8.8.8", now=NOW + timedelta(hours=1))

    stats = store.get_stats(page.id)
    assert stats.hourly_views == {"14": 2, "15": 1}
    assert stats.daily_views == {"2026-10-19": 2, "2026-10-20": 1}


def test_record_view_creates_missing_stats_row(db, store, make_page):
    page = make_page()
    db.query(PageStats).filter(PageStats.share_page_id == page.id).delete()
    db.commit()

    view(store, page.id, "8.8.8.8")

    assert store.get_stats(page.id).total_views == 1


def test_concurrent_views_do_not_lose_updates(session_factory, make_page):
    page = make_page()
    page_id = page.id
    total = 40

    def record(i):
        session = session_factory()
        try:
            store = StatsStore(session, StaticGeoResolver(KNOWN_LOCATIONS))
            ip = "8.8.8.8" if i % 2 else f"198.51.100.{i}"
            asyncio.run(store.record_view(page_id, ip, now=NOW))
        finally:
            session.close()

    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(record, range(total)))

    check = session_factory()
    try:
        stats = StatsStore(check, StaticGeoResolver()).get_stats(page_id)
    finally:
        check.close()
    assert stats.total_views == total
    assert sum(stats.daily_views.values()) == total
    assert sum(stats.daily_views.values()) <= stats.total_views
    assert stats.hourly_views == {"14": total}
    assert stats.location_views["Mountain View, California, United States"].views == total // 2
    # 20 distinct 198.51.100.x addresses plus 8.8.8.8
    assert stats.total_unique_visitors == total // 2 + 1


def test_short_durations_are_dropped(store, make_page):
    page = make_page()

    assert store.record_visit_duration(page.id, 0.4, now=NOW) is False
    assert store.record_visit_duration(page.id, 0, now=NOW) is False

    stats = store.get_stats(page.id)
    assert stats.daily_visit_durations == {}
    assert stats.average_visit_duration == 0


def test_average_duration_spans_all_days(store, make_page):
    page = make_page()
    location = KNOWN_LOCATIONS["81.2.69.160"]

    store.record_visit_duration(page.id, 10, now=NOW - timedelta(days=2))
    store.record_visit_duration(page.id, 20, location=location, now=NOW - timedelta(days=1))
    store.record_visit_duration(page.id, 30, now=NOW)

    stats = store.get_stats(page.id)
    assert stats.average_visit_duration == 20
    assert [e.duration for e in stats.daily_visit_durations["2026-10-19"]] == [30]
    entry = stats.daily_visit_durations["2026-10-18"][0]
    assert entry.location.key == "London, England, United Kingdom"
    assert entry.timestamp == NOW - timedelta(days=1)


def test_durations_for_the_same_day_keep_their_order(store, make_page):
    page = make_page()
    for offset, seconds in enumerate([60, 60, 12]):
        store.record_visit_duration(page.id, seconds, now=NOW + timedelta(minutes=offset))
    entries = store.get_stats(page.id).daily_visit_durations["2026-10-19"]
    assert [e.duration for e in entries] == [60, 60, 12]


@pytest.mark.parametrize("bad", [float("nan"), float("inf"), "12", None])
def test_malformed_duration_is_rejected(store, make_page, bad):
    page = make_page()
    with pytest.raises(ValidationError):
        store.record_visit_duration(page.id, bad, now=NOW)
    assert store.get_stats(page.id).daily_visit_durations == {}


def test_comment_count_never_goes_below_zero(store, make_page):
    page = make_page()

    store.record_comment_delta(page.id, 1)
    store.record_comment_delta(page.id, -1)
    store.record_comment_delta(page.id, -1)
    store.record_comment_delta(page.id, -1)

    assert store.get_stats(page.id).total_comments == 0

    store.record_comment_delta(page.id, 1)
    assert store.get_stats(page.id).total_comments == 1


def test_comment_delta_must_be_unit(store, make_page):
    page = make_page()
    with pytest.raises(ValueError):
        store.record_comment_delta(page.id, 2)


def test_record_download_counts_per_file(store, make_page):
    page = make_page()

    store.record_download(page.id, "deck.pdf")
    store.record_download(page.id, "deck.pdf")
    store.record_download(page.id, "notes.txt")

    assert store.get_stats(page.id).file_downloads == {"deck.pdf": 2, "notes.txt": 1}


def test_summary_reports_today_and_top_locations(store, make_page):
    page = make_page()
    for ip in ["8.8.8.8", "8.8.8.8", "81.2.69.160", "203.0.113.9", "8.8.8.8"]:
        view(store, page.id, ip)
    view(store, page.id, "81.2.69.160", now=NOW - timedelta(days=1))
    store.record_visit_duration(page.id, 40, now=NOW)
    store.record_visit_duration(page.id, 20, now=NOW)
    store.record_visit_duration(page.id, 90, now=NOW - timedelta(days=1))

    summary = summarize_stats(store.get_stats(page.id), now=NOW)

    assert summary.day == "2026-10-19"
    assert summary.today_views == 5
    assert summary.current_hour_views == 6
    assert summary.today_unique_visitors == 3
    assert [t.location for t in summary.top_locations] == [
        "Mountain View, California, United States",
        "London, England, United Kingdom",
        "Japan",
    ]
    assert summary.today_average_duration == 30
    assert summary.average_visit_duration == 50
    assert [v.duration for v in summary.recent_visits] == [40, 20]


def test_visit_location_key_format():
    assert VisitLocation(city="Paris", region=None, country="France").key == "Paris, France"
    assert VisitLocation().key == ""


def test_visitor_markers_are_keyed_hashes(db, store, make_page):
    page = make_page()

    view(store, page.id, "8.8.8.8")

    stored = {v.visitor_hash for v in db.query(PageVisitor).filter(PageVisitor.share_page_id == page.id)}
    stored |= {v.visitor_hash for v in db.query(PageDailyVisitor).filter(PageDailyVisitor.share_page_id == page.id)}
    assert stored == {hash_visitor("8.8.8.8")}
    # A bare digest of the address would be reversible by enumerating the ipv4 space
    assert hashlib.sha256(b"8.8.8.8").hexdigest() not in stored
    assert "8.8.8.8" not in stored


def test_visitor_hash_depends_on_the_key():
    assert hash_visitor("8.8.8.8", secret="one") == hash_visitor("8.8.8.8", secret="one")
    assert hash_visitor("8.8.8.8", secret="one") != hash_visitor("8.8.8.8", secret="two")
    assert hash_visitor("8.8.8.8", secret="one") != hash_visitor("8.8.4.4", secret="one")
