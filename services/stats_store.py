"""
Durable per-page analytics aggregates.

Every mutation is expressed as single-row atomic upserts
(``INSERT ... ON CONFLICT ... DO UPDATE SET c = c + excluded.c``) so that
simultaneous page views never lose updates; nothing is read and written back
from application memory. Transient storage errors are rolled back and the
whole unit of work is retried.
"""
import hashlib
import hmac
import logging
import math
import os
from collections import defaultdict
from datetime import datetime
from typing import Callable, Dict, List, Optional

from fastapi import Depends
from sqlalchemy import case, insert
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type, before_sleep_log

from database import get_db
from models.page_stats import (
    PageStats, PageStatCounter, PageDailyVisitor, PageVisitor, VisitDuration,
    DAILY, HOURLY, LOCATION, UNIQUE, DOWNLOAD,
)
from schemas.page_stats import (
    PageStatsSnapshot, LocationViews, VisitDurationEntry, VisitLocationData,
    AnalyticsSummary, TopLocation,
)
from services.errors import ValidationError
from services.geo_resolver import GeoResolver, VisitLocation, get_geo_resolver
from utils.clock import local_now
from utils.logger_factory import new_logger

MIN_VISIT_DURATION_SECONDS = 1
TOP_LOCATIONS_LIMIT = 3
RECENT_VISITS_LIMIT = 5

VISITOR_HASH_SECRET = os.getenv("VISITOR_HASH_SECRET") or os.getenv("SESSION_SECRET_KEY")
if not VISITOR_HASH_SECRET:
    raise RuntimeError("VISITOR_HASH_SECRET (or SESSION_SECRET_KEY) must be set to hash visitor ips.")

stats_retry_logger = new_logger("stats_store_retry")

storage_retry = retry(
    stop=stop_after_attempt(5),
    wait=wait_exponential(multiplier=0.05, min=0.05, max=1),
    retry=retry_if_exception_type(OperationalError),
    before_sleep=before_sleep_log(stats_retry_logger, logging.WARNING),
    reraise=True,
)


def day_key(moment: datetime) -> str:
    return moment.strftime("%Y-%m-%d")


def hash_visitor(client_ip: str, secret: Optional[str] = None) -> str:
    """Keyed HMAC-SHA256 of the client ip; raw addresses are never stored."""
    key = (secret or VISITOR_HASH_SECRET).encode("utf-8")
    return hmac.new(key, client_ip.encode("utf-8"), hashlib.sha256).hexdigest()


def upsert(db: Session, model):
    """Dialect specific INSERT construct supporting ON CONFLICT clauses."""
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert(model.__table__)
    if dialect == "sqlite":
        return sqlite.insert(model.__table__)
    raise RuntimeError(f"Atomic upserts are not supported on the {dialect} dialect")


class StatsStore:
    def __init__(self, db: Session, geo_resolver: Optional[GeoResolver] = None):
        self.db = db
        self.geo_resolver = geo_resolver or GeoResolver()

    # -- unit of work -------------------------------------------------------

    def _run(self, work: Callable[[], None], commit: bool):
        """
        Execute ``work`` inside the session's transaction.

        With ``commit=False`` the caller owns the transaction (and its retries),
        which lets CommentLedger persist an annotation and its counter together.
        """
        if not commit:
            work()
            return
        self._run_and_commit(work)

    @storage_retry
    def _run_and_commit(self, work: Callable[[], None]):
        try:
            work()
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

    # -- atomic primitives --------------------------------------------------

    def _bump_page_stats(self, page_id: int, now: datetime, **increments):
        table = PageStats.__table__
        stmt = upsert(self.db, PageStats).values(share_page_id=page_id, last_updated=now, **increments)
        set_ = {name: table.c[name] + stmt.excluded[name] for name in increments}
        set_["last_updated"] = stmt.excluded.last_updated
        stmt = stmt.on_conflict_do_update(index_elements=[table.c.share_page_id], set_=set_)
        self.db.execute(stmt)

    def _bump_counter(self, page_id: int, kind: str, bucket: str, now: datetime, amount: int = 1):
        table = PageStatCounter.__table__
        stmt = upsert(self.db, PageStatCounter).values(
            share_page_id=page_id, kind=kind, bucket=str(bucket), count=amount, last_seen_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[table.c.share_page_id, table.c.kind, table.c.bucket],
            set_={"count": table.c["count"] + stmt.excluded["count"], "last_seen_at": stmt.excluded.last_seen_at},
        )
        self.db.execute(stmt)

    def _mark_visitor(self, model, page_id: int, now: datetime, **key) -> bool:
        """Insert a visitor marker; True only for the caller whose insert created it."""
        table = model.__table__
        stmt = upsert(self.db, model).values(share_page_id=page_id, first_seen_at=now, **key)
        stmt = stmt.on_conflict_do_nothing(index_elements=[table.c.share_page_id] + [table.c[k] for k in key])
        result = self.db.execute(stmt)
        return result.rowcount == 1

    # -- operations ---------------------------------------------------------

    async def locate(self, client_ip: Optional[str]) -> Optional[VisitLocation]:
        """Best-effort location lookup; failures are logged and yield None."""
        try:
            return await self.geo_resolver.resolve(client_ip)
        except Exception:
            new_logger("locate").exception("Location lookup failed; continuing without location")
            return None

    async def record_view(self, page_id: int, client_ip: Optional[str], now: Optional[datetime] = None):
        """
        Count one page view.

        Bumps total, daily and hourly views, the distinct visitor counters and,
        when the ip resolves to a location, that location's bucket. The stats
        row is created by the first view if it does not exist yet.
        """
        log = new_logger("record_view")

        location = await self.locate(client_ip)

        now = now or local_now()
        day = day_key(now)
        visitor = hash_visitor(client_ip) if client_ip and client_ip != "unknown" else None

        def work():
            new_today = new_ever = False
            if visitor:
                new_ever = self._mark_visitor(PageVisitor, page_id, now, visitor_hash=visitor)
                new_today = self._mark_visitor(PageDailyVisitor, page_id, now, day=day, visitor_hash=visitor)
            self._bump_page_stats(page_id, now, total_views=1, total_unique_visitors=1 if new_ever else 0)
            self._bump_counter(page_id, DAILY, day, now)
            self._bump_counter(page_id, HOURLY, str(now.hour), now)
            if new_today:
                self._bump_counter(page_id, UNIQUE, day, now)
            if location is not None:
                self._bump_counter(page_id, LOCATION, location.key, now)

        self._run(work, commit=True)
        log.info(f"View recorded for page {page_id} (day={day}, hour={now.hour}, "
                 f"location={location.key if location else None})")

    def record_visit_duration(self, page_id: int, duration_seconds: float,
                              location: Optional[VisitLocation] = None,
                              now: Optional[datetime] = None, commit: bool = True) -> bool:
        """
        Append one visible-time interval and fold it into the all-time average.

        Returns False when the interval is below the one second floor and was dropped.
        """
        log = new_logger("record_visit_duration")

        if isinstance(duration_seconds, bool) or not isinstance(duration_seconds, (int, float)) \
                or not math.isfinite(duration_seconds):
            raise ValidationError(f"Invalid duration value: {duration_seconds!r}")
        if duration_seconds < MIN_VISIT_DURATION_SECONDS:
            log.info(f"Ignoring {duration_seconds}s interval for page {page_id}: below the "
                     f"{MIN_VISIT_DURATION_SECONDS}s floor")
            return False

        now = now or local_now()
        day = day_key(now)

        def work():
            self.db.execute(
                insert(VisitDuration).values(
                    share_page_id=page_id,
                    day=day,
                    duration_seconds=float(duration_seconds),
                    recorded_at=now,
                    location_key=location.key if location else None,
                    country=location.country if location else None,
                    region=location.region if location else None,
                    city=location.city if location else None,
                )
            )
            self._bump_page_stats(page_id, now, visit_duration_total=float(duration_seconds),
                                  visit_duration_count=1)

        self._run(work, commit)
        log.info(f"Recorded {duration_seconds}s visit interval for page {page_id} on {day}")
        return True

    def record_comment_delta(self, page_id: int, delta: int, now: Optional[datetime] = None,
                             commit: bool = True):
        """Adjust total_comments by +1 or -1; decrements stop at zero."""
        if delta not in (1, -1):
            raise ValueError(f"Comment delta must be +1 or -1, got {delta!r}")

        now = now or local_now()

        def work():
            table = PageStats.__table__
            stmt = upsert(self.db, PageStats).values(
                share_page_id=page_id, total_comments=max(delta, 0), last_updated=now,
            )
            if delta > 0:
                new_total = table.c.total_comments + 1
            else:
                new_total = case((table.c.total_comments > 0, table.c.total_comments - 1), else_=0)
            stmt = stmt.on_conflict_do_update(
                index_elements=[table.c.share_page_id],
                set_={"total_comments": new_total, "last_updated": stmt.excluded.last_updated},
            )
            self.db.execute(stmt)

        self._run(work, commit)
        new_logger("record_comment_delta").info(f"Comment count for page {page_id} adjusted by {delta:+d}")

    def record_download(self, page_id: int, file_name: str, now: Optional[datetime] = None):
        now = now or local_now()

        def work():
            self._bump_counter(page_id, DOWNLOAD, file_name, now)
            self._bump_page_stats(page_id, now)

        self._run(work, commit=True)
        new_logger("record_download").info(f"Download of {file_name!r} recorded for page {page_id}")

    def get_stats(self, page_id: int) -> PageStatsSnapshot:
        """Read-only snapshot of every aggregate for a page."""
        stats = self.db.query(PageStats).filter(PageStats.share_page_id == page_id).first()
        if stats is None:
            return PageStatsSnapshot(share_page_id=page_id)

        buckets: Dict[str, Dict[str, PageStatCounter]] = defaultdict(dict)
        for counter in self.db.query(PageStatCounter).filter(PageStatCounter.share_page_id == page_id):
            buckets[counter.kind][counter.bucket] = counter

        durations: Dict[str, List[VisitDurationEntry]] = defaultdict(list)
        rows = (
            self.db.query(VisitDuration)
            .filter(VisitDuration.share_page_id == page_id)
            .order_by(VisitDuration.recorded_at, VisitDuration.id)
        )
        for row in rows:
            location = None
            if row.location_key:
                location = VisitLocationData(key=row.location_key, country=row.country,
                                             region=row.region, city=row.city)
            durations[row.day].append(
                VisitDurationEntry(duration=row.duration_seconds, timestamp=row.recorded_at, location=location)
            )

        return PageStatsSnapshot(
            share_page_id=page_id,
            total_views=stats.total_views,
            daily_views={k: c.count for k, c in sorted(buckets[DAILY].items())},
            hourly_views={k: c.count for k, c in sorted(buckets[HOURLY].items(), key=lambda kv: int(kv[0]))},
            location_views={k: LocationViews(views=c.count, last_view=c.last_seen_at)
                            for k, c in buckets[LOCATION].items()},
            unique_visitors={k: c.count for k, c in sorted(buckets[UNIQUE].items())},
            total_unique_visitors=stats.total_unique_visitors,
            total_comments=stats.total_comments,
            file_downloads={k: c.count for k, c in buckets[DOWNLOAD].items()},
            daily_visit_durations=dict(durations),
            average_visit_duration=stats.average_visit_duration,
            last_updated=stats.last_updated,
        )


def summarize_stats(snapshot: PageStatsSnapshot, now: Optional[datetime] = None) -> AnalyticsSummary:
    """Dashboard view of a snapshot: today's numbers, top locations and the latest visits."""
    now = now or local_now()
    today = day_key(now)

    top = sorted(snapshot.location_views.items(), key=lambda kv: kv[1].views, reverse=True)
    today_visits = snapshot.daily_visit_durations.get(today, [])
    today_average = 0.0
    if today_visits:
        today_average = sum(v.duration for v in today_visits) / len(today_visits)

    return AnalyticsSummary(
        share_page_id=snapshot.share_page_id,
        day=today,
        hour=now.hour,
        total_views=snapshot.total_views,
        today_views=snapshot.daily_views.get(today, 0),
        current_hour_views=snapshot.hourly_views.get(str(now.hour), 0),
        today_unique_visitors=snapshot.unique_visitors.get(today, 0),
        total_unique_visitors=snapshot.total_unique_visitors,
        total_comments=snapshot.total_comments,
        top_locations=[TopLocation(location=key, views=lv.views, last_view=lv.last_view)
                       for key, lv in top[:TOP_LOCATIONS_LIMIT]],
        today_average_duration=today_average,
        average_visit_duration=snapshot.average_visit_duration,
        recent_visits=today_visits[-RECENT_VISITS_LIMIT:],
    )


def get_stats_store(db: Session = Depends(get_db), geo_resolver: GeoResolver = Depends(get_geo_resolver)) -> StatsStore:
    return StatsStore(db, geo_resolver)
