from sqlalchemy import Column, Integer, String, DateTime, Float, ForeignKey, UniqueConstraint, Index, CheckConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from database import Base


# Bucket kinds stored in page_stat_counters
DAILY = "daily"
HOURLY = "hourly"
LOCATION = "location"
UNIQUE = "unique"
DOWNLOAD = "download"


class PageStats(Base):
    """Scalar aggregates for one share page. Exactly one row per page."""
    __tablename__ = 'page_stats'
    __table_args__ = (
        CheckConstraint('total_comments >= 0', name='ck_page_stats_comments_non_negative'),
    )

    id = Column(Integer, primary_key=True)
    share_page_id = Column(Integer, ForeignKey('share_pages.id', ondelete='CASCADE'),
                           unique=True, nullable=False)
    total_views = Column(Integer, nullable=False, default=0, server_default='0')
    total_unique_visitors = Column(Integer, nullable=False, default=0, server_default='0')
    total_comments = Column(Integer, nullable=False, default=0, server_default='0')
    visit_duration_total = Column(Float, nullable=False, default=0.0, server_default='0')
    visit_duration_count = Column(Integer, nullable=False, default=0, server_default='0')
    created_at = Column(DateTime, nullable=False, default=func.now(), server_default=func.now())
    last_updated = Column(DateTime, nullable=False, default=func.now(), server_default=func.now())

    share_page = relationship("SharePage", back_populates="stats")

    @property
    def average_visit_duration(self) -> float:
        if not self.visit_duration_count:
            return 0.0
        return self.visit_duration_total / self.visit_duration_count


class PageStatCounter(Base):
    """
    Keyed counter bucket for a page.

    ``kind`` selects the mapping (daily views, hourly views, location views,
    unique visitors per day, downloads per file) and ``bucket`` is the key
    inside it.
    """
    __tablename__ = 'page_stat_counters'
    __table_args__ = (
        UniqueConstraint('share_page_id', 'kind', 'bucket', name='uq_page_stat_counters_bucket'),
    )

    id = Column(Integer, primary_key=True)
    share_page_id = Column(Integer, ForeignKey('share_pages.id', ondelete='CASCADE'), nullable=False)
    kind = Column(String(16), nullable=False)
    bucket = Column(String(255), nullable=False)
    count = Column(Integer, nullable=False, default=0, server_default='0')
    last_seen_at = Column(DateTime, nullable=True)


class PageDailyVisitor(Base):
    __tablename__ = 'page_daily_visitors'
    __table_args__ = (
        UniqueConstraint('share_page_id', 'day', 'visitor_hash', name='uq_page_daily_visitors_visitor'),
    )

    id = Column(Integer, primary_key=True)
    share_page_id = Column(Integer, ForeignKey('share_pages.id', ondelete='CASCADE'), nullable=False)
    day = Column(String(10), nullable=False)  # YYYY-MM-DD
    visitor_hash = Column(String(64), nullable=False)  # sha256 of the client ip
    first_seen_at = Column(DateTime, nullable=False, default=func.now(), server_default=func.now())


class VisitDuration(Base):
    __tablename__ = 'visit_durations'
    __table_args__ = (
        Index('idx_visit_durations_page_day', 'share_page_id', 'day'),
    )

    id = Column(Integer, primary_key=True)
    share_page_id = Column(Integer, ForeignKey('share_pages.id', ondelete='CASCADE'), nullable=False)
    day = Column(String(10), nullable=False)
    duration_seconds = Column(Float, nullable=False)
    recorded_at = Column(DateTime, nullable=False)
    location_key = Column(String(255), nullable=True)
    country = Column(String(100), nullable=True)
    region = Column(String(100), nullable=True)
    city = Column(String(100), nullable=True)


class PageVisitor(Base):
    """Distinct visitors ever seen by a page, keyed by hashed client ip."""
    __tablename__ = 'page_visitors'
    __table_args__ = (
        UniqueConstraint('share_page_id', 'visitor_hash', name='uq_page_visitors_visitor'),
    )

    id = Column(Integer, primary_key=True)
    share_page_id = Column(Integer, ForeignKey('share_pages.id', ondelete='CASCADE'), nullable=False)
    visitor_hash = Column(String(64), nullable=False)
    first_seen_at = Column(DateTime, nullable=False, default=func.now(), server_default=func.now())
