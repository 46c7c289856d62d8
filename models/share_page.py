from sqlalchemy import Column, Integer, String, DateTime, Text, JSON
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from database import Base
from utils.short_id import generate_short_id


class SharePage(Base):
    __tablename__ = 'share_pages'

    id = Column(Integer, primary_key=True)
    owner_id = Column(Integer, nullable=False, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)  # display-only
    slug = Column(String(32), unique=True, index=True, nullable=False)
    password = Column(String(255), nullable=True)  # bcrypt hash, NULL for public pages
    expires_at = Column(DateTime, nullable=True)  # naive UTC
    files = Column(JSON, nullable=False, default=list)  # list of {name, url, preview_url}
    created_at = Column(DateTime, nullable=False, default=func.now(), server_default=func.now())
    updated_at = Column(DateTime, nullable=False, default=func.now(), server_default=func.now(), onupdate=func.now())

    # Analytics rows live and die with the page
    stats = relationship("PageStats", uselist=False, back_populates="share_page",
                         cascade="all, delete-orphan", passive_deletes=True)
    counters = relationship("PageStatCounter", cascade="all, delete-orphan", passive_deletes=True)
    daily_visitors = relationship("PageDailyVisitor", cascade="all, delete-orphan", passive_deletes=True)
    visitors = relationship("PageVisitor", cascade="all, delete-orphan", passive_deletes=True)
    visit_durations = relationship("VisitDuration", cascade="all, delete-orphan", passive_deletes=True)
    annotations = relationship("Annotation", back_populates="share_page",
                               cascade="all, delete-orphan", passive_deletes=True)

    def __init__(self, **kwargs):
        for field in kwargs:
            setattr(self, field, kwargs[field])
        if not getattr(self, 'slug', None):
            self.slug = generate_short_id()
        if getattr(self, 'files', None) is None:
            self.files = []

    @property
    def is_password_protected(self) -> bool:
        return bool(self.password)

    def file_at(self, file_index: int):
        """Return the file entry at ``file_index`` or None when out of range."""
        files = self.files or []
        if 0 <= file_index < len(files):
            return files[file_index]
        return None

