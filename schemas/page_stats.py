from pydantic import Field
from typing import Dict, List, Optional
from datetime import datetime

from schemas.base import CamelModel


class VisitLocationData(CamelModel):
    key: str
    country: Optional[str] = None
    region: Optional[str] = None
    city: Optional[str] = None


class LocationViews(CamelModel):
    views: int
    last_view: Optional[datetime] = None


class VisitDurationEntry(CamelModel):
    duration: float
    timestamp: datetime
    location: Optional[VisitLocationData] = None


class RecordVisitDurationRequest(CamelModel):
    duration: float = Field(..., allow_inf_nan=False, description="Seconds visible since the last report")


class RecordVisitDurationResponse(CamelModel):
    success: bool = True
    recorded: bool


class PageStatsSnapshot(CamelModel):
    share_page_id: int
    total_views: int = 0
    daily_views: Dict[str, int] = {}
    hourly_views: Dict[str, int] = {}
    location_views: Dict[str, LocationViews] = {}
    unique_visitors: Dict[str, int] = {}
    total_unique_visitors: int = 0
    total_comments: int = 0
    file_downloads: Dict[str, int] = {}
    daily_visit_durations: Dict[str, List[VisitDurationEntry]] = {}
    average_visit_duration: float = 0.0
    last_updated: Optional[datetime] = None


class TopLocation(CamelModel):
    location: str
    views: int
    last_view: Optional[datetime] = None


class AnalyticsSummary(CamelModel):
    share_page_id: int
    day: str
    hour: int
    total_views: int
    today_views: int
    current_hour_views: int
    today_unique_visitors: int
    total_unique_visitors: int
    total_comments: int
    top_locations: List[TopLocation] = []
    today_average_duration: float = 0.0
    average_visit_duration: float = 0.0
    recent_visits: List[VisitDurationEntry] = []
