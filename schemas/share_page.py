from typing import Any, Dict, List, Optional
from datetime import datetime

from schemas.base import CamelModel
from schemas.page_stats import PageStatsSnapshot


class SharedFile(CamelModel):
    name: str
    url: str
    preview_url: Optional[str] = None
    is_full_width: bool = False


class LockedPageResponse(CamelModel):
    """The only fields a visitor sees before unlocking a password protected page."""
    id: int
    title: str
    is_password_protected: bool = True
    expires_at: Optional[datetime] = None


class SharePageResponse(CamelModel):
    id: int
    title: str
    description: Optional[str] = None
    slug: str
    files: List[Dict[str, Any]] = []
    is_password_protected: bool = False
    expires_at: Optional[datetime] = None
    stats: PageStatsSnapshot


class VerifyPasswordRequest(CamelModel):
    password: str


class FileDownloadResponse(CamelModel):
    name: str
    url: str
