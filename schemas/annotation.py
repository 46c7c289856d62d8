from typing import Optional
from datetime import datetime
from pydantic import Field

from schemas.base import CamelModel


class AnnotationCreateRequest(CamelModel):
    content: str
    guest_name: Optional[str] = Field(default=None, max_length=100)
    position_x: int = 0
    position_y: int = 0


class AnnotationResponse(CamelModel):
    id: int
    share_page_id: int
    file_index: int
    user_id: Optional[int] = None
    guest_name: Optional[str] = None
    content: str
    position_x: int = 0
    position_y: int = 0
    created_at: datetime
