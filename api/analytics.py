from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from database import get_db
from models.share_page import SharePage
from schemas.page_stats import AnalyticsSummary, PageStatsSnapshot
from services.share_pages import get_page_by_id
from services.stats_store import StatsStore, get_stats_store, summarize_stats
from utils.jwt_auth import get_current_user
from utils.logger_factory import new_logger

router = APIRouter()


def get_owned_page(page_id: int, db: Session, current_user: dict) -> SharePage:
    log = new_logger("get_owned_page")
    page = get_page_by_id(db, page_id)
    if not page:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Share page not found")
    if page.owner_id != current_user.get("user_id"):
        log.warning(f"Analytics access denied: user={current_user.get('user_id')} page={page_id}")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")
    return page


@router.get("/pages/{page_id}/analytics", response_model=PageStatsSnapshot)
def get_page_analytics(
    page_id: int,
    db: Session = Depends(get_db),
    stats_store: StatsStore = Depends(get_stats_store),
    current_user: dict = Depends(get_current_user),
):
    page = get_owned_page(page_id, db, current_user)
    return stats_store.get_stats(page.id)


@router.get("/pages/{page_id}/analytics/summary", response_model=AnalyticsSummary)
def get_page_analytics_summary(
    page_id: int,
    db: Session = Depends(get_db),
    stats_store: StatsStore = Depends(get_stats_store),
    current_user: dict = Depends(get_current_user),
):
    """Today's views, current hour, top locations and the latest visit intervals."""
    page = get_owned_page(page_id, db, current_user)
    return summarize_stats(stats_store.get_stats(page.id))
