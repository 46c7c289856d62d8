from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from database import get_db
from models.share_page import SharePage
from schemas.page_stats import RecordVisitDurationRequest, RecordVisitDurationResponse
from schemas.share_page import (
    FileDownloadResponse, LockedPageResponse, SharePageResponse, VerifyPasswordRequest,
)
from services.access_gate import (
    AccessDecision, AccessOutcome, AuthorizedPages, check_access, get_authorized_pages, verify_password,
)
from services.errors import ShareError
from services.share_pages import get_page_by_slug
from services.stats_store import StatsStore, get_stats_store
from services.visit_recorder import VisitRecorder, get_visit_recorder
from utils.client_ip import get_client_ip
from utils.logger_factory import new_logger

router = APIRouter()


def granted_page_response(page: SharePage, stats_store: StatsStore) -> SharePageResponse:
    return SharePageResponse(
        id=page.id,
        title=page.title,
        description=page.description,
        slug=page.slug,
        files=page.files or [],
        is_password_protected=page.is_password_protected,
        expires_at=page.expires_at,
        stats=stats_store.get_stats(page.id),
    )


def locked_page_response(page: SharePage) -> LockedPageResponse:
    return LockedPageResponse(id=page.id, title=page.title, expires_at=page.expires_at)


def denied_response(decision: AccessDecision) -> JSONResponse:
    """Translate a non-granted access decision into its HTTP error."""
    if decision.outcome is AccessOutcome.NOT_FOUND:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Share page not found")
    if decision.outcome is AccessOutcome.EXPIRED:
        expires_at = decision.page.expires_at
        return JSONResponse(
            status_code=status.HTTP_403_FORBIDDEN,
            content={"error": "This page has expired", "expiresAt": expires_at.isoformat() if expires_at else None},
        )
    if decision.outcome is AccessOutcome.INCORRECT_PASSWORD:
        return JSONResponse(status_code=status.HTTP_401_UNAUTHORIZED, content={"error": "Incorrect password"})
    return JSONResponse(
        status_code=status.HTTP_401_UNAUTHORIZED,
        content={"error": "Password required", "isPasswordProtected": True},
    )


@router.get("/page/{slug}")
async def get_share_page(
    slug: str,
    request: Request,
    db: Session = Depends(get_db),
    authorized_pages: AuthorizedPages = Depends(get_authorized_pages),
    stats_store: StatsStore = Depends(get_stats_store),
    recorder: VisitRecorder = Depends(get_visit_recorder),
):
    """
    Public page fetch.

    Locked pages answer 200 with only their id, title and expiry so the
    client can prompt for the password; granted pages record one view.
    """
    log = new_logger("get_share_page")

    decision = check_access(get_page_by_slug(db, slug), authorized_pages)
    log.info(f"Access decision for slug {slug}: {decision.outcome.value}")

    if decision.outcome is AccessOutcome.PASSWORD_REQUIRED:
        return locked_page_response(decision.page)
    if not decision.granted:
        return denied_response(decision)

    try:
        await recorder.record_page_view(decision, request)
    except ShareError:
        raise
    except Exception:
        log.exception(f"Failed to record view for page {decision.page.id}")
        raise HTTPException(status_code=500, detail="Failed to record page view")
    return granted_page_response(decision.page, stats_store)


@router.post("/page/{slug}/verify")
async def verify_share_page_password(
    slug: str,
    payload: VerifyPasswordRequest,
    request: Request,
    db: Session = Depends(get_db),
    authorized_pages: AuthorizedPages = Depends(get_authorized_pages),
    stats_store: StatsStore = Depends(get_stats_store),
    recorder: VisitRecorder = Depends(get_visit_recorder),
):
    log = new_logger("verify_share_page_password")

    decision = verify_password(get_page_by_slug(db, slug), payload.password, authorized_pages)
    if not decision.granted:
        if decision.outcome is AccessOutcome.INCORRECT_PASSWORD:
            log.warning(f"Failed password attempt for slug {slug} from {get_client_ip(request)}")
        return denied_response(decision)

    try:
        await recorder.record_page_view(decision, request)
    except ShareError:
        raise
    except Exception:
        log.exception(f"Failed to record view for page {decision.page.id}")
        raise HTTPException(status_code=500, detail="Failed to record page view")
    return granted_page_response(decision.page, stats_store)


@router.post("/page/{slug}/visit-duration", response_model=RecordVisitDurationResponse)
async def record_visit_duration(
    slug: str,
    payload: RecordVisitDurationRequest,
    request: Request,
    db: Session = Depends(get_db),
    authorized_pages: AuthorizedPages = Depends(get_authorized_pages),
    recorder: VisitRecorder = Depends(get_visit_recorder),
):
    """Periodic "still viewing" report carrying the seconds visible since the previous report."""
    log = new_logger("record_visit_duration")

    decision = check_access(get_page_by_slug(db, slug), authorized_pages)
    if not decision.granted:
        return denied_response(decision)

    try:
        recorded = await recorder.record_duration(decision, payload.duration, request)
    except ShareError:
        raise
    except Exception:
        log.exception(f"Failed to record visit duration for page {decision.page.id}")
        raise HTTPException(status_code=500, detail="Failed to update visit duration")
    return RecordVisitDurationResponse(recorded=recorded)


@router.post("/page/{slug}/files/{file_index}/download", response_model=FileDownloadResponse)
def download_shared_file(
    slug: str,
    file_index: int,
    db: Session = Depends(get_db),
    authorized_pages: AuthorizedPages = Depends(get_authorized_pages),
    recorder: VisitRecorder = Depends(get_visit_recorder),
):
    decision = check_access(get_page_by_slug(db, slug), authorized_pages)
    if not decision.granted:
        return denied_response(decision)

    entry = recorder.record_download(decision, file_index)
    return FileDownloadResponse(name=entry["name"], url=entry["url"])
