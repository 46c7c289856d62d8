from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.orm import Session

from database import get_db
from schemas.annotation import AnnotationCreateRequest, AnnotationResponse
from api.share_pages import denied_response
from services.access_gate import AuthorizedPages, check_access, get_authorized_pages
from services.comment_ledger import CommentLedger, get_comment_ledger, resolve_author
from services.errors import ShareError
from services.share_pages import get_page_by_id
from utils.jwt_auth import get_current_user, get_optional_user
from utils.logger_factory import new_logger

router = APIRouter()


@router.post("/pages/{page_id}/files/{file_index}/annotations",
             response_model=AnnotationResponse, status_code=status.HTTP_201_CREATED)
def create_annotation(
    page_id: int,
    file_index: int,
    payload: AnnotationCreateRequest,
    db: Session = Depends(get_db),
    authorized_pages: AuthorizedPages = Depends(get_authorized_pages),
    ledger: CommentLedger = Depends(get_comment_ledger),
    current_user: Optional[dict] = Depends(get_optional_user),
):
    log = new_logger("create_annotation")
    user_id = current_user.get("user_id") if current_user else None
    log.info(f"create_annotation: page={page_id} file={file_index} actor={user_id or 'guest'}")

    decision = check_access(get_page_by_id(db, page_id), authorized_pages)
    if not decision.granted:
        return denied_response(decision)
    page = decision.page

    author = resolve_author(user_id, payload.guest_name)
    try:
        annotation = ledger.create(page, file_index, author, payload.content,
                                   position_x=payload.position_x, position_y=payload.position_y)
    except ShareError:
        raise
    except Exception:
        log.exception("Failed to create annotation")
        raise HTTPException(status_code=500, detail="Failed to create comment")
    return AnnotationResponse.model_validate(annotation)


@router.get("/pages/{page_id}/files/{file_index}/annotations", response_model=List[AnnotationResponse])
def list_annotations(
    page_id: int,
    file_index: int,
    db: Session = Depends(get_db),
    authorized_pages: AuthorizedPages = Depends(get_authorized_pages),
    ledger: CommentLedger = Depends(get_comment_ledger),
):
    decision = check_access(get_page_by_id(db, page_id), authorized_pages)
    if not decision.granted:
        return denied_response(decision)
    page = decision.page
    return [AnnotationResponse.model_validate(a) for a in ledger.list(page, file_index)]


@router.delete("/annotations/{annotation_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_annotation(
    annotation_id: int,
    ledger: CommentLedger = Depends(get_comment_ledger),
    current_user: dict = Depends(get_current_user),
):
    """Only the comment's author or the page owner may delete it; guests have no identity to check."""
    log = new_logger("delete_annotation")
    log.info(f"delete_annotation: annotation={annotation_id} actor={current_user.get('user_id')}")

    try:
        ledger.delete(annotation_id, requesting_user_id=current_user["user_id"])
    except ShareError:
        raise
    except Exception:
        log.exception("Failed to delete annotation")
        raise HTTPException(status_code=500, detail="Failed to delete comment")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
