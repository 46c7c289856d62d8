"""
Annotations left on a share page's files, kept in step with the page's
``total_comments`` counter. The annotation row and the counter change are
committed in the same transaction.
"""
from typing import List, Optional

from fastapi import Depends
from sqlalchemy.orm import Session

from database import get_db
from models.annotation import Annotation, Author, GuestAuthor, UserAuthor
from models.share_page import SharePage
from services.errors import NotFoundError, PermissionDeniedError, ValidationError
from services.stats_store import StatsStore, get_stats_store, storage_retry
from utils.logger_factory import new_logger

MAX_CONTENT_LENGTH = 5000
MAX_GUEST_NAME_LENGTH = 100


def resolve_author(user_id: Optional[int], guest_name: Optional[str]) -> Author:
    """Authenticated callers are always identified by user id; anyone else must give a name."""
    if user_id is not None:
        return UserAuthor(user_id)
    name = (guest_name or "").strip()
    if not name:
        raise ValidationError("guestName is required for anonymous comments")
    if len(name) > MAX_GUEST_NAME_LENGTH:
        raise ValidationError(f"guestName must be at most {MAX_GUEST_NAME_LENGTH} characters")
    return GuestAuthor(name)


class CommentLedger:
    def __init__(self, db: Session, stats_store: StatsStore):
        self.db = db
        self.stats_store = stats_store

    def create(self, page: SharePage, file_index: int, author: Author, content: str,
               position_x: int = 0, position_y: int = 0) -> Annotation:
        log = new_logger("create_annotation")

        content = (content or "").strip()
        if not content:
            raise ValidationError("Comment content must not be empty")
        if len(content) > MAX_CONTENT_LENGTH:
            raise ValidationError(f"Comment content must be at most {MAX_CONTENT_LENGTH} characters")
        if page.file_at(file_index) is None:
            raise ValidationError(f"Invalid file index: {file_index}")

        @storage_retry
        def persist() -> Annotation:
            try:
                annotation = Annotation(
                    share_page_id=page.id,
                    file_index=file_index,
                    author=author,
                    content=content,
                    position_x=position_x,
                    position_y=position_y,
                )
                self.db.add(annotation)
                self.db.flush()
                self.stats_store.record_comment_delta(page.id, 1, commit=False)
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise
            self.db.refresh(annotation)
            return annotation

        annotation = persist()
        log.info(f"Annotation {annotation.id} created on page {page.id} file {file_index} by {author}")
        return annotation

    def delete(self, annotation_id: int, requesting_user_id: Optional[int] = None):
        """
        Delete an annotation and decrement the page's comment counter.

        With ``requesting_user_id`` the caller must be the annotation's author or
        the page owner. Guest annotations have no author id to match, so only the
        page owner can remove them.
        """
        log = new_logger("delete_annotation")

        annotation = self.db.get(Annotation, annotation_id)
        if annotation is None:
            raise NotFoundError(f"Annotation {annotation_id} not found")

        if requesting_user_id is not None:
            is_author = annotation.user_id is not None and annotation.user_id == requesting_user_id
            is_owner = annotation.share_page is not None and annotation.share_page.owner_id == requesting_user_id
            if not (is_author or is_owner):
                log.warning(f"User {requesting_user_id} may not delete annotation {annotation_id}")
                raise PermissionDeniedError("Only the author or the page owner can delete this comment")

        page_id = annotation.share_page_id

        @storage_retry
        def remove() -> bool:
            try:
                deleted = (
                    self.db.query(Annotation)
                    .filter(Annotation.id == annotation_id)
                    .delete(synchronize_session=False)
                )
                # A concurrent delete may have won; only the winner decrements
                if deleted:
                    self.stats_store.record_comment_delta(page_id, -1, commit=False)
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise
            return bool(deleted)

        if not remove():
            raise NotFoundError(f"Annotation {annotation_id} not found")
        log.info(f"Annotation {annotation_id} deleted from page {page_id}")

    def list(self, page: SharePage, file_index: int) -> List[Annotation]:
        if page.file_at(file_index) is None:
            raise ValidationError(f"Invalid file index: {file_index}")
        return (
            self.db.query(Annotation)
            .filter(Annotation.share_page_id == page.id, Annotation.file_index == file_index)
            .order_by(Annotation.created_at, Annotation.id)
            .all()
        )


def get_comment_ledger(db: Session = Depends(get_db),
                       stats_store: StatsStore = Depends(get_stats_store)) -> CommentLedger:
    return CommentLedger(db, stats_store)
