"""
Share page lifecycle used by the owner-facing tooling.

Page CRUD routes live elsewhere; this module only guarantees that a page and
its stats row are created together and removed together.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from models.page_stats import PageStats
from models.share_page import SharePage
from schemas.share_page import SharedFile
from services.errors import ValidationError
from utils.clock import to_naive_utc
from utils.logger_factory import new_logger
from utils.passwords import hash_page_password
from utils.short_id import generate_unique_slug


def create_share_page(db: Session, owner_id: int, title: str, files: List[Dict[str, Any]],
                      password: Optional[str] = None, expires_at: Optional[datetime] = None,
                      description: Optional[str] = None) -> SharePage:
    log = new_logger("create_share_page")

    if not title or not title.strip():
        raise ValidationError("Title must not be empty")
    validated_files = [SharedFile.model_validate(f).model_dump(by_alias=True) for f in files]

    page = SharePage(
        owner_id=owner_id,
        title=title.strip(),
        description=description,
        slug=generate_unique_slug(db, SharePage),
        # Empty passwords mean a public page
        password=hash_page_password(password) if password else None,
        expires_at=to_naive_utc(expires_at) if expires_at else None,
        files=validated_files,
    )
    try:
        db.add(page)
        db.flush()
        db.add(PageStats(share_page_id=page.id))
        db.commit()
    except Exception:
        db.rollback()
        log.exception(f"Failed to create share page for owner {owner_id}")
        raise
    db.refresh(page)
    log.info(f"Share page {page.id} created with slug {page.slug} "
             f"(protected={page.is_password_protected}, expires_at={page.expires_at})")
    return page


def get_page_by_slug(db: Session, slug: str) -> Optional[SharePage]:
    return db.query(SharePage).filter(SharePage.slug == slug).first()


def get_page_by_id(db: Session, page_id: int) -> Optional[SharePage]:
    return db.get(SharePage, page_id)


def delete_share_page(db: Session, page: SharePage):
    """Delete a page together with its stats, counters, visit history and annotations."""
    log = new_logger("delete_share_page")
    page_id = page.id
    try:
        db.delete(page)
        db.commit()
    except Exception:
        db.rollback()
        log.exception(f"Failed to delete share page {page_id}")
        raise
    log.info(f"Share page {page_id} deleted")
