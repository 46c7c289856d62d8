"""
Access decisions for public share page requests.

A page is evaluated in a fixed order: missing pages are NotFound, pages past
``expires_at`` are Expired no matter what the session holds, pages without a
password are public, and password protected pages are granted only when the
visitor's session already carries authorization for them.
"""
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Iterator, MutableMapping, Optional

from fastapi import Request

from models.share_page import SharePage
from utils.clock import utcnow
from utils.logger_factory import new_logger
from utils.passwords import check_page_password


class AccessOutcome(str, Enum):
    GRANTED = "granted"
    PASSWORD_REQUIRED = "password_required"
    INCORRECT_PASSWORD = "incorrect_password"
    EXPIRED = "expired"
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class AccessDecision:
    outcome: AccessOutcome
    page: Optional[SharePage] = None

    @property
    def granted(self) -> bool:
        return self.outcome is AccessOutcome.GRANTED


class AuthorizedPages:
    """
    The set of page ids a visitor session has unlocked with a password.

    Wraps the session mapping handed in by the caller; a session accumulates
    authorization over its lifetime. The list lives in a signed cookie, so it
    keeps at most ``MAX_PAGES`` ids (well under the ~4 KB cookie limit) and
    the oldest unlock is dropped first.
    """

    SESSION_KEY = "authorized_pages"
    MAX_PAGES = 100

    def __init__(self, session: MutableMapping):
        self._session = session

    def _ids(self) -> list:
        return list(self._session.get(self.SESSION_KEY) or [])

    def __contains__(self, page_id: int) -> bool:
        return page_id in self._ids()

    def __iter__(self) -> Iterator[int]:
        return iter(self._ids())

    def __len__(self) -> int:
        return len(self._ids())

    def add(self, page_id: int) -> None:
        ids = self._ids()
        if page_id not in ids:
            ids.append(page_id)
            # Reassign so cookie-backed sessions notice the change
            self._session[self.SESSION_KEY] = ids[-self.MAX_PAGES:]


def get_authorized_pages(request: Request) -> AuthorizedPages:
    """FastAPI dependency exposing the visitor's session authorization."""
    return AuthorizedPages(request.session)


def is_expired(page: SharePage, now: Optional[datetime] = None) -> bool:
    if page.expires_at is None:
        return False
    return page.expires_at <= (now or utcnow())


def check_access(page: Optional[SharePage], authorized_pages: AuthorizedPages,
                 now: Optional[datetime] = None) -> AccessDecision:
    if page is None:
        return AccessDecision(AccessOutcome.NOT_FOUND)
    if is_expired(page, now):
        return AccessDecision(AccessOutcome.EXPIRED, page)
    if not page.is_password_protected:
        return AccessDecision(AccessOutcome.GRANTED, page)
    if page.id in authorized_pages:
        return AccessDecision(AccessOutcome.GRANTED, page)
    return AccessDecision(AccessOutcome.PASSWORD_REQUIRED, page)


def verify_password(page: Optional[SharePage], password: Optional[str], authorized_pages: AuthorizedPages,
                    now: Optional[datetime] = None) -> AccessDecision:
    """
    Check ``password`` against a locked page and, on success, authorize the session for it.

    Expiration is evaluated first, so a correct password never unlocks an expired page.
    """
    log = new_logger("verify_password")

    if page is None:
        return AccessDecision(AccessOutcome.NOT_FOUND)
    if is_expired(page, now):
        return AccessDecision(AccessOutcome.EXPIRED, page)
    if not page.is_password_protected:
        return AccessDecision(AccessOutcome.GRANTED, page)

    if not check_page_password(password, page.password):
        log.warning(f"Incorrect password supplied for page {page.id}")
        return AccessDecision(AccessOutcome.INCORRECT_PASSWORD, page)

    authorized_pages.add(page.id)
    log.info(f"Session authorized for page {page.id} ({len(authorized_pages)} pages unlocked)")
    return AccessDecision(AccessOutcome.GRANTED, page)
