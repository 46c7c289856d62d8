"""
Server-side entry points that turn granted page requests into analytics events.

Every method takes the AccessDecision produced for the request and refuses to
record anything for a page the visitor was not granted.
"""
import math
from typing import Any, Dict

from fastapi import Depends, Request

from services.access_gate import AccessDecision
from services.errors import PermissionDeniedError, ValidationError
from services.stats_store import StatsStore, get_stats_store, MIN_VISIT_DURATION_SECONDS
from utils.client_ip import get_client_ip
from utils.logger_factory import new_logger


class VisitRecorder:
    def __init__(self, stats_store: StatsStore):
        self.stats_store = stats_store

    @staticmethod
    def _require_granted(decision: AccessDecision, action: str):
        if not decision.granted:
            new_logger("visit_recorder").warning(
                f"Refusing to record {action}: access outcome is {decision.outcome.value}"
            )
            raise PermissionDeniedError(f"Cannot record {action} for a page that was not granted")

    async def record_page_view(self, decision: AccessDecision, request: Request):
        self._require_granted(decision, "view")
        client_ip = get_client_ip(request)
        await self.stats_store.record_view(decision.page.id, client_ip)

    async def record_duration(self, decision: AccessDecision, duration: float, request: Request) -> bool:
        """
        Record the visible time elapsed since the visitor's previous report.

        Reports are deltas; the store appends each one. Returns False for
        intervals under the one second floor.
        """
        log = new_logger("record_duration")
        self._require_granted(decision, "visit duration")

        if not math.isfinite(duration):
            raise ValidationError("Duration must be a finite number of seconds")
        if duration < MIN_VISIT_DURATION_SECONDS:
            log.info(f"Dropping {duration}s report for page {decision.page.id}")
            return False

        location = await self.stats_store.locate(get_client_ip(request))
        return self.stats_store.record_visit_duration(decision.page.id, duration, location)

    def record_download(self, decision: AccessDecision, file_index: int) -> Dict[str, Any]:
        """Count a download of the file at ``file_index`` and return its entry."""
        self._require_granted(decision, "download")
        entry = decision.page.file_at(file_index)
        if entry is None or not entry.get("name"):
            raise ValidationError(f"Invalid file index: {file_index}")
        self.stats_store.record_download(decision.page.id, entry["name"])
        return entry


def get_visit_recorder(stats_store: StatsStore = Depends(get_stats_store)) -> VisitRecorder:
    return VisitRecorder(stats_store)
