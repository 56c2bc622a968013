"""Lifecycle of submitted inquiries: quotes, decisions, expiry and search."""

import logging
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Union

from .errors import InvalidTransitionError, RecordNotFoundError
from .models import InquiryRecord, InquiryStatus, SupplierQuote

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: Dict[InquiryStatus, tuple] = {
    InquiryStatus.SUBMITTED: (
        InquiryStatus.QUOTED,
        InquiryStatus.REJECTED,
        InquiryStatus.EXPIRED,
    ),
    InquiryStatus.QUOTED: (
        InquiryStatus.ACCEPTED,
        InquiryStatus.REJECTED,
        InquiryStatus.EXPIRED,
    ),
}


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class InquiryHistory:
    """Status changes and lookups over the repository's history collection.

    Only status, quotes and quoted_at ever change on a historical record.
    """

    def __init__(self, repository, clock: Optional[Callable[[], datetime]] = None):
        self.repository = repository
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def search(
        self, term: str = "", status: Optional[Union[InquiryStatus, str]] = None
    ) -> List[InquiryRecord]:
        """Records matching a free-text term and, optionally, a status.

        The term matches inquiry number, record id and product names/models,
        case-insensitively.
        """
        needle = (term or "").strip().lower()
        wanted = InquiryStatus(status) if status else None

        matches = []
        for record in self.repository.list_history():
            if wanted and record.status != wanted:
                continue
            if needle and not self._matches(record, needle):
                continue
            matches.append(record)
        return matches

    @staticmethod
    def _matches(record: InquiryRecord, needle: str) -> bool:
        haystack = [record.inquiry_number, record.id]
        for product in record.products:
            haystack.extend([product.name, product.model])
        return any(needle in value.lower() for value in haystack if value)

    def _transition(
        self,
        record_id: str,
        status: InquiryStatus,
        quotes: Optional[List[SupplierQuote]] = None,
        quoted_at: Optional[datetime] = None,
    ) -> InquiryRecord:
        record = self.repository.get_history(record_id)
        if record is None:
            raise RecordNotFoundError(f"History record {record_id} not found")

        allowed = ALLOWED_TRANSITIONS.get(record.status, ())
        if status not in allowed:
            raise InvalidTransitionError(
                f"Cannot move {record.inquiry_number} from {record.status.value} to {status.value}"
            )

        updated = record.with_lifecycle_update(status, quotes=quotes, quoted_at=quoted_at)
        self.repository.replace_history(updated)
        logger.info(
            f"Inquiry {record.inquiry_number}: {record.status.value} -> {status.value}"
        )
        return updated

    def mark_quoted(self, record_id: str, quotes: List[SupplierQuote]) -> InquiryRecord:
        return self._transition(
            record_id, InquiryStatus.QUOTED, quotes=quotes, quoted_at=self.clock()
        )

    def accept(self, record_id: str) -> InquiryRecord:
        return self._transition(record_id, InquiryStatus.ACCEPTED)

    def reject(self, record_id: str) -> InquiryRecord:
        return self._transition(record_id, InquiryStatus.REJECTED)

    def expire_overdue(self, now: Optional[datetime] = None) -> List[InquiryRecord]:
        """Expire submitted or quoted records whose expires_at has passed.

        Naive datetimes, passed in or stored, are taken as UTC.
        """
        now = _as_utc(now or self.clock())
        expired = []
        for record in self.repository.list_history():
            if record.status not in (InquiryStatus.SUBMITTED, InquiryStatus.QUOTED):
                continue
            if record.expires_at is None or _as_utc(record.expires_at) > now:
                continue
            expired.append(self._transition(record.id, InquiryStatus.EXPIRED))
        if expired:
            logger.info(f"Expired {len(expired)} overdue inquiries")
        return expired
