"""Finalizing drafts into submitted inquiry records."""

import itertools
import logging
import threading
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from .collaborator import SubmissionClient, SubmissionRejectedError, SubmissionTimeoutError
from .errors import StorageError, SubmissionError
from .models import InquiryRecord, InquiryStatus
from .state_machine import InquiryStateMachine

logger = logging.getLogger(__name__)


class InquiryNumberGenerator:
    """Produces ``<prefix>-<8 digits of epoch millis>-<counter>`` numbers.

    The counter makes numbers unique within a process even when two
    submissions share a millisecond.
    """

    def __init__(self, prefix: str = "INQ", clock: Optional[Callable[[], float]] = None):
        self.prefix = prefix
        self.clock = clock or time.time
        self._counter = itertools.count(1)
        self._lock = threading.Lock()

    def next(self) -> str:
        with self._lock:
            seq = next(self._counter)
        millis = str(int(self.clock() * 1000))[-8:]
        return f"{self.prefix}-{millis}-{seq:04d}"


@dataclass
class SubmissionResult:
    """Either a submitted record or a structured error."""

    ok: bool
    record: Optional[InquiryRecord] = None
    error: Optional[SubmissionError] = None

    @classmethod
    def success(cls, record: InquiryRecord) -> "SubmissionResult":
        return cls(ok=True, record=record)

    @classmethod
    def failure(cls, error: SubmissionError) -> "SubmissionResult":
        return cls(ok=False, error=error)


class SubmissionCoordinator:
    """Validates, stamps and hands off a draft, then moves it into history."""

    def __init__(
        self,
        repository,
        client: SubmissionClient,
        number_generator: Optional[InquiryNumberGenerator] = None,
        expiry_days: int = 30,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """Initialize the coordinator.

        Args:
            repository: DraftRepository receiving the submitted record
            client: Submission collaborator
            number_generator: Inquiry number source
            expiry_days: Days until a submitted inquiry expires
            clock: Returns the current UTC time (for testing)
        """
        self.repository = repository
        self.client = client
        self.number_generator = number_generator or InquiryNumberGenerator()
        self.expiry_days = expiry_days
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def build_record(self, machine: InquiryStateMachine) -> InquiryRecord:
        """Stamp the draft as a submitted record without persisting it."""
        now = self.clock()
        record = machine.to_record(
            record_id=f"inquiry_{uuid.uuid4().hex}",
            inquiry_number=self.number_generator.next(),
            status=InquiryStatus.SUBMITTED,
        )
        record.submitted_at = now
        record.expires_at = now + timedelta(days=self.expiry_days)
        return record

    def submit(self, machine: InquiryStateMachine) -> SubmissionResult:
        """Submit the machine's draft.

        On any failure the draft, drafts collection and history are left
        untouched and a SubmissionError describes what went wrong.

        Returns:
            SubmissionResult
        """
        with machine.lock:
            return self._submit_locked(machine)

    def _submit_locked(self, machine: InquiryStateMachine) -> SubmissionResult:
        report = machine.check_completeness()
        if not report.complete:
            logger.warning(f"Submission blocked: {report.describe()}")
            return SubmissionResult.failure(
                SubmissionError(
                    f"Inquiry is incomplete: {report.describe()}",
                    kind="incomplete",
                    report=report,
                )
            )

        record = self.build_record(machine)

        try:
            ack = self.client.submit(record)
        except SubmissionTimeoutError as e:
            logger.warning(f"Submission of {record.inquiry_number} timed out: {str(e)}")
            return SubmissionResult.failure(
                SubmissionError("Submission timed out", kind="timeout", original_error=e)
            )
        except SubmissionRejectedError as e:
            logger.warning(f"Submission of {record.inquiry_number} rejected: {str(e)}")
            return SubmissionResult.failure(
                SubmissionError(f"Submission rejected: {str(e)}", kind="rejected", original_error=e)
            )
        except Exception as e:
            logger.error(f"Submission of {record.inquiry_number} failed: {str(e)}")
            return SubmissionResult.failure(
                SubmissionError(f"Submission failed: {str(e)}", kind="failed", original_error=e)
            )

        if not ack.accepted:
            logger.warning(f"Submission of {record.inquiry_number} not acknowledged: {ack.message}")
            return SubmissionResult.failure(
                SubmissionError(
                    f"Submission rejected: {ack.message or 'no acknowledgement'}",
                    kind="rejected",
                )
            )

        try:
            self.repository.move_to_history(record, machine.draft_id)
        except StorageError:
            logger.error(f"Could not record {record.inquiry_number} in history")
            raise

        machine.clear_draft()
        logger.info(
            f"Submitted inquiry {record.inquiry_number} with {record.total_items} products"
        )
        return SubmissionResult.success(record)
