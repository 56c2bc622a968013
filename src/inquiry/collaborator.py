#!/usr/bin/env python3
"""
Submission collaborator interface.

The engine hands a finalized InquiryRecord to a SubmissionClient and only
looks at whether it was acknowledged. Transport (HTTP, queue, email) lives
in concrete clients outside this package; FakeSubmissionClient acknowledges
everything and is used offline and in tests.
"""

import json
import os
import time
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from functools import wraps
from typing import Any, Dict, List, Optional

from .models import InquiryRecord


def log_call(func):
    """
    Decorator to log submission calls with timing and outcome.

    Logs to logs/submission_calls.log in JSON format:
    {"ts": timestamp, "client": name, "latency_ms": X, "inquiry_number": Y, "status": Z, ...}
    """

    def _write(entry: Dict[str, Any]) -> None:
        log_dir = os.getenv("SUBMISSION_LOG_DIR", "logs")
        try:
            os.makedirs(log_dir, exist_ok=True)
        except OSError:
            log_dir = "/tmp/logs"
            os.makedirs(log_dir, exist_ok=True)

        with open(os.path.join(log_dir, "submission_calls.log"), "a") as f:
            f.write(json.dumps(entry) + "\n")

    @wraps(func)
    def wrapper(self, record, *args, **kwargs):
        start_time = time.time()
        client_name = self.get_client_info().get("name", "unknown")

        try:
            ack = func(self, record, *args, **kwargs)
        except Exception as e:
            # Log failed calls too
            _write(
                {
                    "ts": datetime.now().isoformat(),
                    "client": client_name,
                    "latency_ms": int((time.time() - start_time) * 1000),
                    "inquiry_number": record.inquiry_number,
                    "error": str(e),
                    "status": "failed",
                }
            )
            raise

        _write(
            {
                "ts": datetime.now().isoformat(),
                "client": client_name,
                "latency_ms": int((time.time() - start_time) * 1000),
                "inquiry_number": record.inquiry_number,
                "status": "accepted" if ack.accepted else "rejected",
                "reference": ack.reference,
            }
        )
        return ack

    return wrapper


@dataclass
class SubmissionAck:
    """Opaque acknowledgement from the collaborator."""

    accepted: bool
    reference: Optional[str] = None
    message: Optional[str] = None


class SubmissionClient(ABC):
    """Abstract base class for submission collaborators."""

    @abstractmethod
    def submit(self, record: InquiryRecord) -> SubmissionAck:
        """
        Deliver a finalized inquiry.

        Args:
            record: Fully populated inquiry record

        Returns:
            SubmissionAck; accepted=False means the backend declined it

        Raises:
            SubmissionClientError: If delivery fails
            SubmissionTimeoutError: If delivery times out
        """
        pass

    @abstractmethod
    def get_client_info(self) -> Dict[str, Any]:
        """
        Get information about the client.

        Returns:
            Dictionary with client metadata (name, transport, ...)
        """
        pass


class SubmissionClientError(Exception):
    """Base exception for submission collaborator errors."""

    def __init__(
        self,
        message: str,
        client_name: str = "unknown",
        original_error: Optional[Exception] = None,
    ):
        self.client_name = client_name
        self.original_error = original_error
        super().__init__(message)


class SubmissionRejectedError(SubmissionClientError):
    """Raised when the receiving side refuses the inquiry."""

    pass


class SubmissionTimeoutError(SubmissionClientError):
    """Raised when delivery does not complete in time."""

    def __init__(
        self,
        message: str,
        client_name: str = "unknown",
        timeout_seconds: int = 0,
        original_error: Optional[Exception] = None,
    ):
        self.timeout_seconds = timeout_seconds
        super().__init__(message, client_name, original_error)


class FakeSubmissionClient(SubmissionClient):
    """Acknowledges every inquiry and remembers what it received."""

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        self.config = config or {}
        self.received: List[InquiryRecord] = []

    @log_call
    def submit(self, record: InquiryRecord) -> SubmissionAck:
        self.received.append(record)
        return SubmissionAck(accepted=True, reference=f"fake-{uuid.uuid4().hex[:8]}")

    def get_client_info(self) -> Dict[str, Any]:
        return {
            "name": "fake",
            "display_name": "Fake Submission Client (Testing)",
            "submitted": len(self.received),
        }


def create_submission_client(config, client_override: Optional[str] = None) -> SubmissionClient:
    """
    Create a submission client based on configuration and environment.

    Args:
        config: InquiryConfig
        client_override: Optional client name to override environment/config

    Returns:
        Initialized client instance

    Raises:
        SubmissionClientError: If the client name is unknown
    """
    # Determine client to use (priority: override > env var > config)
    client_name = (
        client_override or os.getenv("INQUIRY_SUBMISSION_CLIENT") or config.submission_client
    ).lower()

    # Handle offline mode
    if os.getenv("NO_NETWORK") == "1":
        client_name = "fake"

    if client_name == "fake":
        return FakeSubmissionClient()
    raise SubmissionClientError(
        f"Unknown submission client: {client_name}. Supported clients: fake",
        client_name=client_name,
    )
