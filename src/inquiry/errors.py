"""Exception hierarchy for the inquiry engine."""

from typing import List, Optional


class InquiryError(Exception):
    """Base exception for inquiry engine errors."""

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        self.original_error = original_error
        super().__init__(message)


class CompletenessError(InquiryError):
    """Raised when a draft is not complete enough to be submitted."""

    def __init__(
        self,
        message: str,
        products_complete: bool = False,
        missing_company_fields: Optional[List[str]] = None,
    ):
        self.products_complete = products_complete
        self.missing_company_fields = list(missing_company_fields or [])
        super().__init__(message)


class ProductNotFoundError(InquiryError):
    """Raised when a product id is not part of the current draft."""

    pass


class InvalidStepError(InquiryError):
    """Raised for an unknown wizard step."""

    pass


class InvalidUpdateError(InquiryError):
    """Raised when a partial update names fields the model does not have."""

    pass


class RecordNotFoundError(InquiryError):
    """Raised when a draft or history record cannot be found."""

    pass


class RecordFrozenError(InquiryError):
    """Raised when the payload of a non-draft record is edited."""

    pass


class InvalidTransitionError(InquiryError):
    """Raised for a lifecycle status change that is not allowed."""

    pass


class StorageError(InquiryError):
    """Raised when the storage medium cannot be read or written."""

    pass


class SubmissionError(InquiryError):
    """Structured submission failure.

    ``kind`` is one of ``incomplete``, ``rejected``, ``timeout`` or ``failed``.
    """

    def __init__(
        self,
        message: str,
        kind: str = "failed",
        original_error: Optional[Exception] = None,
        report=None,
    ):
        self.kind = kind
        self.report = report
        super().__init__(message, original_error)
