"""
Inquiry lifecycle engine.

Turns manual product entries and imported BOM files into validated,
submittable quote requests, keeping drafts, history and company templates
between sessions.
"""

from .bom_parser import BOMParser
from .catalog import InquiryProductCatalog
from .collaborator import FakeSubmissionClient, SubmissionAck, SubmissionClient
from .history import InquiryHistory
from .models import (
    BOMParseResult,
    CompanyInfo,
    InquiryProduct,
    InquiryRecord,
    InquiryStatus,
    InquiryStep,
    ProjectInfo,
    RowIssue,
    Urgency,
)
from .state_machine import CompletenessReport, InquiryStateMachine
from .submission import InquiryNumberGenerator, SubmissionCoordinator, SubmissionResult

__version__ = "0.1.0"
__all__ = [
    "BOMParser",
    "InquiryProductCatalog",
    "InquiryStateMachine",
    "CompletenessReport",
    "SubmissionCoordinator",
    "SubmissionResult",
    "InquiryNumberGenerator",
    "SubmissionClient",
    "SubmissionAck",
    "FakeSubmissionClient",
    "InquiryHistory",
    "BOMParseResult",
    "RowIssue",
    "InquiryProduct",
    "CompanyInfo",
    "ProjectInfo",
    "InquiryRecord",
    "InquiryStatus",
    "InquiryStep",
    "Urgency",
]
