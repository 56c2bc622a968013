"""
Pydantic models for inquiry data validation.

Draft and record payloads are validated here; parse results and row issues
are plain dataclasses.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from .errors import RecordFrozenError


class Urgency(str, Enum):
    STANDARD = "standard"
    URGENT = "urgent"
    VERY_URGENT = "very_urgent"


class InquiryStatus(str, Enum):
    DRAFT = "draft"
    SUBMITTED = "submitted"
    QUOTED = "quoted"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    EXPIRED = "expired"


class InquiryStep(str, Enum):
    PRODUCTS = "products"
    COMPANY = "company"
    PROJECT = "project"
    REVIEW = "review"
    SUBMIT = "submit"


COMPANY_SIZES = ("startup", "small", "medium", "large", "enterprise")
REQUIRED_COMPANY_FIELDS = ("company_name", "contact_person", "email", "phone")


def coerce_urgency(value: Any) -> Urgency:
    """Map any urgency value onto the enum, defaulting to standard."""
    if isinstance(value, Urgency):
        return value
    try:
        return Urgency(str(value).strip().lower())
    except ValueError:
        return Urgency.STANDARD


class InquiryProduct(BaseModel):
    """One requested line item."""

    id: str = Field(..., description="Stable line item id")
    product_id: Optional[str] = Field(None, description="Catalog product reference")
    name: str = Field("", description="Display name")
    model: str = Field("", description="Model or part number")
    brand: str = ""
    manufacturer: str = ""
    category: str = ""
    quantity: int = Field(1, ge=1, description="Requested quantity")
    target_price: Optional[float] = Field(None, description="Target unit price")
    description: Optional[str] = None
    urgency: Urgency = Urgency.STANDARD
    specifications: Dict[str, str] = Field(default_factory=dict)
    image: Optional[str] = None
    datasheet: Optional[str] = None

    @field_validator("urgency", mode="before")
    @classmethod
    def _default_urgency(cls, value):
        return coerce_urgency(value)


class CompanyInfo(BaseModel):
    """The requester's organization and contact."""

    company_name: str = ""
    contact_person: str = ""
    email: str = ""
    phone: str = ""
    position: Optional[str] = None
    website: Optional[str] = None
    address: Optional[str] = None
    industry: Optional[str] = None
    company_size: Optional[str] = None
    annual_volume: Optional[str] = None

    @field_validator("company_size")
    @classmethod
    def _known_size(cls, value):
        if value is not None and value not in COMPANY_SIZES:
            raise ValueError(f"company_size must be one of {', '.join(COMPANY_SIZES)}")
        return value

    def missing_fields(self) -> List[str]:
        return [name for name in REQUIRED_COMPANY_FIELDS if not str(getattr(self, name) or "").strip()]

    def is_complete(self) -> bool:
        return not self.missing_fields()


class ProjectInfo(BaseModel):
    """Optional project context attached to a draft."""

    project_name: Optional[str] = None
    project_description: Optional[str] = None
    expected_volume: Optional[int] = None
    target_price: Optional[float] = None
    timeline: Optional[str] = None
    budget: Optional[str] = None
    application: Optional[str] = None
    certification_requirements: List[str] = Field(default_factory=list)
    additional_requirements: Optional[str] = None

    def is_empty(self) -> bool:
        return not any(value for value in self.model_dump().values())


class Attachment(BaseModel):
    id: str
    name: str
    type: str
    size: int
    url: str


class SupplierQuote(BaseModel):
    id: str
    product_id: str
    unit_price: float
    moq: int
    lead_time: int = Field(..., description="Lead time in days")
    valid_until: datetime
    notes: Optional[str] = None


class InquiryRecord(BaseModel):
    """Submitted or saved-as-draft snapshot of an inquiry."""

    id: str
    inquiry_number: str
    products: List[InquiryProduct] = Field(default_factory=list)
    company_info: CompanyInfo = Field(default_factory=CompanyInfo)
    project_info: Optional[ProjectInfo] = None
    status: InquiryStatus = InquiryStatus.DRAFT
    submitted_at: Optional[datetime] = None
    quoted_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    total_items: int = 0
    expected_value: Optional[float] = None
    notes: Optional[str] = None
    attachments: List[Attachment] = Field(default_factory=list)
    quotes: List[SupplierQuote] = Field(default_factory=list)

    @property
    def is_frozen(self) -> bool:
        return self.status != InquiryStatus.DRAFT

    def revise(self, **payload: Any) -> "InquiryRecord":
        """Return a copy with new payload fields; only drafts may be revised."""
        if self.is_frozen:
            raise RecordFrozenError(
                f"Inquiry {self.inquiry_number} is {self.status.value}; its payload is frozen"
            )
        return self.model_copy(update=payload, deep=True)

    def with_lifecycle_update(
        self,
        status: InquiryStatus,
        quotes: Optional[List[SupplierQuote]] = None,
        quoted_at: Optional[datetime] = None,
    ) -> "InquiryRecord":
        """Return a copy where only status, quotes and quoted_at changed."""
        update: Dict[str, Any] = {"status": status}
        if quotes is not None:
            update["quotes"] = list(quotes)
        if quoted_at is not None:
            update["quoted_at"] = quoted_at
        return self.model_copy(update=update, deep=True)


class DraftState(BaseModel):
    """The active, in-memory draft owned by a state machine."""

    products: List[InquiryProduct] = Field(default_factory=list)
    company_info: Dict[str, Any] = Field(default_factory=dict)
    project_info: Dict[str, Any] = Field(default_factory=dict)
    current_step: InquiryStep = InquiryStep.PRODUCTS
    draft_id: Optional[str] = None
    step_history: List[Dict[str, Any]] = Field(default_factory=list)


def compute_expected_value(products: List[InquiryProduct]) -> Optional[float]:
    """Sum target_price x quantity over priced products, None when unpriced."""
    priced = [p for p in products if p.target_price is not None]
    if not priced:
        return None
    return round(sum(p.target_price * p.quantity for p in priced), 2)


@dataclass
class RowIssue:
    """A row-scoped (or file-level, row 0) parse error or warning."""

    row: int
    message: str
    kind: str
    column: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"row": self.row, "message": self.message, "kind": self.kind, "column": self.column}


@dataclass
class BOMParseResult:
    """Outcome of ingesting a tabular file."""

    success: bool
    products: List[InquiryProduct] = field(default_factory=list)
    errors: List[RowIssue] = field(default_factory=list)
    warnings: List[RowIssue] = field(default_factory=list)

    @property
    def file_error(self) -> bool:
        return len(self.errors) == 1 and self.errors[0].row == 0

    def summary(self) -> Dict[str, int]:
        return {
            "accepted": len(self.products),
            "errors": len(self.errors),
            "warnings": len(self.warnings),
        }

    @classmethod
    def file_failure(cls, message: str, kind: str) -> "BOMParseResult":
        return cls(success=False, errors=[RowIssue(row=0, message=message, kind=kind)])
