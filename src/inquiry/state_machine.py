"""
Inquiry draft state machine.

One instance owns one active draft and walks it through the
products -> company -> project -> review -> submit wizard. Steps may be
visited in any order; entering ``submit`` is gated on the completeness
check. Mutations are serialized with a per-instance lock, and file imports
additionally hold an asyncio lock for the whole parse-and-merge.
"""

import asyncio
import logging
import threading
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Iterable, List, Mapping, Optional, Union

from pydantic import ValidationError

from .bom_parser import BOMParser
from .catalog import InquiryProductCatalog
from .errors import (
    CompletenessError,
    InquiryError,
    InvalidStepError,
    InvalidUpdateError,
    ProductNotFoundError,
    RecordNotFoundError,
)
from .models import (
    BOMParseResult,
    CompanyInfo,
    DraftState,
    InquiryProduct,
    InquiryRecord,
    InquiryStatus,
    InquiryStep,
    ProjectInfo,
    compute_expected_value,
)

logger = logging.getLogger(__name__)

ProductInput = Union[InquiryProduct, Mapping[str, Any]]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class CompletenessReport:
    """Result of the submission gate check."""

    products_complete: bool
    company_complete: bool
    missing_company_fields: List[str] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return self.products_complete and self.company_complete

    def describe(self) -> str:
        problems = []
        if not self.products_complete:
            problems.append("at least one product is required")
        if not self.company_complete:
            problems.append(f"missing company fields: {', '.join(self.missing_company_fields)}")
        return "; ".join(problems) or "complete"


class InquiryStateMachine:
    """Owns and mutates a single inquiry draft."""

    def __init__(
        self,
        repository=None,
        catalog: Optional[InquiryProductCatalog] = None,
        parser: Optional[BOMParser] = None,
        draft_prefix: str = "DRAFT",
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """Initialize with an empty draft.

        Args:
            repository: DraftRepository for drafts, templates and favorites
            catalog: Product normalizer
            parser: BOM parser used by the import operations
            draft_prefix: Prefix for saved draft inquiry numbers
            clock: Returns the current UTC time (for testing)
        """
        self.repository = repository
        self.catalog = catalog or InquiryProductCatalog()
        self.parser = parser or BOMParser(catalog=self.catalog)
        self.draft_prefix = draft_prefix
        self.clock = clock or _utcnow
        self._draft = DraftState()
        self._lock = threading.RLock()
        self._import_lock = asyncio.Lock()

    # Read access

    def snapshot(self) -> DraftState:
        """Deep copy of the current draft."""
        with self._lock:
            return self._draft.model_copy(deep=True)

    @property
    def lock(self) -> threading.RLock:
        """Mutual-exclusion boundary for multi-step operations on this draft."""
        return self._lock

    @property
    def current_step(self) -> InquiryStep:
        return self._draft.current_step

    @property
    def draft_id(self) -> Optional[str]:
        return self._draft.draft_id

    @property
    def products(self) -> List[InquiryProduct]:
        with self._lock:
            return [p.model_copy(deep=True) for p in self._draft.products]

    def company_info(self) -> CompanyInfo:
        with self._lock:
            return CompanyInfo.model_validate(self._draft.company_info)

    def project_info(self) -> ProjectInfo:
        with self._lock:
            return ProjectInfo.model_validate(self._draft.project_info)

    def is_empty(self) -> bool:
        with self._lock:
            return not (
                self._draft.products or self._draft.company_info or self._draft.project_info
            )

    # Products

    def add_product(self, product: ProductInput) -> InquiryProduct:
        normalized = self.catalog.normalize(product)
        with self._lock:
            self._draft.products.append(normalized)
        logger.info(f"Added product {normalized.model} x{normalized.quantity}")
        return normalized

    def remove_product(self, product_id: str) -> None:
        with self._lock:
            remaining = [p for p in self._draft.products if p.id != product_id]
            if len(remaining) == len(self._draft.products):
                raise ProductNotFoundError(f"Product {product_id} is not in the draft")
            self._draft.products = remaining
        logger.info(f"Removed product {product_id}")

    def update_product(self, product_id: str, updates: Mapping[str, Any]) -> InquiryProduct:
        """Merge a partial update into one product.

        Raises:
            ProductNotFoundError: if the id is not in the draft
            InvalidUpdateError: for unknown fields, an id change or invalid values
        """
        self._check_fields(updates, InquiryProduct.model_fields, "product")
        if "id" in updates and updates["id"] != product_id:
            raise InvalidUpdateError("Product id cannot be changed")

        with self._lock:
            for i, existing in enumerate(self._draft.products):
                if existing.id != product_id:
                    continue
                try:
                    updated = InquiryProduct.model_validate({**existing.model_dump(), **updates})
                except ValidationError as e:
                    raise InvalidUpdateError(f"Invalid product update: {e}", e)
                self._draft.products[i] = updated
                return updated.model_copy(deep=True)

        raise ProductNotFoundError(f"Product {product_id} is not in the draft")

    def import_products(self, products: Iterable[ProductInput]) -> List[InquiryProduct]:
        """Append products to the draft; existing products are kept."""
        normalized = [self.catalog.normalize(p) for p in products]
        with self._lock:
            self._draft.products.extend(normalized)
        logger.info(f"Imported {len(normalized)} products")
        return normalized

    def import_text(self, file_contents: str) -> BOMParseResult:
        """Parse BOM text and append every accepted row.

        Accepted rows are merged even when other rows failed, so the caller
        can fix only the failing rows.
        """
        result = self.parser.parse(file_contents)
        if result.products:
            self.import_products(result.products)
        return result

    async def import_file(self, path: Union[str, Path]) -> BOMParseResult:
        """Parse a BOM file and append its accepted rows.

        A second import on the same draft waits until this one is merged.
        """
        async with self._import_lock:
            result = await self.parser.parse_file(path)
            if result.products:
                self.import_products(result.products)
            return result

    # Company and project

    def update_company_info(self, updates: Mapping[str, Any]) -> CompanyInfo:
        """Merge company fields; a complete result is kept as a company template."""
        self._check_fields(updates, CompanyInfo.model_fields, "company")
        with self._lock:
            merged = {**self._draft.company_info, **updates}
            try:
                company = CompanyInfo.model_validate(merged)
            except ValidationError as e:
                raise InvalidUpdateError(f"Invalid company update: {e}", e)
            self._draft.company_info = merged

        if company.is_complete() and self.repository is not None:
            self.repository.add_company_template(company)
        return company

    def update_project_info(self, updates: Mapping[str, Any]) -> ProjectInfo:
        self._check_fields(updates, ProjectInfo.model_fields, "project")
        with self._lock:
            merged = {**self._draft.project_info, **updates}
            try:
                project = ProjectInfo.model_validate(merged)
            except ValidationError as e:
                raise InvalidUpdateError(f"Invalid project update: {e}", e)
            self._draft.project_info = merged
        return project

    def apply_company_template(self, index: int = 0) -> CompanyInfo:
        """Fill company info from a stored template (0 = most recent)."""
        templates = self._require_repository().list_company_templates()
        if not 0 <= index < len(templates):
            raise RecordNotFoundError(f"No company template at position {index}")
        return self.update_company_info(templates[index].model_dump(exclude_none=True))

    # Steps

    def set_step(self, step: Union[InquiryStep, str]) -> InquiryStep:
        """Move to any step; entering submit requires a complete draft.

        Raises:
            InvalidStepError: for an unknown step name
            CompletenessError: when entering submit with an incomplete draft
        """
        try:
            target = InquiryStep(step)
        except ValueError:
            raise InvalidStepError(f"Invalid step: {step}")

        with self._lock:
            if target == InquiryStep.SUBMIT:
                self.require_complete()
            current = self._draft.current_step
            self._draft.step_history.append(
                {"from": current.value, "to": target.value, "timestamp": self.clock().isoformat()}
            )
            self._draft.current_step = target
        logger.info(f"Inquiry step {current.value} -> {target.value}")
        return target

    def check_completeness(self) -> CompletenessReport:
        with self._lock:
            missing = self.company_info().missing_fields()
            return CompletenessReport(
                products_complete=len(self._draft.products) > 0,
                company_complete=not missing,
                missing_company_fields=missing,
            )

    def require_complete(self) -> CompletenessReport:
        report = self.check_completeness()
        if not report.complete:
            raise CompletenessError(
                f"Inquiry is incomplete: {report.describe()}",
                products_complete=report.products_complete,
                missing_company_fields=report.missing_company_fields,
            )
        return report

    def clear_draft(self) -> None:
        """Reset to the empty initial draft."""
        with self._lock:
            self._draft = DraftState()
        logger.info("Cleared inquiry draft")

    # Records

    def to_record(
        self,
        record_id: str,
        inquiry_number: str,
        status: InquiryStatus = InquiryStatus.DRAFT,
    ) -> InquiryRecord:
        """Copy the draft into an InquiryRecord; empty project info is left out."""
        with self._lock:
            products = self.products
            project = self.project_info()
            return InquiryRecord(
                id=record_id,
                inquiry_number=inquiry_number,
                products=products,
                company_info=self.company_info(),
                project_info=None if project.is_empty() else project,
                status=status,
                total_items=len(products),
                expected_value=compute_expected_value(products),
            )

    def save_draft(self) -> InquiryRecord:
        """Persist the draft; saving again replaces the same stored draft.

        A re-save revises the stored record, so its inquiry number, notes and
        attachments are kept.
        """
        repository = self._require_repository()
        with self._lock:
            draft_id = self._draft.draft_id or f"draft_{uuid.uuid4().hex}"
            existing = repository.load_draft(draft_id) if self._draft.draft_id else None
            if existing:
                current = self.to_record(draft_id, existing.inquiry_number)
                record = existing.revise(
                    products=current.products,
                    company_info=current.company_info,
                    project_info=current.project_info,
                    total_items=current.total_items,
                    expected_value=current.expected_value,
                    submitted_at=self.clock(),
                )
            else:
                record = self.to_record(
                    draft_id, f"{self.draft_prefix}-{int(time.time() * 1000)}"
                )
                record.submitted_at = self.clock()
            repository.save_draft(record)
            self._draft.draft_id = draft_id
        return record

    def load_draft(self, draft_id: str) -> DraftState:
        """Replace the active draft with a stored one, starting at the products step."""
        record = self._require_repository().load_draft(draft_id)
        if record is None:
            raise RecordNotFoundError(f"Draft {draft_id} not found")

        with self._lock:
            self._draft = DraftState(
                products=record.products,
                company_info=record.company_info.model_dump(exclude_none=True),
                project_info=(
                    record.project_info.model_dump(exclude_none=True)
                    if record.project_info
                    else {}
                ),
                current_step=InquiryStep.PRODUCTS,
                draft_id=record.id,
            )
            logger.info(f"Loaded draft {draft_id} ({len(record.products)} products)")
            return self.snapshot()

    def add_favorite(self, product_id: str) -> InquiryProduct:
        """Remember a draft product for quick re-adding later."""
        repository = self._require_repository()
        with self._lock:
            product = next((p for p in self._draft.products if p.id == product_id), None)
        if product is None:
            raise ProductNotFoundError(f"Product {product_id} is not in the draft")
        repository.add_favorite_product(product)
        return product.model_copy(deep=True)

    # Helpers

    def _require_repository(self):
        if self.repository is None:
            raise InquiryError("No draft repository configured")
        return self.repository

    @staticmethod
    def _check_fields(updates: Mapping[str, Any], allowed: Mapping[str, Any], label: str) -> None:
        unknown = sorted(set(updates) - set(allowed))
        if unknown:
            raise InvalidUpdateError(f"Unknown {label} fields: {', '.join(unknown)}")
