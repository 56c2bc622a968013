"""Wiring of the inquiry engine components from configuration."""

from dataclasses import dataclass
from typing import Optional

from src.inquiry.bom_parser import BOMParser
from src.inquiry.catalog import InquiryProductCatalog
from src.inquiry.collaborator import SubmissionClient, create_submission_client
from src.inquiry.history import InquiryHistory
from src.inquiry.state_machine import InquiryStateMachine
from src.inquiry.submission import InquiryNumberGenerator, SubmissionCoordinator
from src.storage import DraftRepository, StorageBackend, create_storage

from .config import InquiryConfig, load_config


@dataclass
class InquiryEngine:
    """Shared components; one state machine is created per draft."""

    config: InquiryConfig
    repository: DraftRepository
    catalog: InquiryProductCatalog
    parser: BOMParser
    coordinator: SubmissionCoordinator
    history: InquiryHistory

    def new_draft(self) -> InquiryStateMachine:
        return InquiryStateMachine(
            repository=self.repository,
            catalog=self.catalog,
            parser=self.parser,
            draft_prefix=self.config.draft_prefix,
        )


def build_engine(
    config: Optional[InquiryConfig] = None,
    storage: Optional[StorageBackend] = None,
    client: Optional[SubmissionClient] = None,
) -> InquiryEngine:
    """Build an engine from configuration, with optional overrides for testing."""
    config = config or load_config()
    repository = DraftRepository(
        storage or create_storage(config),
        max_templates=config.max_templates,
        max_favorites=config.max_favorites,
    )
    catalog = InquiryProductCatalog(
        pending_label=config.pending_label,
        default_category=config.default_category,
    )
    parser = BOMParser(delimiter=config.delimiter, catalog=catalog)
    coordinator = SubmissionCoordinator(
        repository,
        client or create_submission_client(config),
        number_generator=InquiryNumberGenerator(prefix=config.inquiry_prefix),
        expiry_days=config.expiry_days,
    )
    return InquiryEngine(
        config=config,
        repository=repository,
        catalog=catalog,
        parser=parser,
        coordinator=coordinator,
        history=InquiryHistory(repository),
    )
