"""Durable collections for inquiry drafts, history, templates and favorites."""

import logging
import threading
from typing import Any, Dict, List, Optional, Tuple, Type

from pydantic import BaseModel, ValidationError

from src.inquiry.errors import (
    InvalidTransitionError,
    RecordFrozenError,
    RecordNotFoundError,
    StorageError,
)
from src.inquiry.models import CompanyInfo, InquiryProduct, InquiryRecord, InquiryStatus

from .backends import StorageBackend

logger = logging.getLogger(__name__)

HISTORY_KEY = "inquiry_history"
DRAFTS_KEY = "inquiry_drafts"
TEMPLATES_KEY = "company_templates"
FAVORITES_KEY = "favorite_products"

_COLLECTION_MODELS: Dict[str, Type[BaseModel]] = {
    HISTORY_KEY: InquiryRecord,
    DRAFTS_KEY: InquiryRecord,
    TEMPLATES_KEY: CompanyInfo,
    FAVORITES_KEY: InquiryProduct,
}

_FROZEN_FIELDS = ("inquiry_number", "products", "company_info", "project_info")


def _company_identity(info: CompanyInfo) -> Tuple[str, str]:
    return (info.company_name.strip().lower(), info.email.strip().lower())


class DraftRepository:
    """Keeps the four inquiry collections in memory and mirrors every change to storage.

    Each collection is written as ``{"version": n, "items": [...]}`` under its
    own key. Mutators write before returning and are serialized per
    repository, so reads after a write in the same process see it.
    """

    def __init__(
        self,
        storage: StorageBackend,
        max_templates: int = 5,
        max_favorites: int = 10,
    ):
        """Load all collections from storage.

        Args:
            storage: Backend holding the collections
            max_templates: Company templates kept, newest first
            max_favorites: Favorite products kept, newest first
        """
        self.storage = storage
        self.max_templates = max_templates
        self.max_favorites = max_favorites
        self._lock = threading.RLock()
        self._versions: Dict[str, int] = {}
        self._collections: Dict[str, List[Any]] = {}

        for key in _COLLECTION_MODELS:
            self._collections[key] = self._load_collection(key)
        logger.info(f"Draft repository ready: {self.describe()}")

    def _load_collection(self, key: str) -> List[Any]:
        """Read one collection, treating a missing key as empty.

        A malformed payload is logged and skipped so the other collections
        still load. Storage medium failures propagate.
        """
        model = _COLLECTION_MODELS[key]
        self._versions[key] = 0

        try:
            payload = self.storage.read(key)
        except ValueError as e:
            logger.warning(f"Skipping collection {key}: stored payload is not valid JSON ({str(e)})")
            return []

        if payload is None:
            return []

        if isinstance(payload, dict):
            items = payload.get("items")
            version = payload.get("version", 0)
        else:
            # Bare list layout
            items = payload
            version = 0

        if not isinstance(items, list) or not isinstance(version, int):
            logger.warning(f"Skipping collection {key}: unexpected payload shape")
            return []

        try:
            loaded = [model.model_validate(item) for item in items]
        except ValidationError as e:
            logger.warning(f"Skipping collection {key}: invalid item ({e.error_count()} errors)")
            return []

        self._versions[key] = version
        logger.info(f"Loaded {len(loaded)} items from {key} (v{version})")
        return loaded

    def _persist(self, key: str, items: List[BaseModel]) -> None:
        """Write a collection and only then publish it to the cache."""
        version = self._versions.get(key, 0) + 1
        payload = {
            "version": version,
            "items": [item.model_dump(mode="json") for item in items],
        }
        try:
            self.storage.write(key, payload)
        except StorageError:
            raise
        except Exception as e:
            logger.error(f"Error persisting {key}: {str(e)}")
            raise StorageError(f"Failed to persist {key}", e)

        self._versions[key] = version
        self._collections[key] = items

    def _snapshot(self, key: str) -> List[Any]:
        with self._lock:
            return [item.model_copy(deep=True) for item in self._collections[key]]

    def collection_version(self, key: str) -> int:
        """Number of writes recorded for a collection."""
        with self._lock:
            return self._versions.get(key, 0)

    # Drafts

    def save_draft(self, record: InquiryRecord) -> InquiryRecord:
        """Insert or replace a draft by id, newest first."""
        if record.status != InquiryStatus.DRAFT:
            raise InvalidTransitionError(
                f"Only draft records can be saved as drafts, got {record.status.value}"
            )
        with self._lock:
            drafts = [record.model_copy(deep=True)] + [
                d for d in self._collections[DRAFTS_KEY] if d.id != record.id
            ]
            self._persist(DRAFTS_KEY, drafts)
        logger.info(f"Saved draft {record.id} ({record.total_items} products)")
        return record

    def list_drafts(self) -> List[InquiryRecord]:
        return self._snapshot(DRAFTS_KEY)

    def load_draft(self, draft_id: str) -> Optional[InquiryRecord]:
        with self._lock:
            for draft in self._collections[DRAFTS_KEY]:
                if draft.id == draft_id:
                    return draft.model_copy(deep=True)
        return None

    def delete_draft(self, draft_id: str) -> bool:
        with self._lock:
            drafts = self._collections[DRAFTS_KEY]
            remaining = [d for d in drafts if d.id != draft_id]
            if len(remaining) == len(drafts):
                return False
            self._persist(DRAFTS_KEY, remaining)
        logger.info(f"Deleted draft {draft_id}")
        return True

    # History

    def append_history(self, record: InquiryRecord) -> InquiryRecord:
        """Prepend a record to history, replacing any entry with the same id."""
        with self._lock:
            history = [record.model_copy(deep=True)] + [
                r for r in self._collections[HISTORY_KEY] if r.id != record.id
            ]
            self._persist(HISTORY_KEY, history)
        logger.info(f"Appended {record.inquiry_number} to history ({record.status.value})")
        return record

    def move_to_history(self, record: InquiryRecord, draft_id: Optional[str] = None) -> None:
        """Append a finalized record and drop the draft it came from.

        History is written first; if that write fails nothing else changes.
        If dropping the draft fails, the previous history is written back
        before the error is raised, so a retry cannot duplicate the record.
        """
        with self._lock:
            previous_history = list(self._collections[HISTORY_KEY])
            self.append_history(record)
            if not draft_id:
                return
            try:
                self.delete_draft(draft_id)
            except StorageError:
                logger.error(
                    f"Could not drop draft {draft_id}, rolling back history for "
                    f"{record.inquiry_number}"
                )
                self._persist(HISTORY_KEY, previous_history)
                raise

    def list_history(self) -> List[InquiryRecord]:
        return self._snapshot(HISTORY_KEY)

    def get_history(self, record_id: str) -> Optional[InquiryRecord]:
        with self._lock:
            for record in self._collections[HISTORY_KEY]:
                if record.id == record_id:
                    return record.model_copy(deep=True)
        return None

    def replace_history(self, record: InquiryRecord) -> InquiryRecord:
        """Store a lifecycle update of an existing history record in place.

        Raises:
            RecordFrozenError: if the product/company/project payload changed
        """
        with self._lock:
            history = list(self._collections[HISTORY_KEY])
            for i, existing in enumerate(history):
                if existing.id != record.id:
                    continue
                if existing.is_frozen:
                    for name in _FROZEN_FIELDS:
                        if getattr(existing, name) != getattr(record, name):
                            raise RecordFrozenError(
                                f"Cannot change {name} of {existing.inquiry_number} "
                                f"after it left draft status"
                            )
                history[i] = record.model_copy(deep=True)
                self._persist(HISTORY_KEY, history)
                return record

        raise RecordNotFoundError(f"History record {record.id} not found")

    # Company templates

    def add_company_template(self, info: CompanyInfo) -> None:
        """Add or promote a template to the front; oldest evicted past the limit.

        Templates are keyed by company name and email, so an edited copy of a
        stored company replaces it instead of taking another slot.
        """
        identity = _company_identity(info)
        with self._lock:
            templates = [info.model_copy(deep=True)] + [
                t for t in self._collections[TEMPLATES_KEY] if _company_identity(t) != identity
            ]
            self._persist(TEMPLATES_KEY, templates[: self.max_templates])
        logger.info(f"Stored company template for {info.company_name}")

    def list_company_templates(self) -> List[CompanyInfo]:
        return self._snapshot(TEMPLATES_KEY)

    # Favorite products

    def add_favorite_product(self, product: InquiryProduct) -> None:
        """Add or promote a favorite product; oldest evicted past the limit."""
        with self._lock:
            favorites = [product.model_copy(deep=True)] + [
                p for p in self._collections[FAVORITES_KEY] if p.id != product.id
            ]
            self._persist(FAVORITES_KEY, favorites[: self.max_favorites])
        logger.info(f"Added favorite product {product.model}")

    def list_favorite_products(self) -> List[InquiryProduct]:
        return self._snapshot(FAVORITES_KEY)

    def describe(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "storage": self.storage.describe(),
                "counts": {key: len(items) for key, items in self._collections.items()},
                "versions": dict(self._versions),
            }
