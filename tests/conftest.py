#!/usr/bin/env python3
"""
Shared test configuration and fixtures for the inquiry engine.
"""

from unittest.mock import MagicMock

import pytest

from src.inquiry.catalog import InquiryProductCatalog
from src.inquiry.state_machine import InquiryStateMachine
from src.storage import DraftRepository, InMemoryStorage

COMPLETE_COMPANY = {
    "company_name": "Acme Electronics",
    "contact_person": "Jordan Lee",
    "email": "jordan@acme.example",
    "phone": "+1 555 0100",
}


@pytest.fixture(autouse=True)
def _no_network(monkeypatch, tmp_path):
    """Mock all network calls and keep call logs inside the test directory."""
    monkeypatch.setenv("NO_NETWORK", "1")
    monkeypatch.setenv("SUBMISSION_LOG_DIR", str(tmp_path))

    # Mock boto3 client for S3
    def mock_boto3_client(*args, **kwargs):
        return MagicMock()

    monkeypatch.setattr("boto3.client", mock_boto3_client)


@pytest.fixture
def storage():
    return InMemoryStorage()


@pytest.fixture
def repository(storage):
    return DraftRepository(storage)


@pytest.fixture
def catalog():
    counter = iter(range(1, 10_000))
    return InquiryProductCatalog(id_factory=lambda: f"p{next(counter)}")


@pytest.fixture
def machine(repository, catalog):
    return InquiryStateMachine(repository=repository, catalog=catalog)


@pytest.fixture
def complete_machine(machine):
    """A draft with one product and complete company info."""
    machine.add_product({"model": "STM32F401RET6", "quantity": 10})
    machine.update_company_info(COMPLETE_COMPANY)
    return machine
