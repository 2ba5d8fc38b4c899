"""
Shared pytest fixtures for kcollection tests.

Provides fixtures for:
- Stores (plain and audited)
- Event recording
- Sample data
"""

from pathlib import Path
from typing import Any, Dict, List

import pytest

from kcollection import AuditLogger, Collection, Store
from tests.models import Contact, EventRecorder


@pytest.fixture
def store() -> Store:
    """Store with default configuration."""
    return Store()


@pytest.fixture
def audit_log(tmp_path: Path) -> AuditLogger:
    """Audit logger writing to a temporary file."""
    return AuditLogger(tmp_path / "audit.jsonl", retention_days=0, session_id="test-session")


@pytest.fixture
def audited_store(audit_log: AuditLogger) -> Store:
    """Store writing its audit trail to ``audit_log``."""
    return Store(audit=audit_log)


@pytest.fixture
def sample_data() -> List[Dict[str, Any]]:
    return [
        {"id": 1, "name": "Alice", "status": "open"},
        {"id": 2, "name": "Bob", "status": "closed"},
        {"id": 3, "name": "Carol", "status": "open"},
    ]


@pytest.fixture
def contacts(store: Store, sample_data) -> Collection:
    """Collection of three unmaterialized contacts."""
    return Collection(sample_data, store=store, model=Contact)


@pytest.fixture
def recorder():
    """Factory attaching an EventRecorder to a collection."""
    return EventRecorder
