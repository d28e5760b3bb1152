"""Shared fixtures for the osgrep test suite."""

import tempfile
import threading
from pathlib import Path
from typing import Any, Optional

import pytest

from osgrep.exceptions import StoreNotFoundError
from osgrep.store import RemoteDocument


class FakeStore:
    """In-memory store recording every call."""

    def __init__(self, documents: Optional[dict[str, dict[str, Any]]] = None):
        self.documents: dict[str, dict[str, Any]] = dict(documents or {})
        self.collections: set[str] = {"store"}
        self.indexed: list[str] = []
        self.deleted: list[str] = []
        self.created: list[str] = []
        self.text_index_count = 0
        self.vector_index_count = 0
        self.fail_index: set[str] = set()
        self.fail_listing = False
        self._lock = threading.Lock()

    def list_documents(self, collection):
        if self.fail_listing:
            raise StoreNotFoundError("listing failed")
        for external_id, metadata in list(self.documents.items()):
            yield RemoteDocument(external_id=external_id, metadata=dict(metadata))

    def index_document(self, collection, content, external_id, metadata=None):
        if external_id in self.fail_index:
            raise RuntimeError(f"cannot index {external_id}")
        with self._lock:
            self.indexed.append(external_id)
            self.documents[external_id] = dict(metadata or {})

    def delete_document(self, collection, external_id):
        with self._lock:
            self.deleted.append(external_id)
            self.documents.pop(external_id, None)

    def create_collection(self, name, description=""):
        self.created.append(name)
        self.collections.add(name)

    def get_collection(self, name):
        if name not in self.collections:
            raise StoreNotFoundError("Resource not found", 404)
        return {"name": name}

    def create_text_index(self, collection):
        self.text_index_count += 1

    def create_vector_index(self, collection):
        self.vector_index_count += 1


@pytest.fixture
def fake_store():
    """Create an empty in-memory store."""
    return FakeStore()


@pytest.fixture
def temp_dir():
    """Create a temporary directory for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir).resolve()
