"""Pytest configuration for arc gateway core tests.

This file configures the test environment and handles import paths centrally.
All test files should use this configuration - DO NOT add sys.path manipulations
in individual test files.
"""

import copy
import os
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional
from unittest.mock import MagicMock

import pytest

# Centralized sys.path configuration for all tests
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("ARC_CONFIG", str(project_root / "tests" / "missing.arcrc.yaml"))

from src.auth.context import Credential, Permission, set_credential, set_permission  # noqa: E402
from src.core.config import Config  # noqa: E402
from src.storage.request_logs import RequestLogStore  # noqa: E402


class FakeIndices:
    """The ``client.indices`` namespace of FakeElasticsearch."""

    def __init__(self, owner: "FakeElasticsearch"):
        self._owner = owner
        self.created: List[Dict[str, Any]] = []

    def exists(self, index: str) -> bool:
        return index in self._owner.documents

    def create(self, index: str, **body: Any) -> Dict[str, Any]:
        self.created.append({"index": index, **body})
        self._owner.documents.setdefault(index, [])
        return {"acknowledged": True, "index": index}


class FakeElasticsearch:
    """
    In-memory stand-in for the parts of the Elasticsearch client the store uses.

    Documents are kept per index; search supports from_/size and a single
    descending sort field, which is all the request log store asks for.
    """

    def __init__(self, indices: Optional[List[str]] = None, took: int = 2):
        self.documents: Dict[str, List[Dict[str, Any]]] = {name: [] for name in indices or []}
        self.indices = FakeIndices(self)
        self.took = took
        self.closed = False
        self._next_id = 0

    def index(self, index: str, document: Dict[str, Any]) -> Dict[str, Any]:
        self._next_id += 1
        doc_id = str(self._next_id)
        self.documents.setdefault(index, []).append({"_id": doc_id, "_source": copy.deepcopy(document)})
        return {"_id": doc_id, "result": "created"}

    def search(self, index: str, from_: int, size: int, sort: List[Dict[str, Any]]) -> Dict[str, Any]:
        (field, order), = sort[0].items()
        docs = sorted(
            self.documents.get(index, []),
            key=lambda d: d["_source"].get(field, ""),
            reverse=order["order"] == "desc",
        )
        page = docs[from_:from_ + size]
        hits = [{"_index": index, "_id": d["_id"], "_score": None, **copy.deepcopy(d)} for d in page]
        return {"took": self.took, "timed_out": False, "hits": {"hits": hits}}

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def fake_es() -> FakeElasticsearch:
    """Empty in-memory Elasticsearch."""
    return FakeElasticsearch()


@pytest.fixture
def mock_es_client() -> MagicMock:
    """Mock Elasticsearch client whose index does not exist yet."""
    mock = MagicMock()
    mock.indices.exists.return_value = False
    mock.search.return_value = {"took": 1, "hits": {"hits": []}}
    return mock


@pytest.fixture
def request_log_store(fake_es) -> RequestLogStore:
    """Store opened against the in-memory Elasticsearch."""
    return RequestLogStore.open(
        "http://localhost:9200", ".logs", Config.get_defaults()["request_logs"]["index_config"], client=fake_es
    )


def _make_hit(doc_id: str, indices: Any, timestamp: str = "2024-01-01T00:00:00+00:00", **fields: Any) -> Dict[str, Any]:
    """Search hit shaped like the ones Elasticsearch returns."""
    source = {"timestamp": timestamp, **fields}
    if indices is not None:
        source["indices"] = indices
    return {"_index": ".logs", "_id": doc_id, "_score": None, "_source": source}


def _make_authenticator(credential: Optional[Credential] = None, permission: Optional[Permission] = None):
    """Authenticator attaching a fixed credential/permission to every request."""

    async def authenticate(request):
        if credential is not None:
            set_credential(request, credential)
        if permission is not None:
            set_permission(request, permission)

    return authenticate


@pytest.fixture
def make_hit():
    return _make_hit


@pytest.fixture
def make_authenticator():
    return _make_authenticator


@pytest.fixture
def fake_es_factory():
    """FakeElasticsearch class, for tests that need pre-existing indices."""
    return FakeElasticsearch
