"""Shared test fixtures and configuration for backend tests."""
from datetime import datetime, timezone
from typing import List, Optional, Tuple

import httpx
import pytest
from fastapi.testclient import TestClient

from filebot.catalog.store import CatalogStore
from filebot.files.classifier import ensure_bucket_dirs
from filebot.files.ingest import Ingestor
from filebot.main import app
from filebot.users.gate import RegistrationGate, UserProfile

FIXED_NOW = datetime(2026, 1, 15, 12, 30, 0, tzinfo=timezone.utc)
FIXED_MS = int(FIXED_NOW.timestamp() * 1000)


class FakeReplier:
    """Records every outgoing message instead of talking to Telegram."""

    def __init__(self) -> None:
        self.sent: List[Tuple[int, str, dict]] = []
        self.edited: List[Tuple[int, int, str]] = []
        self.answered: List[Tuple[str, str]] = []
        self._next_id = 100

    async def send_text(self, chat_id, text, *, markdown=False, keyboard=None) -> int:
        self.sent.append((chat_id, text, {"markdown": markdown, "keyboard": keyboard}))
        self._next_id += 1
        return self._next_id

    async def edit_text(self, chat_id, message_id, text, *, markdown=False) -> None:
        self.edited.append((chat_id, message_id, text))

    async def answer_callback(self, callback_id, text) -> None:
        self.answered.append((callback_id, text))

    @property
    def texts(self) -> List[str]:
        return [text for _, text, _ in self.sent]


async def resolve_url(file_id: str) -> str:
    return f"https://files.example.test/file/{file_id}"


def mock_http_client(
    body: bytes = b"hello world",
    content_type: Optional[str] = "application/pdf",
    requests: Optional[list] = None,
) -> httpx.AsyncClient:
    """AsyncClient answering every GET with the given body and content type."""

    def handler(request: httpx.Request) -> httpx.Response:
        if requests is not None:
            requests.append(request)
        headers = {"content-type": content_type} if content_type else {}
        return httpx.Response(200, headers=headers, content=body)

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.fixture
def store(tmp_path):
    """A CatalogStore on a temporary snapshot path."""
    return CatalogStore(path=tmp_path / "catalog.json")


@pytest.fixture
def downloads_dir(tmp_path):
    return ensure_bucket_dirs(tmp_path / "downloads")


@pytest.fixture
def gate(store):
    return RegistrationGate(store)


@pytest.fixture
def ada():
    return UserProfile(id=42, first_name="Ada", last_name="Lovelace", username="ada")


@pytest.fixture
def registered_ada(gate, ada):
    gate.ensure_registered(ada)
    return ada


@pytest.fixture
def make_ingestor(store, gate, downloads_dir):
    """Factory building an Ingestor around a mocked HTTP client."""

    def _make(client: httpx.AsyncClient, resolver=resolve_url, **kwargs) -> Ingestor:
        kwargs.setdefault("clock", lambda: FIXED_NOW)
        return Ingestor(
            store,
            gate,
            downloads_dir,
            resolver,
            client,
            **kwargs,
        )

    return _make


@pytest.fixture
def api_client(tmp_path):
    """Provide a TestClient for the main FastAPI app backed by a temp catalog."""
    CatalogStore.reset_instance()
    CatalogStore.get_instance(tmp_path / "api_catalog.json")
    app.state.supervisor = None
    yield TestClient(app)
    app.state.supervisor = None
    CatalogStore.reset_instance()
