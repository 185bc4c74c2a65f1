"""Pytest fixtures and shared test configuration.

Provides in-memory substitutes for the hosted services so the relay, the
ingestion pipeline and the HTTP API can be exercised without network access.

Fixtures:
    - settings: Settings with dummy credentials
    - completion / embedder / index: fake collaborators
    - services: Services container wired to the fakes
    - async_client: HTTPX client bound to an app built from `services`
    - make_pdf: builds small text PDFs in memory
"""

import asyncio
from collections.abc import AsyncGenerator, Callable, Sequence

import pytest
from httpx import ASGITransport, AsyncClient

from ragchat.api.app import create_app
from ragchat.config import Settings
from ragchat.models.schemas import ChatMessage, VectorMatch, VectorRecord
from ragchat.services import Services


class FakeCompletion:
    """Completion provider yielding scripted fragments.

    Attributes:
        calls: (messages, model) for every stream_complete call.
        pulled: Fragments handed to the consumer so far.
        closed: True once the generator has been finalized.
    """

    def __init__(
        self,
        fragments: Sequence[str] = ("Hello", " there", "!"),
        fail_after: int | None = None,
        delay: float = 0.0,
    ) -> None:
        self.fragments = list(fragments)
        self.fail_after = fail_after
        self.delay = delay
        self.calls: list[tuple[list[ChatMessage], str]] = []
        self.pulled = 0
        self.closed = False

    async def stream_complete(
        self, messages: Sequence[ChatMessage], model: str
    ) -> AsyncGenerator[str]:
        self.calls.append((list(messages), model))
        try:
            for position, fragment in enumerate(self.fragments):
                if self.fail_after is not None and position == self.fail_after:
                    raise RuntimeError("upstream stream broke")
                if self.delay:
                    await asyncio.sleep(self.delay)
                self.pulled += 1
                yield fragment
            if self.fail_after is not None and self.fail_after >= len(self.fragments):
                raise RuntimeError("upstream stream broke")
        finally:
            self.closed = True


class FakeEmbedder:
    def __init__(self, fail: bool = False, delay: float = 0.0) -> None:
        self.fail = fail
        self.delay = delay
        self.embedded: list[str] = []

    async def embed(self, text: str) -> list[float]:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise RuntimeError("embedding service unavailable")
        self.embedded.append(text)
        return [float(len(text)), 1.0, 0.0]

    async def embed_batch(self, texts: Sequence[str]) -> list[list[float]]:
        return [await self.embed(text) for text in texts]


class FakeIndex:
    """Dict-backed index; queries return stored records in insertion order."""

    def __init__(self, texts: Sequence[str] = (), fail: bool = False) -> None:
        self.fail = fail
        self.records: dict[str, VectorRecord] = {}
        self.queries: list[tuple[list[float], int]] = []
        for position, text in enumerate(texts):
            self.records[f"seed-{position}"] = VectorRecord(
                id=f"seed-{position}", values=[0.0, 0.0, 1.0], metadata={"text": text}
            )

    async def upsert(self, records: Sequence[VectorRecord]) -> int:
        for record in records:
            self.records[record.id] = record
        return len(records)

    async def query(
        self, vector: Sequence[float], top_k: int, include_metadata: bool = True
    ) -> list[VectorMatch]:
        if self.fail:
            raise RuntimeError("index query failed")
        self.queries.append((list(vector), top_k))
        hits = list(self.records.values())[:top_k]
        return [
            VectorMatch(id=record.id, score=1.0 - rank * 0.1, metadata=dict(record.metadata))
            for rank, record in enumerate(hits)
        ]


def _pdf_string(text: str) -> str:
    return text.replace("\\", "\\\\").replace("(", "\\(").replace(")", "\\)")


def build_pdf(pages: Sequence[str]) -> bytes:
    """Assemble a minimal PDF with one line of Helvetica text per page."""
    page_ids = [4 + 2 * position for position in range(len(pages))]
    kids = " ".join(f"{page_id} 0 R" for page_id in page_ids)
    objects: list[bytes] = [
        b"<< /Type /Catalog /Pages 2 0 R >>",
        f"<< /Type /Pages /Kids [{kids}] /Count {len(pages)} >>".encode(),
        b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica >>",
    ]
    for page_id, text in zip(page_ids, pages, strict=True):
        objects.append(
            (
                "<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] "
                f"/Resources << /Font << /F1 3 0 R >> >> /Contents {page_id + 1} 0 R >>"
            ).encode()
        )
        content = f"BT /F1 12 Tf 72 720 Td ({_pdf_string(text)}) Tj ET".encode() if text else b""
        objects.append(
            f"<< /Length {len(content)} >>\nstream\n".encode() + content + b"\nendstream"
        )

    out = bytearray(b"%PDF-1.4\n")
    offsets = []
    for number, body in enumerate(objects, start=1):
        offsets.append(len(out))
        out += f"{number} 0 obj\n".encode() + body + b"\nendobj\n"
    xref_at = len(out)
    out += f"xref\n0 {len(objects) + 1}\n".encode()
    out += b"0000000000 65535 f \n"
    for offset in offsets:
        out += f"{offset:010d} 00000 n \n".encode()
    out += (
        f"trailer\n<< /Size {len(objects) + 1} /Root 1 0 R >>\n"
        f"startxref\n{xref_at}\n%%EOF\n"
    ).encode()
    return bytes(out)


@pytest.fixture
def make_pdf() -> Callable[[Sequence[str]], bytes]:
    return build_pdf


@pytest.fixture
def settings() -> Settings:
    """Settings with dummy keys and the default retrieval-augmented mode."""
    return Settings(
        openai_api_key="sk-test-key",
        pinecone_api_key="pc-test-key",
        retrieval_enabled=True,
        retrieval_top_k=5,
        allow_empty_context=False,
        completion_timeout=5.0,
        retrieval_timeout=5.0,
        ingest_on_startup=None,
    )


@pytest.fixture
def completion() -> FakeCompletion:
    return FakeCompletion()


@pytest.fixture
def embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest.fixture
def index() -> FakeIndex:
    return FakeIndex(texts=["Stocks fell 3% on Monday.", "Analysts expect a soft landing."])


@pytest.fixture
def services(
    settings: Settings, completion: FakeCompletion, embedder: FakeEmbedder, index: FakeIndex
) -> Services:
    return Services(settings=settings, completion=completion, embedder=embedder, index=index)


@pytest.fixture
async def async_client(services: Services) -> AsyncGenerator[AsyncClient]:
    """Create async HTTP client bound to an app using the fake services.

    Yields:
        Configured AsyncClient for making test requests.
    """
    transport = ASGITransport(app=create_app(services=services))
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
