"""
Test Configuration and Fixtures
"""
import asyncio
import pytest
import fitz
from fastapi.testclient import TestClient

from gemini import QueryDispatcher
from main import app, get_dispatcher
from pdf_extractor import PyMuPDFExtractor
from session import sessions_store


def make_pdf(pages, size=None):
    """Build an in-memory PDF with one page per entry of `pages`"""
    doc = fitz.open()
    for text in pages:
        if size:
            page = doc.new_page(width=size[0], height=size[1])
        else:
            page = doc.new_page()
        if text:
            page.insert_text((72, 72), text)
    data = doc.tobytes()
    doc.close()
    return data


def answer_body(text):
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


class FakeBackend:
    """Stands in for the Gemini endpoint; records every payload it receives"""

    def __init__(self, response=None, error=None):
        self.response = response if response is not None else answer_body("Paris")
        self.error = error
        self.payloads = []

    async def generate(self, payload):
        self.payloads.append(payload)
        if self.error:
            raise self.error
        return self.response

    @property
    def prompts(self):
        return [p["contents"][0]["parts"][0]["text"] for p in self.payloads]


class CountingExtractor:
    """Wraps an extractor and counts how often it is invoked"""

    def __init__(self, inner=None, on_extract=None):
        self.inner = inner or PyMuPDFExtractor()
        self.on_extract = on_extract
        self.calls = 0

    def extract(self, payload):
        self.calls += 1
        if self.on_extract:
            self.on_extract()
        return self.inner.extract(payload)


def run(coro):
    return asyncio.run(coro)


@pytest.fixture
def pdf_bytes():
    return make_pdf(["First page text", "Second page text", "Third page text"])


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def dispatcher(backend):
    return QueryDispatcher(backend, inline_images=True)


@pytest.fixture
def client(dispatcher):
    """Test client with the Gemini backend replaced by a fake"""
    app.dependency_overrides[get_dispatcher] = lambda: dispatcher
    sessions_store.clear()
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
    sessions_store.clear()
