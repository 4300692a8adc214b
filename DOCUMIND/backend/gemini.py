# backend/gemini.py
import logging
from typing import Any, Dict, Optional, Protocol
from urllib.parse import urlsplit, urlunsplit

import requests
from fastapi.concurrency import run_in_threadpool

from config import GEMINI_ENDPOINT_URL, GEMINI_TIMEOUT, GEMINI_INLINE_IMAGES
from models import ExtractedContent, Query, QueryMode

logger = logging.getLogger(__name__)

NOT_RELATED_ANSWER = "This question is not related to the PDF."
FALLBACK_ANSWER = "No response returned."
FALLBACK_SUMMARY = "No summary returned."

class DispatchError(Exception):
    """Base class for failed dispatches."""

class NoDocument(DispatchError):
    def __init__(self):
        super().__init__("Please upload a PDF first.")

class EmptyQuery(DispatchError):
    def __init__(self):
        super().__init__("Please enter a question.")

class BackendError(DispatchError):
    """The generation service answered with an error object."""
    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

class TransportFailure(DispatchError):
    """The request never produced a readable response."""

class TextGenerationBackend(Protocol):
    async def generate(self, payload: Dict[str, Any]) -> Dict[str, Any]: ...

class GeminiBackend:
    """Posts generateContent payloads to the Gemini REST endpoint."""

    def __init__(self, endpoint_url: str = GEMINI_ENDPOINT_URL, timeout: Optional[float] = GEMINI_TIMEOUT):
        self.endpoint_url = endpoint_url
        self.timeout = timeout if timeout and timeout > 0 else None

    async def generate(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        # requests is blocking; keep the event loop free while the call is in flight
        return await run_in_threadpool(self._post, payload)

    def _post(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        try:
            r = requests.post(
                self.endpoint_url,
                json=payload,
                headers={"Content-Type": "application/json"},
                timeout=self.timeout,
            )
            # Error bodies are JSON too, so the status code is not checked before decoding
            data = r.json()
        except requests.RequestException as e:
            # str(e) repeats the request URL, key included, so only the type is logged
            logger.warning("Request to %s failed: %s", redact_url(self.endpoint_url), type(e).__name__)
            raise TransportFailure("Request to text generation service failed.") from e
        except ValueError as e:
            logger.warning("Invalid JSON from %s", redact_url(self.endpoint_url))
            raise TransportFailure("Text generation service returned invalid JSON.") from e

        if not isinstance(data, dict):
            raise TransportFailure("Text generation service returned an unexpected response.")
        return data

def redact_url(url: str) -> str:
    """Drops the query string, which carries the API key."""
    parts = urlsplit(url)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, "", ""))

def build_prompt(content: ExtractedContent, query: Query, inline_images: bool = True) -> str:
    """Combines the instruction, the PDF text, the image references and the user's request."""
    images = "\n".join(content.image_references(inline=inline_images))

    if query.mode == QueryMode.SUMMARY:
        return f"""Shorten and summarize the following PDF content, including image references, while retaining its meaning.
Text: {content.text}

Images (base64 or references): {images}

Give a concise summary with a maximum of {query.word_limit} words. Provide only one answer."""

    return f"""You are an assistant that answers questions only based on the PDF content provided.
Do not answer if the question is unrelated to the PDF.

PDF Text: {content.text}

Images (base64 or references): {images}

User Question: {query.question}

If the question is related to the PDF, give a clear answer.
If the question is unrelated, respond with: {NOT_RELATED_ANSWER}"""

def build_payload(prompt: str) -> Dict[str, Any]:
    return {"contents": [{"parts": [{"text": prompt}]}]}

def parse_response(data: Dict[str, Any], fallback: str) -> str:
    """
    Pulls the answer out of candidates[0].content.parts[0].text.
    An error object raises BackendError; a missing answer is not an error and yields `fallback`.
    """
    error = data.get("error")
    if error:
        message = error.get("message") if isinstance(error, dict) else str(error)
        raise BackendError(message or "Unknown error from text generation service.")

    try:
        text = data["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError):
        text = None
    return text or fallback

class QueryDispatcher:
    """Sends exactly one request per dispatch; there is no retry."""

    def __init__(self, backend: TextGenerationBackend, inline_images: bool = GEMINI_INLINE_IMAGES):
        self.backend = backend
        self.inline_images = inline_images

    async def dispatch(self, content: ExtractedContent, query: Query) -> str:
        if content is None or content.is_empty:
            raise NoDocument()
        if query.mode == QueryMode.QUESTION and not query.question.strip():
            raise EmptyQuery()

        prompt = build_prompt(content, query, inline_images=self.inline_images)
        fallback = FALLBACK_SUMMARY if query.mode == QueryMode.SUMMARY else FALLBACK_ANSWER

        try:
            data = await self.backend.generate(build_payload(prompt))
            return parse_response(data, fallback)
        except BackendError as e:
            logger.warning("Text generation service reported an error: %s", e.message)
            raise
        except TransportFailure as e:
            logger.warning("%s", e)
            raise
