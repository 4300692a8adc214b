# backend/session.py
import logging
import uuid
from typing import Dict, List, Optional

from fastapi.concurrency import run_in_threadpool

from gemini import QueryDispatcher, DispatchError, BackendError, TransportFailure
from models import (
    ExtractedContent, Query, SessionMode, SessionSnapshot, SessionState, TranscriptEntry,
)
from pdf_extractor import PdfExtractor, ExtractionError, UnsupportedFileType, validate_filename

logger = logging.getLogger(__name__)

FAILED_ANSWER = "Something went wrong. Please try again."
FAILED_SUMMARY = FAILED_ANSWER

class SessionError(Exception):
    """Base class for session level failures."""

class StaleResult(SessionError):
    """The operation finished after something newer replaced the state it was started against."""

class WrongMode(SessionError):
    """The operation does not belong to this session's screen."""

class DocumentSession:
    """
    Owns one document's lifecycle: the uploaded bytes, their extracted content and
    either a question/answer transcript (chat) or the latest summary (summarize).

    State moves IDLE -> EXTRACTING -> READY -> DISPATCHING -> READY. Every upload or
    reset bumps the generation, and work started under an older generation is
    discarded when it completes instead of overwriting newer state.
    """

    def __init__(self, mode: SessionMode = SessionMode.CHAT, session_id: Optional[str] = None):
        self.id = session_id or str(uuid.uuid4())
        self.mode = mode
        self.state = SessionState.IDLE
        self.filename: Optional[str] = None
        self.pdf_bytes: Optional[bytes] = None
        self.content = ExtractedContent()
        self.transcript: List[TranscriptEntry] = []
        self.summary: Optional[str] = None
        self.generation = 0
        self._summary_ticket = 0
        self._in_flight = 0

    def reset(self) -> None:
        self.generation += 1
        self.state = SessionState.IDLE
        self.filename = None
        self.pdf_bytes = None
        self.content = ExtractedContent()
        self.transcript = []
        self.summary = None
        self._in_flight = 0

    async def upload(self, filename: str, payload: bytes, extractor: PdfExtractor) -> ExtractedContent:
        try:
            validate_filename(filename)
        except UnsupportedFileType:
            self.reset()
            raise

        self.reset()
        generation = self.generation
        self.state = SessionState.EXTRACTING
        self.filename = filename
        self.pdf_bytes = payload

        try:
            content = await run_in_threadpool(extractor.extract, payload)
        except ExtractionError:
            if generation == self.generation:
                self.reset()
            raise

        if generation != self.generation:
            logger.info("Discarding extraction of %s: superseded by a newer upload", filename)
            raise StaleResult("A newer upload replaced this document.")

        self.content = content
        self.state = SessionState.READY
        logger.info("Session %s: extracted %d pages from %s", self.id, content.page_count, filename)
        return content

    async def ask(self, question: str, dispatcher: QueryDispatcher) -> str:
        if self.mode != SessionMode.CHAT:
            raise WrongMode("Questions can only be asked in a chat session.")

        try:
            answer = await self._dispatch(Query.ask(question), dispatcher)
        except (BackendError, TransportFailure):
            # Keep the attempt visible in the transcript
            self.transcript.append(TranscriptEntry(question=question, answer=FAILED_ANSWER, ok=False))
            raise

        self.transcript.append(TranscriptEntry(question=question, answer=answer))
        return answer

    async def summarize(self, word_limit: int, dispatcher: QueryDispatcher) -> str:
        if self.mode != SessionMode.SUMMARIZE:
            raise WrongMode("Summaries can only be requested in a summarize session.")

        self._summary_ticket += 1
        ticket = self._summary_ticket
        self.summary = None

        try:
            summary = await self._dispatch(Query.summarize(word_limit), dispatcher)
        except BackendError as e:
            if ticket == self._summary_ticket:
                self.summary = f"Error: {e.message}"
            raise
        except TransportFailure:
            if ticket == self._summary_ticket:
                self.summary = FAILED_SUMMARY
            raise

        if ticket != self._summary_ticket:
            raise StaleResult("A newer summary request superseded this one.")
        self.summary = summary
        return summary

    async def _dispatch(self, query: Query, dispatcher: QueryDispatcher) -> str:
        generation = self.generation
        entered = self.state in (SessionState.READY, SessionState.DISPATCHING)
        if entered:
            self.state = SessionState.DISPATCHING
            self._in_flight += 1

        try:
            result = await dispatcher.dispatch(self.content, query)
        except DispatchError:
            self._finish_dispatch(generation, entered)
            if generation != self.generation:
                raise StaleResult("The document changed while the request was in flight.") from None
            raise

        self._finish_dispatch(generation, entered)
        if generation != self.generation:
            raise StaleResult("The document changed while the request was in flight.")
        return result

    def _finish_dispatch(self, generation: int, entered: bool) -> None:
        if not entered or generation != self.generation:
            return
        self._in_flight -= 1
        if self._in_flight == 0:
            self.state = SessionState.READY

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            session_id=self.id,
            mode=self.mode,
            state=self.state,
            filename=self.filename,
            page_count=self.content.page_count,
            transcript=list(self.transcript),
            summary=self.summary,
        )

# In-memory store for sessions; nothing is persisted
sessions_store: Dict[str, DocumentSession] = {}
