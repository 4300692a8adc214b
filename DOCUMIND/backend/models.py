# backend/models.py
import base64
from enum import Enum
from pydantic import BaseModel, Field
from typing import List, Optional, Dict

# --- Domain values ---

class ExtractedContent(BaseModel):
    """Page texts and rendered page images of one PDF, both in page order."""
    page_texts: List[str] = []
    page_images: List[bytes] = [] # PNG bytes, one per page

    @property
    def page_count(self) -> int:
        return len(self.page_texts)

    @property
    def is_empty(self) -> bool:
        return not self.page_texts

    @property
    def text(self) -> str:
        # Newline is the page separator; every page, including the last, is terminated by one
        return "".join(page_text + "\n" for page_text in self.page_texts)

    def image_references(self, inline: bool = True) -> List[str]:
        if not inline:
            return [f"page-{number}.png" for number in range(1, len(self.page_images) + 1)]
        return [
            "data:image/png;base64," + base64.b64encode(image).decode("utf-8")
            for image in self.page_images
        ]

class QueryMode(str, Enum):
    QUESTION = "question"
    SUMMARY = "summary"

class Query(BaseModel):
    mode: QueryMode
    question: str = ""
    word_limit: int = 100

    @classmethod
    def ask(cls, question: str) -> "Query":
        return cls(mode=QueryMode.QUESTION, question=question)

    @classmethod
    def summarize(cls, word_limit: int) -> "Query":
        return cls(mode=QueryMode.SUMMARY, word_limit=word_limit)

class SessionMode(str, Enum):
    CHAT = "chat"
    SUMMARIZE = "summarize"

class SessionState(str, Enum):
    IDLE = "idle"
    EXTRACTING = "extracting"
    READY = "ready"
    DISPATCHING = "dispatching"

class TranscriptEntry(BaseModel):
    question: str
    answer: str
    ok: bool = True # False marks a placeholder for a failed attempt

# --- API request / response bodies ---

class SessionCreateRequest(BaseModel):
    mode: SessionMode = SessionMode.CHAT

class SessionSnapshot(BaseModel):
    session_id: str
    mode: SessionMode
    state: SessionState
    filename: Optional[str] = None
    page_count: int = 0
    transcript: List[TranscriptEntry] = []
    summary: Optional[str] = None

class DocumentUploadResponse(BaseModel):
    session_id: str
    filename: str
    message: str
    page_count: int

class QuestionRequest(BaseModel):
    question: str

class AnswerResponse(BaseModel):
    session_id: str
    question: str
    answer: str

class SummarizeRequest(BaseModel):
    word_limit: int = Field(100, ge=1) # Maximum number of words in the summary

class SummaryResponse(BaseModel):
    session_id: str
    word_limit: int
    summary: str

class LandingResponse(BaseModel):
    name: str
    version: str
    screens: Dict[str, str] # Screen name -> session mode to create for it
