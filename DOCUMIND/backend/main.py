# backend/main.py
from fastapi import FastAPI, UploadFile, File, HTTPException, Depends, Response
from fastapi.middleware.cors import CORSMiddleware
from functools import lru_cache
from typing import Optional
from urllib.parse import quote
import logging

from config import CORS_ORIGINS, LOG_LEVEL, MAX_UPLOAD_BYTES, MAX_UPLOAD_MB
from gemini import GeminiBackend, QueryDispatcher, NoDocument, EmptyQuery, BackendError, TransportFailure
from models import (
    AnswerResponse, DocumentUploadResponse, LandingResponse, QuestionRequest, SessionCreateRequest,
    SessionMode, SessionSnapshot, SummarizeRequest, SummaryResponse,
)
from pdf_extractor import PdfExtractor, PyMuPDFExtractor, ParseFailure, UnsupportedFileType, validate_filename
from session import DocumentSession, StaleResult, WrongMode, sessions_store

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

VERSION = "1.0.0"

app = FastAPI(
    title="DocuMind",
    description="Backend API for chatting with and summarizing PDF documents using Gemini.",
    version=VERSION
)

# CORS configuration for JavaScript frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@lru_cache()
def get_extractor() -> PdfExtractor:
    return PyMuPDFExtractor()

@lru_cache()
def get_dispatcher() -> QueryDispatcher:
    return QueryDispatcher(GeminiBackend())

def get_session(session_id: str) -> DocumentSession:
    if session_id not in sessions_store:
        raise HTTPException(status_code=404, detail="Session not found.")
    return sessions_store[session_id]

@app.get("/", response_model=LandingResponse)
async def landing():
    """Lists the two screens: a single-shot summarizer and a multi-turn chat."""
    return LandingResponse(
        name="DocuMind",
        version=VERSION,
        screens={"summarize": SessionMode.SUMMARIZE.value, "chatwithpdf": SessionMode.CHAT.value}
    )

@app.get("/healthz")
async def healthz():
    return {"status": "ok", "version": VERSION}

@app.post("/sessions/", response_model=SessionSnapshot, status_code=201)
async def create_session(request: Optional[SessionCreateRequest] = None):
    session = DocumentSession(mode=request.mode if request else SessionMode.CHAT)
    sessions_store[session.id] = session
    return session.snapshot()

@app.get("/sessions/{session_id}", response_model=SessionSnapshot)
async def get_session_details(session: DocumentSession = Depends(get_session)):
    return session.snapshot()

@app.delete("/sessions/{session_id}", status_code=204)
async def delete_session(session: DocumentSession = Depends(get_session)):
    session.reset()
    sessions_store.pop(session.id, None)
    return Response(status_code=204)

@app.post("/sessions/{session_id}/upload-document/", response_model=DocumentUploadResponse)
async def upload_document(
    file: UploadFile = File(...),
    session: DocumentSession = Depends(get_session),
    extractor: PdfExtractor = Depends(get_extractor),
):
    """
    Uploads a PDF, extracts its page text and page images, and keeps them on the session.
    Any previous document, transcript or summary is discarded.
    """
    filename = file.filename or ""
    # Every rejected submission clears the session, the same as a rejected extension
    try:
        validate_filename(filename)
    except UnsupportedFileType as e:
        session.reset()
        raise HTTPException(status_code=400, detail=str(e))

    too_large = HTTPException(status_code=413, detail=f"File exceeds the {MAX_UPLOAD_MB} MB upload limit.")
    if file.size is not None and file.size > MAX_UPLOAD_BYTES:
        session.reset()
        raise too_large
    # Read at most one byte past the cap
    file_content = await file.read(MAX_UPLOAD_BYTES + 1)
    if len(file_content) > MAX_UPLOAD_BYTES:
        session.reset()
        raise too_large

    try:
        content = await session.upload(filename, file_content, extractor)
    except UnsupportedFileType as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ParseFailure as e:
        logger.warning("Extraction of %s failed: %s", filename, e)
        raise HTTPException(status_code=422, detail=str(e))
    except StaleResult as e:
        raise HTTPException(status_code=409, detail=str(e))

    return DocumentUploadResponse(
        session_id=session.id,
        filename=filename,
        message="Document uploaded and processed successfully.",
        page_count=content.page_count
    )

@app.get("/sessions/{session_id}/document")
async def get_document(session: DocumentSession = Depends(get_session)):
    """Returns the uploaded PDF for the viewer."""
    if session.pdf_bytes is None:
        raise HTTPException(status_code=404, detail="No document uploaded.")
    return Response(
        content=session.pdf_bytes,
        media_type="application/pdf",
        # RFC 5987 form; header values must stay latin-1
        headers={"Content-Disposition": f"inline; filename*=UTF-8''{quote(session.filename or 'document.pdf')}"}
    )

@app.get("/sessions/{session_id}/pages/{page}/image")
async def get_page_image(page: int, session: DocumentSession = Depends(get_session)):
    images = session.content.page_images
    if page < 1 or page > len(images):
        raise HTTPException(status_code=404, detail="Page not found.")
    return Response(content=images[page - 1], media_type="image/png")

@app.post("/sessions/{session_id}/query-document/", response_model=AnswerResponse)
async def query_document_endpoint(
    request: QuestionRequest,
    session: DocumentSession = Depends(get_session),
    dispatcher: QueryDispatcher = Depends(get_dispatcher),
):
    """
    Answers a natural language question based on the session's document.
    Failed attempts are still recorded in the transcript.
    """
    try:
        answer = await session.ask(request.question, dispatcher)
    except WrongMode as e:
        raise HTTPException(status_code=400, detail=str(e))
    except NoDocument as e:
        raise HTTPException(status_code=409, detail=str(e))
    except EmptyQuery as e:
        raise HTTPException(status_code=400, detail=str(e))
    except (BackendError, TransportFailure) as e:
        raise HTTPException(status_code=502, detail=f"Failed to answer question: {e}")
    except StaleResult as e:
        raise HTTPException(status_code=409, detail=str(e))

    return AnswerResponse(
        session_id=session.id,
        question=request.question,
        answer=answer
    )

@app.post("/sessions/{session_id}/summarize-document/", response_model=SummaryResponse)
async def summarize_document_endpoint(
    request: SummarizeRequest,
    session: DocumentSession = Depends(get_session),
    dispatcher: QueryDispatcher = Depends(get_dispatcher),
):
    """
    Summarizes the session's document within the requested word limit.
    The new summary replaces the previous one.
    """
    try:
        summary = await session.summarize(request.word_limit, dispatcher)
    except WrongMode as e:
        raise HTTPException(status_code=400, detail=str(e))
    except NoDocument as e:
        raise HTTPException(status_code=409, detail=str(e))
    except (BackendError, TransportFailure) as e:
        raise HTTPException(status_code=502, detail=f"Failed to summarize document: {e}")
    except StaleResult as e:
        raise HTTPException(status_code=409, detail=str(e))

    return SummaryResponse(
        session_id=session.id,
        word_limit=request.word_limit,
        summary=summary
    )


if __name__ == "__main__":
    import uvicorn
    # Run the FastAPI application
    # You can access the API documentation at http://127.0.0.1:8000/docs
    uvicorn.run(app, host="127.0.0.1", port=8000)
