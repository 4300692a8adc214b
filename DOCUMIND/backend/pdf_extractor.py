# backend/pdf_extractor.py
import logging
from typing import List, Protocol

import filetype # For robust file type checking
import fitz # Import PyMuPDF

from models import ExtractedContent

logger = logging.getLogger(__name__)

class ExtractionError(Exception):
    """Base class for everything that stops a document from being extracted."""

class UnsupportedFileType(ExtractionError):
    """The upload is not named like a PDF; extraction must not run."""

class ParseFailure(ExtractionError):
    """The payload could not be parsed or one of its pages could not be processed."""

class PdfExtractor(Protocol):
    def extract(self, payload: bytes) -> ExtractedContent: ...

def validate_filename(filename: str) -> None:
    """Raises UnsupportedFileType unless the extension is case-insensitively "pdf"."""
    extension = filename.rsplit(".", 1)[-1].lower() if "." in filename else ""
    if extension != "pdf":
        raise UnsupportedFileType("Only PDF files are allowed.")

class PyMuPDFExtractor:
    """
    Extracts page text and page images with PyMuPDF.
    Pages are processed one after another; a failure on any page discards the whole result.
    """

    def extract(self, payload: bytes) -> ExtractedContent:
        # Use filetype to verify MIME type by inspecting the file content
        kind = filetype.guess(payload)
        if kind is None or kind.mime != "application/pdf":
            raise ParseFailure("File content is not a PDF document.")

        try:
            pdf_document = fitz.open(stream=payload, filetype="pdf")
        except Exception as e:
            raise ParseFailure(f"Could not parse PDF: {e}") from e

        try:
            if pdf_document.needs_pass:
                raise ParseFailure("PDF is encrypted and cannot be read without a password.")
            if pdf_document.page_count == 0:
                raise ParseFailure("PDF has no pages.")

            page_texts: List[str] = []
            page_images: List[bytes] = []
            for page_num in range(pdf_document.page_count):
                try:
                    page = pdf_document.load_page(page_num)
                    page_texts.append(" ".join(self._text_fragments(page)))
                    page_images.append(self._render_png(page))
                except Exception as e:
                    raise ParseFailure(f"Could not process page {page_num + 1}: {e}") from e
        finally:
            pdf_document.close()

        logger.debug("Extracted %d pages", len(page_texts))
        return ExtractedContent(page_texts=page_texts, page_images=page_images)

    @staticmethod
    def _text_fragments(page: "fitz.Page") -> List[str]:
        fragments = []
        for block in page.get_text("dict")["blocks"]:
            if block.get("type") != 0: # Image blocks carry no text
                continue
            for line in block["lines"]:
                for span in line["spans"]:
                    fragments.append(span["text"])
        return fragments

    @staticmethod
    def _render_png(page: "fitz.Page") -> bytes:
        # Identity matrix renders at the page's natural size (scale 1.0)
        pix = page.get_pixmap(matrix=fitz.Identity, alpha=False)
        return pix.tobytes("png")
