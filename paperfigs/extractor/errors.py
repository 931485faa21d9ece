from __future__ import annotations


class FigureExtractionError(RuntimeError):
    """Base class for failures that abort a whole document parse."""


class OcrPageError(FigureExtractionError):
    """Raised when an OCR-only page is found and OCR'd input is not allowed."""

    def __init__(self, page_number: int):
        super().__init__(f"Page {page_number} looks like a scanned (OCR-only) page and allow_ocr is off")
        self.page_number = page_number


class PageNumberingError(FigureExtractionError):
    """Page numbers from the page source are not contiguous from 0."""


class ExtractionCancelled(FigureExtractionError):
    """The caller's cancellation token fired while pages were being processed."""
