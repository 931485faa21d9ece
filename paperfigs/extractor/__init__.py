from .config import ExtractorConfig
from .errors import ExtractionCancelled, FigureExtractionError, OcrPageError, PageNumberingError
from .models import Document, DocumentSection, FailedCaption, Figure, FiguresInDocument, Page
from .pipeline import CancellationToken, FigureExtractor
from .visual_logger import LoggingVisualLogger, VisualLogger

__all__ = [
    "FigureExtractor",
    "ExtractorConfig",
    "CancellationToken",
    "VisualLogger",
    "LoggingVisualLogger",
    "Page",
    "Figure",
    "FailedCaption",
    "FiguresInDocument",
    "Document",
    "DocumentSection",
    "FigureExtractionError",
    "OcrPageError",
    "PageNumberingError",
    "ExtractionCancelled",
]
