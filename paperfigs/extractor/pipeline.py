from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Iterable, Optional, Sequence

from .captions import build_captions, find_captions, group_by_page
from .config import ExtractorConfig
from .errors import ExtractionCancelled, OcrPageError, PageNumberingError
from .figures import locate_figures
from .graphics import extract_graphics, is_ocr_page
from .layout_analysis import estimate_document_layout
from .models import (
    CaptionCandidate,
    Document,
    DocumentLayout,
    DocumentSection,
    FailedCaption,
    Figure,
    FiguresInDocument,
    Page,
    PageWithFigures,
    PdfText,
    TextBlock,
    TextKind,
)
from .paragraphs import rebuild_paragraphs
from .regions import classify_regions
from .sections import build_sectioned_text, sections_without_layout, strip_section_titles
from .visual_logger import VisualLogger

logger = logging.getLogger(__name__)


class CancellationToken:
    """Cooperative cancellation flag, checked once per page."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


def check_page_numbers(numbers: Iterable[int]) -> None:
    """Page numbers must be exactly 0..N-1, each once."""
    ordered = sorted(numbers)
    for expected, got in enumerate(ordered):
        if got != expected:
            raise PageNumberingError(
                f"Page numbers must be consecutive from 0; expected {expected}, found {got} in {ordered}"
            )


@dataclass
class DocumentContent:
    """Fully parsed document, including the non-figure text the stages produced."""

    layout: Optional[DocumentLayout]
    pages_with_figures: list[PageWithFigures] = field(default_factory=list)
    pages_without_figures: list[Page] = field(default_factory=list)

    def __post_init__(self) -> None:
        check_page_numbers(
            [p.page_number for p in self.pages_with_figures]
            + [p.page_number for p in self.pages_without_figures]
        )

    @property
    def pages(self) -> list[Page]:
        text_pages = [p.text_page or p.page for p in self.pages_with_figures] + list(self.pages_without_figures)
        return sorted(text_pages, key=lambda p: p.page_number)

    @property
    def figures(self) -> list[Figure]:
        return [f for p in self.pages_with_figures for f in p.figures]

    @property
    def failed_captions(self) -> list[FailedCaption]:
        return [f for p in self.pages_with_figures for f in p.failed_captions]


class FigureExtractor:
    def __init__(self, cfg: Optional[ExtractorConfig] = None):
        self.cfg = cfg or ExtractorConfig.from_settings()
        self.cfg.validate()

    def get_figures(
        self,
        pages: Sequence[Page],
        page_filter: Optional[Iterable[int]] = None,
        visual_logger: Optional[VisualLogger] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> list[Figure]:
        return self._parse_document(pages, page_filter, visual_logger, cancel_token).figures

    def get_figures_with_errors(
        self,
        pages: Sequence[Page],
        page_filter: Optional[Iterable[int]] = None,
        visual_logger: Optional[VisualLogger] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> FiguresInDocument:
        content = self._parse_document(pages, page_filter, visual_logger, cancel_token)
        return FiguresInDocument(figures=content.figures, failed_captions=content.failed_captions)

    def get_figures_with_text(
        self,
        pages: Sequence[Page],
        page_filter: Optional[Iterable[int]] = None,
        visual_logger: Optional[VisualLogger] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> Document:
        content = self._parse_document(pages, page_filter, visual_logger, cancel_token)
        return Document(
            figures=content.figures,
            abstract_text=self._get_abstract(content),
            sections=self._get_sections(content),
        )

    def _get_sections(self, content: DocumentContent) -> list[DocumentSection]:
        if content.layout is None:
            return sections_without_layout(content.pages_without_figures)
        text = content.pages
        if not self.cfg.detect_section_titles_first:
            text = strip_section_titles(text, content.layout)
        return build_sectioned_text(text, content.layout)

    @staticmethod
    def _get_abstract(content: DocumentContent) -> Optional[PdfText]:
        for page in content.pages:
            blocks = page.abstract_blocks
            if blocks:
                lines = tuple(ln for b in blocks for ln in b.lines)
                return PdfText(paragraph=TextBlock(kind=TextKind.ABSTRACT, lines=lines), page_number=page.page_number)
        return None

    def _check_ocr(self, pages: Sequence[Page], page_filter: Optional[set[int]]) -> None:
        if self.cfg.allow_ocr:
            return
        for page in pages:
            if page_filter is not None and page.page_number not in page_filter:
                continue
            if is_ocr_page(page, self.cfg):
                raise OcrPageError(page.page_number)

    def _parse_document(
        self,
        pages: Sequence[Page],
        page_filter: Optional[Iterable[int]],
        visual_logger: Optional[VisualLogger],
        cancel_token: Optional[CancellationToken],
    ) -> DocumentContent:
        wanted = set(page_filter) if page_filter is not None else None
        pages = sorted(pages, key=lambda p: p.page_number)
        check_page_numbers(p.page_number for p in pages)
        self._check_ocr(pages, wanted)

        layout = estimate_document_layout(pages, self.cfg)
        if layout is None:
            logger.debug("Not enough information to build DocumentLayout, not detecting figures")
            return DocumentContent(layout=None, pages_without_figures=list(pages))

        if self.cfg.rebuild_paragraphs:
            pages = rebuild_paragraphs(pages, layout)
        if self.cfg.detect_section_titles_first:
            pages = strip_section_titles(pages, layout)

        candidates = find_captions(pages, layout, self.cfg, page_filter=wanted)
        by_page = group_by_page(candidates)
        page_lookup = {p.page_number: p for p in pages}
        tasks = [(page_lookup[n], by_page[n]) for n in sorted(by_page)]
        with_figures = self._run_pages(tasks, layout, visual_logger, cancel_token)

        processed = {id(p) for p, _ in tasks}
        others = [p for p in pages if id(p) not in processed]
        return DocumentContent(layout=layout, pages_with_figures=with_figures, pages_without_figures=others)

    def _run_pages(
        self,
        tasks: list[tuple[Page, list[CaptionCandidate]]],
        layout: DocumentLayout,
        visual_logger: Optional[VisualLogger],
        cancel_token: Optional[CancellationToken],
    ) -> list[PageWithFigures]:
        if self.cfg.workers <= 1 or len(tasks) <= 1:
            return [self._process_page(p, c, layout, visual_logger, cancel_token) for p, c in tasks]

        results: list[PageWithFigures] = []
        with ThreadPoolExecutor(max_workers=self.cfg.workers) as executor:
            futures = [
                executor.submit(self._process_page, p, c, layout, visual_logger, cancel_token)
                for p, c in tasks
            ]
            try:
                for fut in as_completed(futures):
                    results.append(fut.result())
            except BaseException:
                for fut in futures:
                    fut.cancel()
                raise
        # Completion order is arbitrary; callers get page order.
        return sorted(results, key=lambda p: p.page_number)

    def _process_page(
        self,
        page: Page,
        candidates: list[CaptionCandidate],
        layout: DocumentLayout,
        visual_logger: Optional[VisualLogger],
        cancel_token: Optional[CancellationToken],
    ) -> PageWithFigures:
        if cancel_token is not None and cancel_token.cancelled:
            raise ExtractionCancelled(f"Cancelled before page {page.page_number}")
        logger.debug("On page %d", page.page_number)
        with_graphics = extract_graphics(
            page,
            allow_ocr=self.cfg.allow_ocr,
            ignore_white_graphics=self.cfg.ignore_white_graphics,
            median_line_spacing=layout.median_line_spacing,
            cfg=self.cfg,
            visual_logger=visual_logger,
        )
        with_captions = build_captions(candidates, with_graphics, layout.median_line_spacing, self.cfg)
        if visual_logger is not None:
            visual_logger.log_pages_with_caption(with_captions)
        with_regions = classify_regions(with_captions, layout)
        if visual_logger is not None:
            visual_logger.log_regions(with_regions)
        result = locate_figures(with_regions, layout, self.cfg, visual_logger)
        if result.failed_captions:
            logger.warning(
                "Page %d: %d caption(s) without a figure", page.page_number, len(result.failed_captions)
            )
        return result
