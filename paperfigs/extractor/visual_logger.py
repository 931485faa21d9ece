from __future__ import annotations

import logging
from typing import Sequence

from .models import Figure, PageWithCaptions, PageWithGraphics, PageWithRegions, RegionKind


class VisualLogger:
    """
    Side channel for inspecting intermediate per-page results.

    Methods are called from worker threads when pages run in parallel.
    Implementations must not mutate what they receive; nothing they do
    feeds back into extraction.
    """

    def log_extractions(self, page: PageWithGraphics) -> None:
        pass

    def log_pages_with_caption(self, page: PageWithCaptions) -> None:
        pass

    def log_regions(self, page: PageWithRegions) -> None:
        pass

    def log_figures(self, page_number: int, figures: Sequence[Figure]) -> None:
        pass


class LoggingVisualLogger(VisualLogger):
    """Writes a one-line summary of every stage through `logging`."""

    def __init__(self, logger: logging.Logger | None = None, level: int = logging.INFO):
        self.logger = logger or logging.getLogger("paperfigs.visual")
        self.level = level

    def log_extractions(self, page: PageWithGraphics) -> None:
        self.logger.log(
            self.level,
            "page=%d graphics=%s",
            page.page_number,
            [(g.origin.value, tuple(round(v, 1) for v in g.bbox), g.is_background) for g in page.graphics],
        )

    def log_pages_with_caption(self, page: PageWithCaptions) -> None:
        self.logger.log(
            self.level,
            "page=%d captions=%s failed=%s",
            page.page_number,
            [c.candidate.label for c in page.captions],
            [(f.candidate.label, f.reason.value) for f in page.failed_captions],
        )

    def log_regions(self, page: PageWithRegions) -> None:
        counts = {k.value: 0 for k in RegionKind}
        for r in page.regions:
            counts[r.kind.value] += 1
        self.logger.log(self.level, "page=%d regions=%s", page.page_number, counts)

    def log_figures(self, page_number: int, figures: Sequence[Figure]) -> None:
        self.logger.log(
            self.level,
            "page=%d figures=%s",
            page_number,
            [(f"{f.kind.value} {f.name}", tuple(round(v, 1) for v in f.region_boundary)) for f in figures],
        )
