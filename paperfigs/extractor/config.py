from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ..config import Settings, load_settings


@dataclass(frozen=True)
class ExtractorConfig:
    """
    Behaviour flags plus heuristic multipliers for figure extraction.

    Every spatial multiplier below is in units of the document's median
    line spacing, so thresholds follow the paper's own typography instead
    of absolute page coordinates.
    """

    allow_ocr: bool = False
    ignore_white_graphics: bool = True
    detect_section_titles_first: bool = True
    rebuild_paragraphs: bool = True
    workers: int = 1

    # Layout estimation
    min_layout_lines: int = 8  # fewer line-pitch samples than this -> no DocumentLayout

    # Caption detection / building
    caption_margin_k: float = 1.5  # caption must start this close to its column's left margin
    caption_gap_k: float = 1.6  # stop consuming caption lines past this line pitch

    # Graphics clustering / figure merging
    graphics_adjacency_k: float = 0.5
    background_area_ratio: float = 0.9  # regions covering this much of the page are background

    # Figure search
    figure_search_k: float = 25.0  # farthest a caption looks for its graphic

    def validate(self) -> None:
        if self.workers < 1:
            raise ValueError("workers must be >= 1")
        if self.min_layout_lines < 1:
            raise ValueError("min_layout_lines must be >= 1")
        for name in ("caption_margin_k", "caption_gap_k", "graphics_adjacency_k", "figure_search_k"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be >= 0")
        if not (0.0 < self.background_area_ratio <= 1.0):
            raise ValueError("background_area_ratio must be within (0, 1]")

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "ExtractorConfig":
        s = settings or load_settings()
        return cls(
            allow_ocr=s.allow_ocr,
            ignore_white_graphics=s.ignore_white_graphics,
            detect_section_titles_first=s.detect_section_titles_first,
            rebuild_paragraphs=s.rebuild_paragraphs,
            workers=max(1, s.workers),
        )
