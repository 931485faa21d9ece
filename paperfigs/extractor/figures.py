from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional

from .config import ExtractorConfig
from .geometry_utils import BBox, _overlap_1d, _rects_touch, _union_rect, _vertical_distance
from .heuristics import _looks_like_table_block
from .models import (
    Caption,
    DocumentLayout,
    FailedCaption,
    FailureReason,
    Figure,
    FigureKind,
    Page,
    PageWithFigures,
    PageWithRegions,
    Region,
    RegionKind,
    TextBlock,
    TextLine,
)

if TYPE_CHECKING:
    from .visual_logger import VisualLogger

logger = logging.getLogger(__name__)

_ABOVE = "above"
_BELOW = "below"

# Search order per kind: figures sit above their captions, tables below.
_DIRECTION_RANK = {
    FigureKind.FIGURE: {_ABOVE: 0, _BELOW: 1},
    FigureKind.TABLE: {_BELOW: 0, _ABOVE: 1},
}


def _direction(region: BBox, caption: BBox, tol: float) -> Optional[str]:
    if region[3] <= caption[1] + tol:
        return _ABOVE
    if region[1] >= caption[3] - tol:
        return _BELOW
    return None


def _blocked(region: BBox, caption: BBox, direction: str, blockers: list[Region], tol: float) -> bool:
    """True when text or another caption sits between `region` and `caption`."""
    if direction == _ABOVE:
        lo, hi = region[3], caption[1]
    else:
        lo, hi = caption[3], region[1]
    x0, x1 = max(region[0], caption[0]), min(region[2], caption[2])
    if x1 <= x0:
        x0, x1 = caption[0], caption[2]
    for b in blockers:
        if b.bbox == caption:
            continue
        if b.bbox[1] >= lo - tol and b.bbox[3] <= hi + tol and _overlap_1d(b.bbox[0], b.bbox[2], x0, x1) > 0.0:
            return True
    return False


def _looks_tabular(region: Region, row_tol: float) -> bool:
    if _looks_like_table_block([ln.text for ln in region.lines]):
        return True
    rows: list[list[TextLine]] = []
    for ln in sorted(region.lines, key=lambda l: (l.bbox[1], l.bbox[0])):
        if rows and abs(ln.bbox[1] - rows[-1][0].bbox[1]) <= row_tol:
            rows[-1].append(ln)
        else:
            rows.append([ln])
    return len(rows) >= 3 and sum(1 for r in rows if len(r) >= 2) >= 2


def _best_candidate(
    caption: Caption,
    regions: list[Region],
    taken: set[int],
    blockers: list[Region],
    layout: DocumentLayout,
    cfg: ExtractorConfig,
) -> Optional[int]:
    spacing = layout.median_line_spacing
    tol = 0.5 * spacing
    max_dist = cfg.figure_search_k * spacing
    col_x0, col_x1 = layout.column_range(caption.bbox)
    ranks = _DIRECTION_RANK[caption.candidate.kind]

    best: Optional[tuple[int, float, float, float]] = None
    best_i: Optional[int] = None
    for i, r in enumerate(regions):
        if i in taken:
            continue
        if _overlap_1d(r.bbox[0], r.bbox[2], col_x0, col_x1) <= 0.0:
            continue
        direction = _direction(r.bbox, caption.bbox, tol)
        if direction is None:
            continue
        dist = _vertical_distance(r.bbox, caption.bbox)
        if dist > max_dist:
            continue
        if _blocked(r.bbox, caption.bbox, direction, blockers, tol):
            continue
        x_ov = _overlap_1d(r.bbox[0], r.bbox[2], caption.bbox[0], caption.bbox[2])
        key = (ranks[direction], dist, -x_ov, r.bbox[0])
        if best is None or key < best:
            best, best_i = key, i
    return best_i


def _grow_with_neighbours(seed: int, regions: list[Region], taken: set[int], tol: float) -> list[int]:
    chosen = [seed]
    union = regions[seed].bbox
    grew = True
    while grew:
        grew = False
        for i, r in enumerate(regions):
            if i in taken or i in chosen:
                continue
            if _rects_touch(union, r.bbox, tol):
                chosen.append(i)
                union = _union_rect([union, r.bbox])
                grew = True
    return chosen


def _residual_text_page(page: PageWithRegions, removed: set[TextLine]) -> Page:
    blocks: list[TextBlock] = []
    for block in page.page.text_blocks:
        kept = tuple(ln for ln in block.lines if ln not in removed)
        if kept:
            blocks.append(block if len(kept) == len(block.lines) else block.model_copy(update={"lines": kept}))
    return page.page.model_copy(update={"text_blocks": tuple(blocks)})


def locate_figures(
    page: PageWithRegions,
    layout: DocumentLayout,
    cfg: Optional[ExtractorConfig] = None,
    visual_logger: Optional["VisualLogger"] = None,
) -> PageWithFigures:
    """
    Match each caption on the page to the graphic it describes.

    Captions are handled column by column, top to bottom, and claim regions
    first-come; a caption left without a region is reported as a FailedCaption.
    """
    cfg = cfg or ExtractorConfig()
    spacing = layout.median_line_spacing
    graphics = [r for r in page.regions if r.kind == RegionKind.GRAPHIC]
    tables = [r for r in page.regions if r.kind == RegionKind.TEXT and _looks_tabular(r, 0.5 * spacing)]
    blockers = [r for r in page.regions if r.kind in (RegionKind.TEXT, RegionKind.CAPTION)]
    taken_graphics: set[int] = set()
    taken_tables: set[int] = set()

    figures: list[Figure] = []
    failed: list[FailedCaption] = list(page.failed_captions)

    def reading_key(i: int) -> tuple[int, float, float]:
        bbox = page.captions[i].bbox
        col = layout.column_index(bbox)
        return (col if col is not None else 0, bbox[1], bbox[0])

    for ci in sorted(range(len(page.captions)), key=reading_key):
        caption = page.captions[ci]
        cand = caption.candidate
        boxes: list[BBox] = []

        gi = _best_candidate(caption, graphics, taken_graphics, blockers, layout, cfg)
        if gi is not None:
            chosen = _grow_with_neighbours(gi, graphics, taken_graphics, cfg.graphics_adjacency_k * spacing)
            taken_graphics.update(chosen)
            boxes = [graphics[i].bbox for i in chosen]
        elif cand.kind == FigureKind.TABLE:
            ti = _best_candidate(caption, tables, taken_tables, blockers, layout, cfg)
            if ti is not None:
                taken_tables.add(ti)
                boxes = [tables[ti].bbox]

        if not boxes:
            logger.debug("Page %d: no graphic found for %s", page.page_number, cand.label)
            failed.append(
                FailedCaption(candidate=cand, reason=FailureReason.NO_GRAPHIC, text=caption.text, bbox=caption.bbox)
            )
            continue
        figures.append(
            Figure(
                kind=cand.kind,
                name=cand.name,
                number=cand.number,
                page_number=page.page_number,
                caption=caption.text,
                caption_boundary=caption.bbox,
                region_boundaries=boxes,
            )
        )

    removed: set[TextLine] = set()
    for r in page.regions:
        if r.kind in (RegionKind.CAPTION, RegionKind.GRAPHIC):
            removed.update(r.lines)
    for i in taken_tables:
        removed.update(tables[i].lines)

    if visual_logger is not None:
        visual_logger.log_figures(page.page_number, figures)
    return PageWithFigures(
        page=page.page,
        figures=figures,
        failed_captions=failed,
        text_page=_residual_text_page(page, removed),
    )
