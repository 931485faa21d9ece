from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional, Sequence

from .config import ExtractorConfig
from .errors import OcrPageError
from .geometry_utils import BBox, _contains, _rect_area, _rect_intersection_area, _rects_touch, _union_rect
from .models import (
    RGB,
    DrawingPrimitive,
    GraphicsRegion,
    Page,
    PageWithGraphics,
    PrimitiveKind,
)

if TYPE_CHECKING:
    from .visual_logger import VisualLogger

logger = logging.getLogger(__name__)


def _same_color(a: Optional[RGB], b: RGB, eps: float = 0.02) -> bool:
    if a is None:
        return False
    return all(abs(float(x) - float(y)) <= eps for x, y in zip(a, b))


def _page_rect(page: Page) -> BBox:
    return (0.0, 0.0, float(page.width), float(page.height))


def _is_background_fill(prim: DrawingPrimitive, page: Page) -> bool:
    return (
        prim.kind == PrimitiveKind.VECTOR
        and prim.stroke is None
        and _same_color(prim.fill, page.background)
    )


def _covers_page(bbox: BBox, page: Page, ratio: float) -> bool:
    return page.area > 0 and _rect_intersection_area(bbox, _page_rect(page)) >= page.area * ratio


def is_ocr_page(page: Page, cfg: Optional[ExtractorConfig] = None) -> bool:
    """
    A scanned page: one raster image over (nearly) the whole page, no vector
    content of its own, and no visible text geometry (at most an invisible
    OCR text layer).
    """
    cfg = cfg or ExtractorConfig()
    full_page_images = [
        p for p in page.primitives
        if p.kind == PrimitiveKind.IMAGE and _covers_page(p.bbox, page, cfg.background_area_ratio)
    ]
    if not full_page_images:
        return False
    vectors = [
        p for p in page.primitives
        if p.kind == PrimitiveKind.VECTOR and not _is_background_fill(p, page) and _rect_area(p.bbox) > 0.0
    ]
    if vectors:
        return False
    lines = [ln for b in page.text_blocks for ln in b.lines if ln.text.strip()]
    if not lines:
        return True
    visible = sum(1 for ln in lines if not ln.invisible)
    return visible * 2 < len(lines)


def _usable_primitives(page: Page, ignore_white_graphics: bool) -> list[DrawingPrimitive]:
    out: list[DrawingPrimitive] = []
    for p in page.primitives:
        x0, y0, x1, y1 = p.bbox
        if x1 < x0 or y1 < y0 or (x1 == x0 and y1 == y0):
            continue
        if p.kind == PrimitiveKind.VECTOR and p.fill is None and p.stroke is None:
            # Clipping paths and other paint-less geometry.
            continue
        if ignore_white_graphics and _is_background_fill(p, page):
            continue
        out.append(p)
    return out


def _merge_touching_rects(
    items: list[tuple[BBox, frozenset[PrimitiveKind]]], tol: float
) -> list[tuple[BBox, frozenset[PrimitiveKind]]]:
    """
    Merge boxes that touch or overlap within `tol` until nothing changes.
    Running to a fixpoint makes the merge idempotent.
    """
    merged = list(items)
    changed = True
    while changed:
        changed = False
        out: list[tuple[BBox, frozenset[PrimitiveKind]]] = []
        used = [False] * len(merged)
        for i, (cur, kinds) in enumerate(merged):
            if used[i]:
                continue
            used[i] = True
            grew = True
            while grew:
                grew = False
                for j in range(i + 1, len(merged)):
                    if used[j]:
                        continue
                    other, other_kinds = merged[j]
                    if _rects_touch(cur, other, tol):
                        cur = _union_rect([cur, other])
                        kinds = kinds | other_kinds
                        used[j] = True
                        changed = grew = True
            out.append((cur, kinds))
        merged = out
    return sorted(merged, key=lambda it: (it[0][1], it[0][0], it[0][3], it[0][2]))


def _to_region(bbox: BBox, kinds: frozenset[PrimitiveKind], page: Page, cfg: ExtractorConfig) -> GraphicsRegion:
    return GraphicsRegion(
        bbox=bbox,
        page_number=page.page_number,
        origin=PrimitiveKind.IMAGE if PrimitiveKind.IMAGE in kinds else PrimitiveKind.VECTOR,
        is_background=_covers_page(bbox, page, cfg.background_area_ratio),
    )


def cluster_graphics(regions: Sequence[GraphicsRegion], tol: float) -> list[GraphicsRegion]:
    """Re-cluster already extracted regions; a clustered set comes back unchanged."""
    if not regions:
        return []
    by_bbox = [(r.bbox, frozenset([r.origin])) for r in regions]
    out: list[GraphicsRegion] = []
    for bbox, kinds in _merge_touching_rects(by_bbox, tol):
        members = [r for r in regions if _contains(bbox, r.bbox)]
        out.append(
            GraphicsRegion(
                bbox=bbox,
                page_number=regions[0].page_number,
                origin=PrimitiveKind.IMAGE if PrimitiveKind.IMAGE in kinds else PrimitiveKind.VECTOR,
                is_background=any(r.is_background for r in members),
            )
        )
    return out


def extract_graphics(
    page: Page,
    *,
    allow_ocr: bool,
    ignore_white_graphics: bool,
    median_line_spacing: float,
    cfg: Optional[ExtractorConfig] = None,
    visual_logger: Optional["VisualLogger"] = None,
) -> PageWithGraphics:
    """
    Cluster the page's drawing primitives into graphics regions.

    Raises OcrPageError for a scanned page when `allow_ocr` is off.
    """
    cfg = cfg or ExtractorConfig()
    if not allow_ocr and is_ocr_page(page, cfg):
        raise OcrPageError(page.page_number)

    prims = _usable_primitives(page, ignore_white_graphics)
    tol = cfg.graphics_adjacency_k * median_line_spacing
    clusters = _merge_touching_rects([(p.bbox, frozenset([p.kind])) for p in prims], tol)
    graphics = [_to_region(bbox, kinds, page, cfg) for bbox, kinds in clusters]
    logger.debug(
        "Page %d: %d primitives -> %d graphics regions", page.page_number, len(prims), len(graphics)
    )

    result = PageWithGraphics(page=page, graphics=graphics)
    if visual_logger is not None:
        visual_logger.log_extractions(result)
    return result
