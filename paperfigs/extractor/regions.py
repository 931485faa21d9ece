from __future__ import annotations

import logging
from typing import Optional

from .geometry_utils import (
    BBox,
    _contains,
    _overlap_1d,
    _rect_area,
    _rect_intersection_area,
    _union_rect,
)
from .heuristics import match_caption_start
from .models import DocumentLayout, PageWithCaptions, PageWithRegions, Region, RegionKind, TextLine

logger = logging.getLogger(__name__)

# Higher wins a partial overlap; the loser is split around the winner.
_PRIORITY = {RegionKind.CAPTION: 3, RegionKind.TEXT: 2, RegionKind.GRAPHIC: 1}
_CONTAINED_RATIO = 0.95
_ABSORB_TEXT_RATIO = 0.5
_MAX_RESOLVE_STEPS = 10_000


def _seed_regions(page: PageWithCaptions) -> list[Region]:
    regions: list[Region] = []
    consumed: set[tuple[int, int]] = set()
    for i, cap in enumerate(page.captions):
        block = page.page.text_blocks[cap.candidate.block_index]
        lines = list(block.lines[cap.candidate.line_index:cap.line_end])
        consumed.update((cap.candidate.block_index, li) for li in range(cap.candidate.line_index, cap.line_end))
        regions.append(Region(bbox=cap.bbox, kind=RegionKind.CAPTION, lines=lines, caption_index=i))

    for bi, block in enumerate(page.page.text_blocks):
        run: list = []
        for li, line in enumerate(block.lines):
            if (bi, li) in consumed:
                if run:
                    regions.append(Region(bbox=_union_rect([ln.bbox for ln in run]), kind=RegionKind.TEXT, lines=run))
                run = []
                continue
            if line.text.strip():
                run.append(line)
        if run:
            regions.append(Region(bbox=_union_rect([ln.bbox for ln in run]), kind=RegionKind.TEXT, lines=run))

    for g in page.graphics:
        if g.is_background:
            continue
        regions.append(Region(bbox=g.bbox, kind=RegionKind.GRAPHIC))
    return regions


def _looks_like_caption(region: Region) -> bool:
    return region.kind == RegionKind.TEXT and bool(region.lines) and match_caption_start(region.lines[0].text) is not None


def _merge(a: Region, b: Region, kind: RegionKind) -> Region:
    lines = sorted(a.lines + b.lines, key=lambda ln: (ln.bbox[1], ln.bbox[0]))
    return Region(bbox=_union_rect([a.bbox, b.bbox]), kind=kind, lines=lines)


def _subtract(victim: BBox, keeper: BBox) -> list[BBox]:
    """
    Cut `keeper` out of `victim`.

    Returns up to four disjoint rectangles (top band, bottom band, left and
    right middle pieces) whose union is exactly `victim` minus `keeper`.
    """
    x0, y0, x1, y1 = victim
    iy0, iy1 = max(y0, keeper[1]), min(y1, keeper[3])
    pieces = [
        (x0, y0, x1, iy0),
        (x0, iy1, x1, y1),
        (x0, iy0, min(x1, keeper[0]), iy1),
        (max(x0, keeper[2]), iy0, x1, iy1),
    ]
    return [p for p in pieces if p[2] > p[0] and p[3] > p[1]]


def _split_region(victim: Region, keeper: BBox) -> list[Region]:
    pieces = _subtract(victim.bbox, keeper)
    if not pieces:
        return []
    # Each line goes to the piece holding its centre, else to the largest piece.
    largest = max(range(len(pieces)), key=lambda i: _rect_area(pieces[i]))
    per_piece: list[list[TextLine]] = [[] for _ in pieces]
    for ln in victim.lines:
        cx, cy = (ln.bbox[0] + ln.bbox[2]) / 2, (ln.bbox[1] + ln.bbox[3]) / 2
        idx = next(
            (i for i, p in enumerate(pieces) if p[0] <= cx <= p[2] and p[1] <= cy <= p[3]),
            largest,
        )
        per_piece[idx].append(ln)
    return [
        victim.model_copy(update={"bbox": p, "lines": lines})
        for p, lines in zip(pieces, per_piece)
    ]


def _resolve_pair(a: Region, b: Region) -> list[Region]:
    """Resolve one overlapping pair into disjoint regions."""
    if a.kind == b.kind and a.kind in (RegionKind.TEXT, RegionKind.GRAPHIC):
        return [_merge(a, b, a.kind)]

    pa, pb = _PRIORITY[a.kind], _PRIORITY[b.kind]
    if RegionKind.CAPTION not in (a.kind, b.kind) and not (_looks_like_caption(a) or _looks_like_caption(b)):
        # Containment: the contained region takes the container's classification.
        if _contains(a.bbox, b.bbox, min_ratio=_CONTAINED_RATIO):
            return [_merge(a, b, a.kind)]
        if _contains(b.bbox, a.bbox, min_ratio=_CONTAINED_RATIO):
            return [_merge(a, b, b.kind)]
        # Text mostly inside a graphic is figure text (axis labels, legends).
        text, graphic = (a, b) if a.kind == RegionKind.TEXT else (b, a)
        if _rect_intersection_area(text.bbox, graphic.bbox) >= _rect_area(text.bbox) * _ABSORB_TEXT_RATIO:
            return [_merge(a, b, RegionKind.GRAPHIC)]

    if _looks_like_caption(a) and b.kind != RegionKind.CAPTION:
        pa = _PRIORITY[RegionKind.CAPTION]
    if _looks_like_caption(b) and a.kind != RegionKind.CAPTION:
        pb = _PRIORITY[RegionKind.CAPTION]
    keeper, victim = (a, b) if pa >= pb else (b, a)
    return [keeper] + _split_region(victim, keeper.bbox)


def _make_disjoint(regions: list[Region]) -> list[Region]:
    regions = list(regions)
    for _ in range(_MAX_RESOLVE_STEPS):
        pair: Optional[tuple[int, int]] = None
        for i in range(len(regions)):
            for j in range(i + 1, len(regions)):
                if _rect_intersection_area(regions[i].bbox, regions[j].bbox) > 0.0:
                    pair = (i, j)
                    break
            if pair is not None:
                break
        if pair is None:
            return regions
        i, j = pair
        resolved = _resolve_pair(regions[i], regions[j])
        regions = [r for k, r in enumerate(regions) if k not in (i, j)] + resolved
    logger.warning("Region overlaps still unresolved after %d steps", _MAX_RESOLVE_STEPS)
    return regions


def _free_intervals(lo: float, hi: float, spans: list[tuple[float, float]]) -> list[tuple[float, float]]:
    gaps: list[tuple[float, float]] = []
    cursor = lo
    for s0, s1 in sorted(spans):
        if s0 > cursor:
            gaps.append((cursor, min(s0, hi)))
        cursor = max(cursor, s1)
        if cursor >= hi:
            break
    if hi > cursor:
        gaps.append((cursor, hi))
    return [g for g in gaps if g[1] > g[0]]


def _whitespace_regions(regions: list[Region], layout: DocumentLayout) -> list[Region]:
    """
    Fill every part of each column between the topmost and bottommost region
    that no region covers.

    The column is swept in horizontal bands cut at region edges; free x-ranges
    that continue unchanged from one band to the next become a single region.
    """
    if not regions:
        return []
    top = min(r.bbox[1] for r in regions)
    bottom = max(r.bbox[3] for r in regions)
    out: list[Region] = []
    for col in layout.columns:
        inside = [r.bbox for r in regions if _overlap_1d(r.bbox[0], r.bbox[2], col.x0, col.x1) > 0.0]
        cuts = sorted({top, bottom} | {y for b in inside for y in (b[1], b[3]) if top < y < bottom})
        open_gaps: dict[tuple[float, float], float] = {}
        for ya, yb in zip(cuts, cuts[1:]):
            spans = [
                (max(b[0], col.x0), min(b[2], col.x1))
                for b in inside
                if _overlap_1d(b[1], b[3], ya, yb) > 0.0
            ]
            gaps = set(_free_intervals(col.x0, col.x1, spans))
            for gap in [g for g in open_gaps if g not in gaps]:
                out.append(Region(bbox=(gap[0], open_gaps.pop(gap), gap[1], ya), kind=RegionKind.WHITESPACE))
            for gap in gaps:
                open_gaps.setdefault(gap, ya)
        for gap, y0 in open_gaps.items():
            out.append(Region(bbox=(gap[0], y0, gap[1], bottom), kind=RegionKind.WHITESPACE))
    return out


def classify_regions(page: PageWithCaptions, layout: DocumentLayout) -> PageWithRegions:
    """
    Partition the page into pairwise-disjoint text, caption, graphic and
    whitespace regions. Background graphics are left out.
    """
    regions = _make_disjoint(_seed_regions(page))
    regions.extend(_whitespace_regions(regions, layout))

    def reading_key(r: Region) -> tuple[int, float, float]:
        col = layout.column_index(r.bbox)
        return (col if col is not None else 0, r.bbox[1], r.bbox[0])

    regions.sort(key=reading_key)
    logger.debug("Page %d: %d regions", page.page_number, len(regions))
    return PageWithRegions(
        page=page.page,
        graphics=list(page.graphics),
        captions=list(page.captions),
        failed_captions=list(page.failed_captions),
        regions=regions,
    )
