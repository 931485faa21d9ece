from __future__ import annotations

import logging
from collections import Counter
from statistics import median
from typing import Optional, Sequence

from .config import ExtractorConfig
from .geometry_utils import BBox, _bbox_width, _overlap_1d
from .models import Column, DocumentLayout, Page, TextKind, TextLine

logger = logging.getLogger(__name__)

_LAYOUT_KINDS = (TextKind.BODY, TextKind.ABSTRACT, TextKind.SECTION_TITLE, TextKind.OTHER)


def _layout_lines(page: Page) -> list[TextLine]:
    out: list[TextLine] = []
    for b in page.text_blocks:
        if b.kind not in _LAYOUT_KINDS:
            continue
        out.extend(ln for ln in b.lines if not ln.invisible and ln.text.strip())
    return out


def _line_pitches(page: Page) -> list[float]:
    """Top-to-top distance between consecutive lines of the same block."""
    out: list[float] = []
    for b in page.text_blocks:
        if b.kind not in _LAYOUT_KINDS:
            continue
        lines = [ln for ln in b.lines if not ln.invisible]
        for prev, nxt in zip(lines, lines[1:]):
            dy = float(nxt.bbox[1]) - float(prev.bbox[1])
            if dy <= 0.0:
                continue
            if _overlap_1d(prev.bbox[0], prev.bbox[2], nxt.bbox[0], nxt.bbox[2]) <= 0.0:
                continue
            out.append(dy)
    return out


def detect_body_font_size(pages: Sequence[Page]) -> float:
    sizes: list[float] = []
    for page in pages:
        for ln in _layout_lines(page):
            if ln.font_size > 0:
                sizes.append(round(float(ln.font_size), 1))
    if not sizes:
        return 10.0
    return float(Counter(sizes).most_common(1)[0][0])


def _detect_column_split_x(boxes: list[BBox], page_width: float) -> Optional[float]:
    """
    Detect the x-position separating left/right columns.
    Returns None for likely single-column layouts.
    """
    if not boxes:
        return None

    candidates = [
        (float(b[0]) + float(b[2])) / 2.0
        for b in boxes
        if _bbox_width(b) < page_width * 0.62
    ]
    if len(candidates) < 4:
        return None
    centers = sorted(candidates)

    best_gap = 0.0
    best_mid = None
    lo = page_width * 0.22
    hi = page_width * 0.78
    for i in range(len(centers) - 1):
        a, b = centers[i], centers[i + 1]
        mid = (a + b) / 2.0
        if mid < lo or mid > hi:
            continue
        gap = float(b - a)
        if gap > best_gap:
            best_gap = gap
            best_mid = mid

    if best_mid is None or best_gap < page_width * 0.08:
        return None

    left_n = sum(1 for c in centers if c < best_mid)
    right_n = len(centers) - left_n
    if left_n < 2 or right_n < 2:
        return None
    return float(best_mid)


def _column_from_lines(lines: list[TextLine]) -> Column:
    # The left margin is the x0 most lines share (indented first lines are the minority).
    x0 = float(Counter(round(float(ln.bbox[0])) for ln in lines).most_common(1)[0][0])
    x1s = sorted(float(ln.bbox[2]) for ln in lines)
    x1 = x1s[min(len(x1s) - 1, int(len(x1s) * 0.9))]
    return Column(x0=x0, x1=max(x1, x0 + 1.0))


def _estimate_columns(pages: Sequence[Page]) -> tuple[Column, ...]:
    splits: list[float] = []
    voting_pages = 0
    all_lines: list[TextLine] = []
    for page in pages:
        lines = _layout_lines(page)
        all_lines.extend(lines)
        if len(lines) < 4:
            continue
        voting_pages += 1
        split = _detect_column_split_x([ln.bbox for ln in lines], page_width=float(page.width))
        if split is not None:
            splits.append(split)

    if voting_pages and len(splits) * 2 >= voting_pages:
        split = float(median(splits))
        narrow = [ln for ln in all_lines if _bbox_width(ln.bbox) < (split * 1.24)]
        left = [ln for ln in narrow if (ln.bbox[0] + ln.bbox[2]) / 2.0 < split]
        right = [ln for ln in narrow if (ln.bbox[0] + ln.bbox[2]) / 2.0 >= split]
        if left and right:
            lc = _column_from_lines(left)
            rc = _column_from_lines(right)
            lc = Column(x0=lc.x0, x1=min(lc.x1, split))
            rc = Column(x0=max(rc.x0, split), x1=rc.x1)
            return (lc, rc)

    if not all_lines:
        width = max((float(p.width) for p in pages), default=1.0)
        return (Column(x0=0.0, x1=width),)
    col = _column_from_lines(all_lines)
    return (Column(x0=col.x0, x1=max(float(ln.bbox[2]) for ln in all_lines)),)


def estimate_document_layout(pages: Sequence[Page], cfg: Optional[ExtractorConfig] = None) -> Optional[DocumentLayout]:
    """
    Derive the document-wide calibration used to scale every spatial threshold.

    Returns None when the document has too few text lines for a meaningful
    estimate; callers then skip figure detection and only section the text.
    """
    cfg = cfg or ExtractorConfig()
    pitches: list[float] = []
    for page in pages:
        pitches.extend(_line_pitches(page))
    if len(pitches) < cfg.min_layout_lines:
        logger.debug("Only %d line-pitch samples, not building a DocumentLayout", len(pitches))
        return None

    layout = DocumentLayout(
        median_line_spacing=float(median(pitches)),
        body_font_size=detect_body_font_size(pages),
        columns=_estimate_columns(pages),
    )
    logger.debug(
        "DocumentLayout: spacing=%.2f body_font=%.1f columns=%s",
        layout.median_line_spacing,
        layout.body_font_size,
        [(c.x0, c.x1) for c in layout.columns],
    )
    return layout


def sort_blocks_reading_order(blocks: list, layout: Optional[DocumentLayout], page_width: float) -> list:
    """
    Order blocks column by column, top to bottom. Column-spanning blocks cut
    the page into segments that are read in sequence.
    """
    if not blocks:
        return []

    if layout is not None and len(layout.columns) > 1:
        col_split = (layout.columns[0].x1 + layout.columns[1].x0) / 2.0
    else:
        col_split = _detect_column_split_x([b.bbox for b in blocks], page_width=page_width)
    if col_split is None:
        return sorted(blocks, key=lambda b: (b.bbox[1], b.bbox[0]))

    spanning_threshold = page_width * 0.62
    cross_margin = max(8.0, page_width * 0.015)
    by_y = sorted(blocks, key=lambda b: (b.bbox[1], b.bbox[0]))

    out: list = []
    segment: list = []

    def flush_segment():
        nonlocal segment
        if not segment:
            return
        left = [b for b in segment if ((float(b.bbox[0]) + float(b.bbox[2])) / 2.0) < col_split]
        right = [b for b in segment if ((float(b.bbox[0]) + float(b.bbox[2])) / 2.0) >= col_split]
        left.sort(key=lambda b: (b.bbox[1], b.bbox[0]))
        right.sort(key=lambda b: (b.bbox[1], b.bbox[0]))
        out.extend(left)
        out.extend(right)
        segment = []

    for b in by_y:
        x0, _, x1, _ = b.bbox
        crosses_split = float(x0) < (col_split - cross_margin) and float(x1) > (col_split + cross_margin)
        if _bbox_width(b.bbox) >= spanning_threshold or crosses_split:
            flush_segment()
            out.append(b)
        else:
            segment.append(b)

    flush_segment()
    return out
