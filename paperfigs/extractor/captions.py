from __future__ import annotations

import logging
from collections import defaultdict
from typing import Iterable, Optional, Sequence

from .config import ExtractorConfig
from .geometry_utils import _bbox_width, _overlap_1d, _rect_intersection_area, _union_rect
from .heuristics import _parse_caption_number, match_caption_start
from .models import (
    Caption,
    CaptionCandidate,
    DocumentLayout,
    FailedCaption,
    FailureReason,
    Page,
    PageWithCaptions,
    PageWithGraphics,
    TextKind,
    TextLine,
)
from .text_utils import _join_lines_preserving_words

logger = logging.getLogger(__name__)

_CAPTION_BLOCK_KINDS = (TextKind.BODY, TextKind.OTHER)


# ---------------------------------------------------------------------------
# Caption detection
# ---------------------------------------------------------------------------


def _page_candidates(page: Page, layout: DocumentLayout, cfg: ExtractorConfig) -> list[CaptionCandidate]:
    tol = cfg.caption_margin_k * layout.median_line_spacing
    out: list[CaptionCandidate] = []
    for bi, block in enumerate(page.text_blocks):
        if block.kind not in _CAPTION_BLOCK_KINDS:
            continue
        for li, line in enumerate(block.lines):
            m = match_caption_start(line.text)
            if m is None:
                continue
            kind, name, _rest = m
            col_x0, _ = layout.column_range(line.bbox)
            if abs(float(line.bbox[0]) - col_x0) > tol:
                # Body text citing "Figure 3." mid-column, not a caption opening.
                continue
            out.append(
                CaptionCandidate(
                    page_number=page.page_number,
                    kind=kind,
                    name=name,
                    number=_parse_caption_number(name),
                    anchor=(float(line.bbox[0]), float(line.bbox[1])),
                    block_index=bi,
                    line_index=li,
                    opens_block=(li == 0),
                )
            )
    return out


def _drop_shadowed_mid_block(candidates: list[CaptionCandidate]) -> list[CaptionCandidate]:
    """
    A caption name seen both at a block opening and mid-block is almost
    always a caption plus a body reference that wrapped onto a line start.
    """
    opened: set[tuple[str, str]] = {(c.kind.value, c.name) for c in candidates if c.opens_block}
    return [c for c in candidates if c.opens_block or (c.kind.value, c.name) not in opened]


def find_captions(
    pages: Sequence[Page],
    layout: DocumentLayout,
    cfg: Optional[ExtractorConfig] = None,
    page_filter: Optional[Iterable[int]] = None,
) -> list[CaptionCandidate]:
    """Caption candidates for the whole document, in page then reading order."""
    cfg = cfg or ExtractorConfig()
    found: list[CaptionCandidate] = []
    for page in pages:
        found.extend(_page_candidates(page, layout, cfg))
    found = _drop_shadowed_mid_block(found)

    if page_filter is not None:
        wanted = set(page_filter)
        found = [c for c in found if c.page_number in wanted]

    def order(c: CaptionCandidate) -> tuple[int, int, float, float]:
        x, y = c.anchor
        col = layout.column_index((x, y, x + 1.0, y + 1.0))
        return (c.page_number, col if col is not None else 0, y, x)

    found.sort(key=order)
    logger.debug("Found %d caption candidates", len(found))
    return found


def group_by_page(candidates: Iterable[CaptionCandidate]) -> dict[int, list[CaptionCandidate]]:
    grouped: dict[int, list[CaptionCandidate]] = defaultdict(list)
    for c in candidates:
        grouped[c.page_number].append(c)
    return dict(grouped)


# ---------------------------------------------------------------------------
# Caption building
# ---------------------------------------------------------------------------


def _same_column(anchor: TextLine, nxt: TextLine) -> bool:
    ov = _overlap_1d(anchor.bbox[0], anchor.bbox[2], nxt.bbox[0], nxt.bbox[2])
    denom = max(1e-6, min(_bbox_width(anchor.bbox), _bbox_width(nxt.bbox)))
    return ov / denom >= 0.5


def _consume_caption_lines(
    cand: CaptionCandidate,
    lines: Sequence[TextLine],
    candidate_lines: set[tuple[int, int]],
    *,
    max_pitch: float,
    back_tol: float,
) -> int:
    anchor = lines[cand.line_index]
    end = cand.line_index + 1
    while end < len(lines):
        prev, nxt = lines[end - 1], lines[end]
        if (cand.block_index, end) in candidate_lines:
            break
        pitch = float(nxt.bbox[1]) - float(prev.bbox[1])
        if pitch > max_pitch or pitch < -back_tol:
            break
        if not _same_column(anchor, nxt):
            break
        end += 1
    return end


def build_captions(
    candidates: Sequence[CaptionCandidate],
    page: PageWithGraphics,
    median_line_spacing: float,
    cfg: Optional[ExtractorConfig] = None,
) -> PageWithCaptions:
    """
    Extend every candidate on `page` into a full caption.

    Lines are consumed after the anchor until the line pitch grows past
    `caption_gap_k` median spacings, another caption starts, or the text
    leaves the anchor's column. Candidates with no caption body, or whose
    span collides with an earlier (higher) caption, become FailedCaptions.
    """
    cfg = cfg or ExtractorConfig()
    blocks = page.page.text_blocks
    ordered = sorted(candidates, key=lambda c: (c.anchor[1], c.anchor[0]))
    candidate_lines = {(c.block_index, c.line_index) for c in ordered}
    max_pitch = cfg.caption_gap_k * median_line_spacing
    back_tol = 0.25 * median_line_spacing

    built: list[Caption] = []
    failed: list[FailedCaption] = []
    for cand in ordered:
        lines = blocks[cand.block_index].lines
        end = _consume_caption_lines(cand, lines, candidate_lines, max_pitch=max_pitch, back_tol=back_tol)
        used = lines[cand.line_index:end]
        text = _join_lines_preserving_words([ln.text for ln in used])
        bbox = _union_rect([ln.bbox for ln in used])

        m = match_caption_start(used[0].text)
        body = " ".join([m[2] if m else ""] + [ln.text.strip() for ln in used[1:]]).strip()
        if not body:
            logger.debug("Page %d: %s has no caption body", cand.page_number, cand.label)
            failed.append(FailedCaption(candidate=cand, reason=FailureReason.EMPTY_BODY, text=text, bbox=bbox))
            continue
        if any(_rect_intersection_area(bbox, c.bbox) > 0.0 for c in built):
            logger.debug("Page %d: %s overlaps an earlier caption", cand.page_number, cand.label)
            failed.append(FailedCaption(candidate=cand, reason=FailureReason.OVERLAP, text=text, bbox=bbox))
            continue
        built.append(Caption(candidate=cand, text=text, bbox=bbox, line_end=end))

    return PageWithCaptions(
        page=page.page,
        graphics=list(page.graphics),
        captions=built,
        failed_captions=failed,
    )
