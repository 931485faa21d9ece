from __future__ import annotations

import logging
from typing import Optional, Sequence

from .heuristics import match_caption_start
from .layout_analysis import sort_blocks_reading_order
from .models import DocumentLayout, Page, TextBlock
from .text_utils import _ends_sentence

logger = logging.getLogger(__name__)


def _continues(prev: TextBlock, nxt: TextBlock, layout: DocumentLayout, tol: float) -> bool:
    """
    `nxt` carries on the paragraph `prev` left unfinished: `prev` ends without
    terminal punctuation (or mid-hyphenation) and `nxt` starts flush with its
    column margin instead of with a paragraph indent.
    """
    if not prev.lines or not nxt.lines:
        return False
    if _ends_sentence(prev.lines[-1].text):
        return False
    first = nxt.lines[0]
    if match_caption_start(first.text) is not None:
        return False
    col_x0, _ = layout.column_range(first.bbox)
    return abs(float(first.bbox[0]) - col_x0) <= tol


def _rebuild_page(page: Page, layout: DocumentLayout, tol: float) -> Page:
    body = sort_blocks_reading_order(page.paragraphs, layout, float(page.width))
    if len(body) < 2:
        return page

    merged_into: dict[int, TextBlock] = {}
    dropped: set[int] = set()
    index_of = {id(b): i for i, b in enumerate(page.text_blocks)}

    cur_idx = index_of[id(body[0])]
    cur = body[0]
    for nxt in body[1:]:
        nxt_idx = index_of[id(nxt)]
        if (
            layout.column_index(cur.lines[-1].bbox) != layout.column_index(nxt.lines[0].bbox)
            and _continues(cur, nxt, layout, tol)
        ):
            cur = cur.model_copy(update={"lines": cur.lines + nxt.lines})
            merged_into[cur_idx] = cur
            dropped.add(nxt_idx)
            continue
        cur_idx, cur = nxt_idx, nxt

    if not dropped:
        return page
    blocks = tuple(
        merged_into.get(i, b) for i, b in enumerate(page.text_blocks) if i not in dropped
    )
    logger.debug("Page %d: merged %d split paragraphs", page.page_number, len(dropped))
    return page.model_copy(update={"text_blocks": blocks})


def _mark_page_continuation(prev_page: Page, page: Page, layout: DocumentLayout, tol: float) -> Page:
    prev_body = sort_blocks_reading_order(prev_page.paragraphs, layout, float(prev_page.width))
    body = sort_blocks_reading_order(page.paragraphs, layout, float(page.width))
    if not prev_body or not body:
        return page
    first = body[0]
    if not _continues(prev_body[-1], first, layout, tol):
        return page
    blocks = tuple(
        b.model_copy(update={"continues_previous": True}) if b is first else b
        for b in page.text_blocks
    )
    return page.model_copy(update={"text_blocks": blocks})


def rebuild_paragraphs(pages: Sequence[Page], layout: DocumentLayout, tol: Optional[float] = None) -> list[Page]:
    """
    Re-join paragraphs that the layout split across a column or page break.

    Column breaks are merged in place. A paragraph running onto the next page
    stays on its own page and is flagged `continues_previous`, so the sectioned
    text joins it to the paragraph it completes.
    """
    tol = 0.5 * layout.median_line_spacing if tol is None else tol
    out: list[Page] = [_rebuild_page(p, layout, tol) for p in pages]
    for i in range(1, len(out)):
        out[i] = _mark_page_continuation(out[i - 1], out[i], layout, tol)
    return out
