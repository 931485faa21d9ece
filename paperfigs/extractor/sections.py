from __future__ import annotations

import logging
from typing import Optional, Sequence

from .heuristics import suggest_heading_level
from .layout_analysis import sort_blocks_reading_order
from .models import DocumentLayout, DocumentSection, Page, PdfText, TextBlock, TextKind

logger = logging.getLogger(__name__)

_MAX_TITLE_LINES = 3


# ---------------------------------------------------------------------------
# Section title extraction
# ---------------------------------------------------------------------------


def _is_title_block(block: TextBlock, body_size: float) -> bool:
    if len(block.lines) > _MAX_TITLE_LINES:
        return False
    return suggest_heading_level(
        text=block.text,
        max_size=block.max_font_size,
        is_bold=block.is_bold,
        body_size=body_size,
    ) is not None


def _split_leading_title(block: TextBlock, body_size: float) -> Optional[tuple[TextBlock, TextBlock]]:
    """Split a heading line fused onto the top of a body paragraph."""
    if len(block.lines) < 2:
        return None
    head, rest = block.lines[0], block.lines[1:]
    level = suggest_heading_level(text=head.text, max_size=head.font_size, is_bold=head.is_bold, body_size=body_size)
    if level is None:
        return None
    nxt = rest[0]
    if nxt.is_bold or nxt.font_size - body_size >= 0.55:
        return None
    return (
        TextBlock(kind=TextKind.SECTION_TITLE, lines=(head,)),
        block.model_copy(update={"lines": tuple(rest)}),
    )


def strip_section_titles(pages: Sequence[Page], layout: DocumentLayout) -> list[Page]:
    """Re-tag heading-styled body blocks as section titles, removing them from the body text."""
    body_size = layout.body_font_size
    out: list[Page] = []
    for page in pages:
        blocks: list[TextBlock] = []
        changed = False
        for block in page.text_blocks:
            if block.kind != TextKind.BODY:
                blocks.append(block)
                continue
            if _is_title_block(block, body_size):
                blocks.append(block.model_copy(update={"kind": TextKind.SECTION_TITLE}))
                changed = True
                continue
            split = _split_leading_title(block, body_size)
            if split is not None:
                blocks.extend(split)
                changed = True
                continue
            blocks.append(block)
        out.append(page.model_copy(update={"text_blocks": tuple(blocks)}) if changed else page)
    return out


# ---------------------------------------------------------------------------
# Sectioned text
# ---------------------------------------------------------------------------


def build_sectioned_text(pages: Sequence[Page], layout: Optional[DocumentLayout] = None) -> list[DocumentSection]:
    """
    Group body paragraphs under the section titles that precede them.
    Paragraphs before the first title form a section without a title.
    """
    sections: list[DocumentSection] = []
    current: Optional[DocumentSection] = None
    for page in sorted(pages, key=lambda p: p.page_number):
        blocks = [b for b in page.text_blocks if b.kind in (TextKind.BODY, TextKind.SECTION_TITLE)]
        for block in sort_blocks_reading_order(blocks, layout, float(page.width)):
            if block.kind == TextKind.SECTION_TITLE:
                current = DocumentSection(title=PdfText(paragraph=block, page_number=page.page_number))
                sections.append(current)
                continue
            if current is None:
                current = DocumentSection()
                sections.append(current)
            if block.continues_previous and current.paragraphs:
                last = current.paragraphs[-1]
                joined = last.paragraph.model_copy(update={"lines": last.paragraph.lines + block.lines})
                current.paragraphs[-1] = PdfText(paragraph=joined, page_number=last.page_number)
                continue
            current.paragraphs.append(PdfText(paragraph=block, page_number=page.page_number))
    logger.debug("Built %d sections", len(sections))
    return sections


def sections_without_layout(pages: Sequence[Page]) -> list[DocumentSection]:
    """One untitled section per page, used when no DocumentLayout could be built."""
    return [
        DocumentSection(paragraphs=[PdfText(paragraph=b, page_number=p.page_number) for b in p.paragraphs])
        for p in sorted(pages, key=lambda p: p.page_number)
    ]
