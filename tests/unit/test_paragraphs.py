from factories import LEFT, RIGHT, body_block, caption_block, page, single_column_layout, two_column_layout
from paperfigs.extractor.models import TextKind
from paperfigs.extractor.paragraphs import rebuild_paragraphs


def _bodies(p):
    return [b for b in p.text_blocks if b.kind == TextKind.BODY]


def test_paragraph_split_across_columns_is_merged():
    left = body_block(600, 5, x0=LEFT, x1=296.0, last="")
    right = body_block(60, 5, x0=316.0, x1=RIGHT)
    [out] = rebuild_paragraphs([page(0, [left, right])], two_column_layout())
    blocks = _bodies(out)
    assert len(blocks) == 1
    assert len(blocks[0].lines) == 10
    assert blocks[0].lines[:5] == left.lines


def test_finished_sentence_is_not_merged():
    left = body_block(600, 5, x0=LEFT, x1=296.0)
    right = body_block(60, 5, x0=316.0, x1=RIGHT)
    [out] = rebuild_paragraphs([page(0, [left, right])], two_column_layout())
    assert len(_bodies(out)) == 2


def test_indented_continuation_starts_a_new_paragraph():
    left = body_block(600, 5, x0=LEFT, x1=296.0, last="")
    right = body_block(60, 5, x0=331.0, x1=RIGHT)
    [out] = rebuild_paragraphs([page(0, [left, right])], two_column_layout())
    assert len(_bodies(out)) == 2


def test_paragraph_running_onto_next_page_is_flagged():
    pages = [page(0, [body_block(600, 5, last="")]), page(1, [body_block(60, 5)])]
    out = rebuild_paragraphs(pages, single_column_layout())
    assert not out[0].text_blocks[0].continues_previous
    assert out[1].text_blocks[0].continues_previous


def test_caption_at_top_of_page_does_not_continue():
    pages = [
        page(0, [body_block(600, 5, last="")]),
        page(1, [caption_block("Figure 2: A plot.", 40), body_block(80, 5)]),
    ]
    out = rebuild_paragraphs(pages, single_column_layout())
    assert not any(b.continues_previous for b in out[1].text_blocks)


def test_pages_are_left_alone_when_nothing_to_merge():
    p = page(0, [body_block(60, 5)])
    assert rebuild_paragraphs([p], single_column_layout()) == [p]
