from factories import LEFT, PAGE_H, PAGE_W, block, body_block, caption_block, chart, line, page, rect, run_page
from paperfigs.extractor.models import FailureReason, FigureKind


def test_figure_above_its_caption():
    p = page(0, [caption_block("Figure 1: Results.", 400), body_block(440, 12)], chart(100, 100, 400, 380))
    result = run_page(p)
    assert result.failed_captions == []
    assert len(result.figures) == 1
    fig = result.figures[0]
    assert fig.kind == FigureKind.FIGURE
    assert fig.name == "1"
    assert fig.caption == "Figure 1: Results."
    assert fig.region_boundary == (100.0, 100.0, 400.0, 380.0)
    assert fig.caption_boundary == (LEFT, 400.0, LEFT + 90.0, 410.0)


def test_earlier_caption_claims_the_only_graphic():
    captions = [
        block([line("Figure 1: First plot.", LEFT, 200, size=4.0)]),
        block([line("Figure 2: Second plot.", LEFT, 205, size=4.0)]),
    ]
    p = page(0, captions + [body_block(300, 12)], chart(100, 60, 400, 140))
    result = run_page(p)
    assert [f.name for f in result.figures] == ["1"]
    assert result.figures[0].region_boundary == (100.0, 60.0, 400.0, 140.0)
    assert [(f.candidate.name, f.reason) for f in result.failed_captions] == [("2", FailureReason.NO_GRAPHIC)]


def test_second_of_two_stacked_body_size_captions_fails():
    captions = [caption_block("Figure 1: First plot.", 200), caption_block("Figure 2: Second plot.", 205)]
    p = page(0, captions + [body_block(300, 12)], chart(100, 60, 400, 140))
    result = run_page(p)
    assert "2" in [f.candidate.name for f in result.failed_captions]
    assert "2" not in [f.name for f in result.figures]


def test_text_clipping_the_graphic_edge_leaves_figure_box_whole():
    p = page(
        0,
        [block([line("margin note", 380, 200, 430)]), caption_block("Figure 1: Results.", 400), body_block(440, 12)],
        [rect(100, 100, 400, 380)],
    )
    result = run_page(p)
    assert result.failed_captions == []
    assert [f.region_boundary for f in result.figures] == [(100.0, 100.0, 400.0, 380.0)]


def test_caption_on_blank_page_fails():
    white = rect(0, 0, PAGE_W, PAGE_H, fill=(1.0, 1.0, 1.0), stroke=None)
    p = page(0, [caption_block("Figure 1: Results.", 400), body_block(440, 12)], [white])
    result = run_page(p)
    assert result.figures == []
    assert [f.reason for f in result.failed_captions] == [FailureReason.NO_GRAPHIC]


def test_figures_look_above_tables_look_below():
    above = rect(100, 30, 400, 95)
    below = rect(100, 125, 400, 300)

    fig = run_page(page(0, [caption_block("Figure 1: Plot.", 100)], [above, below]))
    assert [f.region_boundary for f in fig.figures] == [(100.0, 30.0, 400.0, 95.0)]

    tab = run_page(page(0, [caption_block("Table 1: Scores.", 100)], [above, below]))
    assert [f.region_boundary for f in tab.figures] == [(100.0, 125.0, 400.0, 300.0)]
    assert tab.figures[0].kind == FigureKind.TABLE


def test_caption_falls_back_to_other_direction():
    p = page(0, [caption_block("Figure 1: Plot.", 100)], [rect(100, 125, 400, 300)])
    assert [f.region_boundary for f in run_page(p).figures] == [(100.0, 125.0, 400.0, 300.0)]


def test_body_text_between_graphic_and_caption_blocks_the_match():
    p = page(0, [body_block(320, 5), caption_block("Figure 1: Results.", 400)], [rect(100, 100, 400, 300)])
    result = run_page(p)
    assert result.figures == []
    assert [f.reason for f in result.failed_captions] == [FailureReason.NO_GRAPHIC]


def test_graphic_too_far_away_is_not_matched():
    p = page(0, [caption_block("Figure 1: Results.", 700)], [rect(100, 20, 400, 60)])
    assert run_page(p).figures == []


def test_two_captions_each_get_their_own_graphic():
    p = page(
        0,
        [caption_block("Figure 1: Top.", 250), caption_block("Figure 2: Bottom.", 560)],
        chart(100, 60, 400, 230) + chart(100, 300, 400, 540),
    )
    result = run_page(p)
    assert [(f.name, f.region_boundary) for f in result.figures] == [
        ("1", (100.0, 60.0, 400.0, 230.0)),
        ("2", (100.0, 300.0, 400.0, 540.0)),
    ]
    assert result.failed_captions == []


def test_text_table_without_rules():
    rows = block(
        [
            line("Model    Acc    F1", LEFT, 120, 300),
            line("Base     81.2   79.0", LEFT, 132, 300),
            line("Ours     85.4   83.1", LEFT, 144, 300),
        ]
    )
    p = page(0, [caption_block("Table 1: Scores.", 100), rows, body_block(300, 10)])
    result = run_page(p)
    assert [(f.kind, f.region_boundary) for f in result.figures] == [(FigureKind.TABLE, (LEFT, 120.0, 300.0, 154.0))]

    remaining = [ln.text for b in result.text_page.text_blocks for ln in b.lines]
    assert "Model    Acc    F1" not in remaining
    assert "Table 1: Scores." not in remaining
    assert len(remaining) == 10


def test_residual_text_drops_captions_and_figure_text():
    labels = block([line("0.5", 110, 200, 125)])
    body = body_block(440, 12)
    p = page(0, [labels, caption_block("Figure 1: Results.", 400), body], chart(100, 100, 400, 380))
    result = run_page(p)
    assert len(result.figures) == 1
    assert list(result.text_page.text_blocks) == [body]


def test_every_caption_is_a_figure_or_a_failure():
    p = page(
        0,
        [
            caption_block("Figure 1: Top.", 250),
            caption_block("Figure 2: Orphan.", 700),
            caption_block("Figure 3:", 600),
        ],
        chart(100, 60, 400, 230),
    )
    result = run_page(p)
    names = sorted([f.name for f in result.figures] + [f.candidate.name for f in result.failed_captions])
    assert names == ["1", "2", "3"]
    assert {f.candidate.name: f.reason for f in result.failed_captions} == {
        "2": FailureReason.NO_GRAPHIC,
        "3": FailureReason.EMPTY_BODY,
    }
