import logging

import pytest

from factories import LEFT, PAGE_H, PAGE_W, block, body_block, caption_block, chart, image, line, page, rect
from paperfigs.extractor import (
    CancellationToken,
    ExtractionCancelled,
    ExtractorConfig,
    FigureExtractor,
    LoggingVisualLogger,
    OcrPageError,
    PageNumberingError,
    VisualLogger,
)
from paperfigs.extractor.models import FailureReason, TextKind


def figure_page(number):
    return page(
        number,
        [caption_block(f"Figure {number + 1}: Results.", 400), body_block(440, 12)],
        chart(100, 100, 400, 380),
    )


def paper():
    abstract = block([line(f"abstract sentence number {i}", LEFT, 60 + 12 * i, 540) for i in range(4)], kind=TextKind.ABSTRACT)
    intro = block([line("1 Introduction", LEFT, 200, size=12.0, bold=True)])
    return [
        page(0, [abstract, intro, body_block(220, 10, last="")]),
        page(1, [body_block(60, 5), caption_block("Figure 1: A chart.", 400)], chart(100, 120, 400, 380)),
    ]


def extractor(**kw):
    return FigureExtractor(ExtractorConfig(**kw))


def test_get_figures():
    figures = extractor().get_figures([figure_page(0)])
    assert len(figures) == 1
    assert figures[0].caption == "Figure 1: Results."
    assert figures[0].region_boundary == (100.0, 100.0, 400.0, 380.0)


def test_get_figures_with_errors_reports_failed_captions():
    white = rect(0, 0, PAGE_W, PAGE_H, fill=(1.0, 1.0, 1.0), stroke=None)
    blank = page(1, [caption_block("Figure 2: Missing.", 400), body_block(440, 12)], [white])
    result = extractor().get_figures_with_errors([figure_page(0), blank])
    assert [f.name for f in result.figures] == ["1"]
    assert [(f.page_number, f.candidate.name, f.reason) for f in result.failed_captions] == [
        (1, "2", FailureReason.NO_GRAPHIC)
    ]


@pytest.mark.parametrize("titles_first", [True, False])
def test_get_figures_with_text(titles_first):
    doc = extractor(detect_section_titles_first=titles_first).get_figures_with_text(paper())

    assert [f.name for f in doc.figures] == ["1"]
    assert doc.figures[0].page_number == 1
    assert doc.abstract_text is not None
    assert doc.abstract_text.text.startswith("abstract sentence number 0")

    assert [s.title_text for s in doc.sections] == ["1 Introduction"]
    [paragraph] = doc.sections[0].paragraphs
    assert paragraph.page_number == 0
    assert len(paragraph.paragraph.lines) == 15
    assert "Figure 1" not in paragraph.text


def test_paragraphs_not_rebuilt_when_disabled():
    doc = extractor(rebuild_paragraphs=False).get_figures_with_text(paper())
    assert [len(p.paragraph.lines) for p in doc.sections[0].paragraphs] == [10, 5]


def test_page_filter_limits_figure_detection():
    pages = [figure_page(i) for i in range(3)]
    figures = extractor().get_figures(pages, page_filter=[2])
    assert [(f.page_number, f.name) for f in figures] == [(2, "3")]


def test_parallel_workers_keep_page_order():
    pages = [figure_page(i) for i in range(5)]
    figures = extractor(workers=4).get_figures(list(reversed(pages)))
    assert [f.page_number for f in figures] == [0, 1, 2, 3, 4]


def test_too_little_text_skips_figure_detection():
    pages = [
        page(0, [caption_block("Figure 1: Results.", 400)], chart(100, 100, 400, 380)),
        page(1, [body_block(60, 3)]),
    ]
    ex = extractor()
    assert ex.get_figures(pages) == []
    doc = ex.get_figures_with_text(pages)
    assert doc.figures == []
    assert [[p.page_number for p in s.paragraphs] for s in doc.sections] == [[0], [1]]


def test_empty_document():
    assert extractor().get_figures([]) == []
    assert extractor().get_figures_with_text([]).sections == []


@pytest.mark.parametrize("numbers", [[0, 2], [1, 2], [0, 0]])
def test_page_numbers_must_be_contiguous(numbers):
    with pytest.raises(PageNumberingError):
        extractor().get_figures([figure_page(n) for n in numbers])


def test_scanned_page_is_rejected():
    scanned = page(0, primitives=[image(0, 0, PAGE_W, PAGE_H)])
    with pytest.raises(OcrPageError):
        extractor().get_figures([scanned])
    assert extractor(allow_ocr=True).get_figures([scanned]) == []


def test_scanned_page_outside_filter_is_ignored():
    pages = [figure_page(0), page(1, primitives=[image(0, 0, PAGE_W, PAGE_H)])]
    figures = extractor().get_figures(pages, page_filter=[0])
    assert len(figures) == 1


def test_cancelled_token_stops_extraction():
    token = CancellationToken()
    token.cancel()
    with pytest.raises(ExtractionCancelled):
        extractor().get_figures([figure_page(0)], cancel_token=token)
    with pytest.raises(ExtractionCancelled):
        extractor(workers=2).get_figures([figure_page(0), figure_page(1)], cancel_token=token)


def test_cancelling_during_first_page_stops_before_the_next():
    token = CancellationToken()
    calls = []

    class CancelAfterFirstPage(VisualLogger):
        def log_extractions(self, page):
            calls.append(("graphics", page.page_number))

        def log_pages_with_caption(self, page):
            calls.append(("captions", page.page_number))

        def log_regions(self, page):
            calls.append(("regions", page.page_number))

        def log_figures(self, page_number, figures):
            calls.append(("figures", page_number))
            if page_number == 0:
                token.cancel()

    pages = [figure_page(0), figure_page(1), figure_page(2)]
    with pytest.raises(ExtractionCancelled):
        extractor(workers=1).get_figures(pages, visual_logger=CancelAfterFirstPage(), cancel_token=token)
    assert calls == [("graphics", 0), ("captions", 0), ("regions", 0), ("figures", 0)]


def test_visual_logger_is_called_for_every_stage():
    calls = []

    class Recorder(VisualLogger):
        def log_extractions(self, page):
            calls.append(("graphics", page.page_number))

        def log_pages_with_caption(self, page):
            calls.append(("captions", page.page_number))

        def log_regions(self, page):
            calls.append(("regions", page.page_number))

        def log_figures(self, page_number, figures):
            calls.append(("figures", page_number))

    extractor().get_figures([figure_page(0), figure_page(1)], visual_logger=Recorder())
    assert calls == [
        ("graphics", 0), ("captions", 0), ("regions", 0), ("figures", 0),
        ("graphics", 1), ("captions", 1), ("regions", 1), ("figures", 1),
    ]


def test_logging_visual_logger(caplog):
    caplog.set_level(logging.INFO, logger="paperfigs.visual")
    extractor().get_figures([figure_page(0)], visual_logger=LoggingVisualLogger())
    messages = [r.getMessage() for r in caplog.records if r.name == "paperfigs.visual"]
    assert len(messages) == 4
    assert "Figure 1" in messages[-1]


def test_invalid_config_is_rejected():
    with pytest.raises(ValueError):
        extractor(workers=0)
