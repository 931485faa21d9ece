from paperfigs.extractor.text_utils import _ends_sentence, _join_lines_preserving_words, _normalize_text


def test_normalize_text_basic():
    text = "Hello   World\u00A0"  # \u00A0 is NBSP
    assert _normalize_text(text) == "Hello World"


def test_normalize_smart_quotes():
    assert _normalize_text("\u201cHello\u201d") == '"Hello"'


def test_ligature_replacement():
    assert _normalize_text("\ufb01eld") == "field"


def test_join_lines_hyphenation():
    lines = ["This is a sen-", "tence with hyphen."]
    assert _join_lines_preserving_words(lines) == "This is a sentence with hyphen."


def test_join_lines_skips_blank_lines():
    assert _join_lines_preserving_words(["first", "", "  ", "second"]) == "first second"


def test_ends_sentence():
    assert _ends_sentence("The end.")
    assert _ends_sentence("Really?")
    assert _ends_sentence("as follows:")
    assert not _ends_sentence("and the")
    assert not _ends_sentence("hyphen-")
    assert _ends_sentence("")
