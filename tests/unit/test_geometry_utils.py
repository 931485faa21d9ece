from paperfigs.extractor.geometry_utils import (
    _contains,
    _rect_intersection,
    _rects_touch,
    _union_rect,
    _vertical_distance,
)


def test_intersection_and_union():
    a = (0.0, 0.0, 10.0, 10.0)
    b = (5.0, 5.0, 20.0, 20.0)
    assert _rect_intersection(a, b) == (5.0, 5.0, 10.0, 10.0)
    assert _rect_intersection(a, (10.0, 0.0, 20.0, 10.0)) is None  # shared edge only
    assert _union_rect([a, b]) == (0.0, 0.0, 20.0, 20.0)
    assert _union_rect([]) == (0.0, 0.0, 0.0, 0.0)


def test_rects_touch_within_tolerance():
    a = (0.0, 0.0, 10.0, 10.0)
    assert _rects_touch(a, (12.0, 0.0, 20.0, 10.0), tol=2.0)
    assert not _rects_touch(a, (12.5, 0.0, 20.0, 10.0), tol=2.0)
    # Diagonal neighbours need both gaps within tolerance.
    assert not _rects_touch(a, (11.0, 13.0, 20.0, 20.0), tol=2.0)


def test_contains_ratio():
    outer = (0.0, 0.0, 100.0, 100.0)
    assert _contains(outer, (10.0, 10.0, 20.0, 20.0))
    assert not _contains(outer, (95.0, 10.0, 105.0, 20.0))
    assert _contains(outer, (95.0, 10.0, 105.0, 20.0), min_ratio=0.5)
    assert _contains(outer, (50.0, 50.0, 50.0, 60.0))  # zero-width line


def test_vertical_distance():
    assert _vertical_distance((0, 0, 10, 10), (0, 30, 10, 40)) == 20
    assert _vertical_distance((0, 0, 10, 10), (0, 5, 10, 40)) == 0
