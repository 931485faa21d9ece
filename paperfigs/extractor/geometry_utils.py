from __future__ import annotations

from typing import Iterable

BBox = tuple[float, float, float, float]


def _bbox_width(bbox: BBox) -> float:
    return max(0.0, float(bbox[2]) - float(bbox[0]))


def _bbox_height(bbox: BBox) -> float:
    return max(0.0, float(bbox[3]) - float(bbox[1]))


def _rect_area(bbox: BBox) -> float:
    return _bbox_width(bbox) * _bbox_height(bbox)


def _overlap_1d(a0: float, a1: float, b0: float, b1: float) -> float:
    return max(0.0, min(a1, b1) - max(a0, b0))


def _rect_intersection(a: BBox, b: BBox) -> BBox | None:
    x0, y0 = max(a[0], b[0]), max(a[1], b[1])
    x1, y1 = min(a[2], b[2]), min(a[3], b[3])
    if x1 <= x0 or y1 <= y0:
        return None
    return (x0, y0, x1, y1)


def _rect_intersection_area(a: BBox, b: BBox) -> float:
    r = _rect_intersection(a, b)
    return _rect_area(r) if r is not None else 0.0


def _union_rect(rects: Iterable[BBox]) -> BBox:
    rects = list(rects)
    if not rects:
        return (0.0, 0.0, 0.0, 0.0)
    return (
        min(float(r[0]) for r in rects),
        min(float(r[1]) for r in rects),
        max(float(r[2]) for r in rects),
        max(float(r[3]) for r in rects),
    )


def _rect_gaps(a: BBox, b: BBox) -> tuple[float, float]:
    """Horizontal and vertical gap between two boxes (0 when they overlap on that axis)."""
    x_gap = max(0.0, max(a[0], b[0]) - min(a[2], b[2]))
    y_gap = max(0.0, max(a[1], b[1]) - min(a[3], b[3]))
    return x_gap, y_gap


def _rects_touch(a: BBox, b: BBox, tol: float) -> bool:
    x_gap, y_gap = _rect_gaps(a, b)
    return x_gap <= tol and y_gap <= tol


def _contains(outer: BBox, inner: BBox, *, min_ratio: float = 1.0) -> bool:
    """True when at least `min_ratio` of `inner`'s area lies inside `outer`."""
    inner_area = _rect_area(inner)
    if inner_area <= 0.0:
        return (
            outer[0] <= inner[0] and inner[2] <= outer[2]
            and outer[1] <= inner[1] and inner[3] <= outer[3]
        )
    return _rect_intersection_area(outer, inner) >= inner_area * min_ratio - 1e-9


def _vertical_distance(a: BBox, b: BBox) -> float:
    return max(0.0, max(a[1], b[1]) - min(a[3], b[3]))
