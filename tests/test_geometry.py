"""
Tests for the geometry module.
"""

import pytest

from cropsearch.geometry import Point, Rectangle, Region, distance


def test_distance():
    """Test Euclidean distance."""
    assert distance(Point(0, 0), Point(3, 4)) == pytest.approx(5.0)
    assert distance(Point(0.5, 0.5), Point(0.5, 0.5)) == 0.0


def test_contains_point_is_inclusive():
    """Test that all four edges count as inside."""
    rect = Rectangle(0.2, 0.2, 0.4, 0.4)

    assert rect.contains_point(Point(0.2, 0.2))
    assert rect.contains_point(Point(0.6, 0.6))
    assert rect.contains_point(Point(0.4, 0.3))
    assert not rect.contains_point(Point(0.1, 0.3))
    assert not rect.contains_point(Point(0.4, 0.7))


def test_intersection_overlap():
    """Test intersection of two partially overlapping rectangles."""
    a = Rectangle(0.0, 0.0, 0.5, 0.5)
    b = Rectangle(0.25, 0.25, 0.5, 0.5)

    overlap = a.intersection(b)
    assert overlap is not None
    assert overlap.x == pytest.approx(0.25)
    assert overlap.y == pytest.approx(0.25)
    assert overlap.width == pytest.approx(0.25)
    assert overlap.height == pytest.approx(0.25)


def test_intersection_none_when_disjoint_or_touching():
    """Test that no-area overlaps give None."""
    a = Rectangle(0.0, 0.0, 0.5, 0.5)

    assert a.intersection(Rectangle(0.6, 0.6, 0.1, 0.1)) is None
    # Shared edge only
    assert a.intersection(Rectangle(0.5, 0.0, 0.5, 0.5)) is None


def test_intersection_of_contained_rect_is_exact():
    """Test that a fully contained rectangle intersects to itself, bit for bit."""
    inner = Rectangle(0.4, 0.4, 0.2, 0.2)
    outer = Rectangle(0.1, 0.15, 0.7, 0.7)

    assert outer.intersection(inner) == inner
    assert inner.intersection(outer) == inner


def test_scale_keeps_center():
    """Test that scale() grows and shrinks about the rectangle center."""
    rect = Rectangle(0.2, 0.2, 0.4, 0.4)

    smaller = rect.scale(0.5)
    assert smaller.x == pytest.approx(0.3)
    assert smaller.y == pytest.approx(0.3)
    assert smaller.width == pytest.approx(0.2)
    assert smaller.height == pytest.approx(0.2)

    larger = rect.scale(1.5)
    assert larger.center.x == pytest.approx(rect.center.x)
    assert larger.center.y == pytest.approx(rect.center.y)
    assert larger.width == pytest.approx(0.6)


def test_contain_wide_and_tall():
    """Test the largest centered rectangle of an aspect inside the unit square."""
    unit = Rectangle.unit()

    wide = unit.contain(2.0)
    assert (wide.x, wide.y, wide.width, wide.height) == pytest.approx((0.0, 0.25, 1.0, 0.5))

    tall = unit.contain(0.5)
    assert (tall.x, tall.y, tall.width, tall.height) == pytest.approx((0.25, 0.0, 0.5, 1.0))

    assert unit.contain(1.0) == unit


def test_contain_rejects_non_positive_aspect():
    """Test fail-fast on impossible aspect ratios."""
    with pytest.raises(ValueError, match="aspect"):
        Rectangle.unit().contain(0.0)


def test_bounding():
    """Test the bounding box of a set of points."""
    box = Rectangle.bounding([Point(0.2, 0.5), Point(0.6, 0.1), Point(0.4, 0.3)])

    assert (box.x, box.y, box.width, box.height) == pytest.approx((0.2, 0.1, 0.4, 0.4))
    assert Rectangle.bounding([]) is None


@pytest.mark.parametrize("rect", [
    Rectangle(0.0, 0.0, 1.0, 1.0),
    Rectangle(0.1, 0.2, 0.3, 0.4),
    Rectangle(0.33, 0.17, 0.21, 0.59),
])
def test_region_add_then_subtract_is_empty(rect):
    """Test that removing what was added leaves nothing."""
    assert Region().add(rect).area == pytest.approx(rect.width * rect.height)

    region = Region().add(rect).subtract(rect)
    assert region.is_empty
    assert region.area == 0


def test_region_union_counts_overlap_once():
    """Test that overlapping additions are not double counted."""
    region = Region()
    region.add(Rectangle(0.0, 0.0, 0.5, 0.5))
    region.add(Rectangle(0.25, 0.25, 0.5, 0.5))

    assert region.area == pytest.approx(0.25 + 0.25 - 0.0625)


def test_region_subtract_hole():
    """Test punching a hole in the middle of a rectangle."""
    region = Region().add(Rectangle.unit())
    region.subtract(Rectangle(0.25, 0.25, 0.5, 0.5))

    assert region.area == pytest.approx(0.75)
    assert region.shape.geom_type == "Polygon"
    assert len(region.shape.interiors) == 1


def test_region_mixed_add_and_subtract():
    """Test that re-adding part of a hole restores exactly that part."""
    region = Region().add(Rectangle.unit())
    region.subtract(Rectangle(0.1, 0.1, 0.2, 0.2))
    region.subtract(Rectangle(0.5, 0.0, 0.2, 0.9))
    assert region.area == pytest.approx(1.0 - 0.04 - 0.18)

    region.add(Rectangle(0.15, 0.15, 0.5, 0.1))
    assert region.area == pytest.approx(1.0 - 0.04 - 0.18 + 0.015 + 0.015)


def test_region_subtract_outside_is_noop():
    """Test subtracting a rectangle that does not touch the region."""
    rect = Rectangle(0.0, 0.0, 0.2, 0.2)
    region = Region().add(rect).subtract(Rectangle(0.5, 0.5, 0.2, 0.2))

    assert region.area == pytest.approx(rect.area)
    assert region.shape.equals(rect.to_polygon())


def test_region_ignores_empty_rectangles():
    """Test that zero-area rectangles change nothing."""
    region = Region().add(Rectangle(0.2, 0.2, 0.0, 0.5))
    assert region.is_empty

    region.add(Rectangle.unit()).subtract(Rectangle(0.5, 0.5, 0.3, 0.0))
    assert region.area == pytest.approx(1.0)
