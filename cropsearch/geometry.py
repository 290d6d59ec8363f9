"""
2D geometry for crop search.

Responsibility:
    Points, axis-aligned rectangles and regions (unions and differences of
    rectangles) in normalized image coordinates. Region arithmetic is
    delegated to shapely; Rectangle is the plain value type the rest of the
    package works with. Everything the fitness function needs to reason
    about overlap and coverage lives here.

Non-goals:
    - No rotated rectangles or polygons.
    - No pixel-space conversion (callers normalize before constructing).

Hard-coded:
    - Rectangle.scale() anchors on the rectangle center.
    - Rectangle.contains_point() is inclusive on all four edges.
"""

import math
from dataclasses import dataclass
from typing import List, Optional

from shapely.geometry import Polygon, box
from shapely.geometry.base import BaseGeometry


@dataclass(frozen=True, slots=True)
class Point:
    """A 2D point."""

    x: float
    y: float

    def to_dict(self) -> dict:
        return {"x": self.x, "y": self.y}


def distance(a: Point, b: Point) -> float:
    """Euclidean distance between two points."""
    return math.hypot(a.x - b.x, a.y - b.y)


def _span(lo: float, hi: float, a_lo: float, a_len: float, b_lo: float, b_len: float) -> float:
    """Length of [lo, hi], reusing an input length when both edges came from it.

    Keeps the intersection of a rectangle with one that fully contains it
    bit-identical to the inner rectangle.
    """
    if lo == a_lo and hi == a_lo + a_len:
        return a_len
    if lo == b_lo and hi == b_lo + b_len:
        return b_len
    return hi - lo


@dataclass(frozen=True, slots=True)
class Rectangle:
    """An axis-aligned rectangle given by its top-left corner and size.

    Attributes:
        x: Left edge.
        y: Top edge.
        width: Horizontal extent.
        height: Vertical extent.
    """

    x: float
    y: float
    width: float
    height: float

    @classmethod
    def unit(cls) -> "Rectangle":
        """The normalized image: (0, 0, 1, 1)."""
        return cls(0.0, 0.0, 1.0, 1.0)

    @classmethod
    def from_dict(cls, raw: dict) -> "Rectangle":
        """Build from a ``{x, y, width, height}`` mapping.

        Raises:
            KeyError: If a field is missing.
            TypeError, ValueError: If a field is not numeric.
        """
        return cls(
            float(raw["x"]),
            float(raw["y"]),
            float(raw["width"]),
            float(raw["height"]),
        )

    @classmethod
    def bounding(cls, points: List[Point]) -> Optional["Rectangle"]:
        """Smallest rectangle containing all points, or None if there are none."""
        if not points:
            return None
        left = min(p.x for p in points)
        top = min(p.y for p in points)
        right = max(p.x for p in points)
        bottom = max(p.y for p in points)
        return cls(left, top, right - left, bottom - top)

    def to_dict(self) -> dict:
        """Return a plain dict suitable for JSON serialization."""
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    @property
    def area(self) -> float:
        return self.width * self.height

    @property
    def center(self) -> Point:
        return Point(self.x + self.width / 2, self.y + self.height / 2)

    @property
    def is_empty(self) -> bool:
        return self.width <= 0 or self.height <= 0

    def contains_point(self, p: Point) -> bool:
        return self.x <= p.x <= self.right and self.y <= p.y <= self.bottom

    def intersection(self, other: "Rectangle") -> Optional["Rectangle"]:
        """Overlapping rectangle, or None when the overlap has no area."""
        left = max(self.x, other.x)
        top = max(self.y, other.y)
        right = min(self.right, other.right)
        bottom = min(self.bottom, other.bottom)
        if right <= left or bottom <= top:
            return None
        return Rectangle(
            left,
            top,
            _span(left, right, self.x, self.width, other.x, other.width),
            _span(top, bottom, self.y, self.height, other.y, other.height),
        )

    def to_polygon(self) -> Polygon:
        """The rectangle as a shapely polygon."""
        return box(self.x, self.y, self.right, self.bottom)

    def translate(self, dx: float, dy: float) -> "Rectangle":
        return Rectangle(self.x + dx, self.y + dy, self.width, self.height)

    def scale(self, factor: float) -> "Rectangle":
        """Multiply width and height by ``factor``, keeping the center fixed."""
        width = self.width * factor
        height = self.height * factor
        return Rectangle(
            self.x + (self.width - width) / 2,
            self.y + (self.height - height) / 2,
            width,
            height,
        )

    def contain(self, aspect: float) -> "Rectangle":
        """Largest rectangle of ``aspect`` (width / height) centered inside this one.

        Raises:
            ValueError: If aspect is not positive.
        """
        if aspect <= 0:
            raise ValueError(f"aspect must be positive, got {aspect}.")

        if self.width / self.height > aspect:
            height = self.height
            width = height * aspect
        else:
            width = self.width
            height = width / aspect

        return Rectangle(
            self.x + (self.width - width) / 2,
            self.y + (self.height - height) / 2,
            width,
            height,
        )


class Region:
    """A possibly disjoint area, held as a shapely geometry.

    Usage:
        region = Region()
        region.add(Rectangle(0, 0, 1, 1))
        region.subtract(Rectangle(0.25, 0.25, 0.5, 0.5))
        region.area   # 0.75

    ``add`` and ``subtract`` return the region itself so calls can be chained.
    """

    __slots__ = ("_shape",)

    def __init__(self) -> None:
        self._shape: BaseGeometry = Polygon()

    def add(self, rect: Rectangle) -> "Region":
        if rect.is_empty:
            return self
        self._shape = self._shape.union(rect.to_polygon())
        return self

    def subtract(self, rect: Rectangle) -> "Region":
        if rect.is_empty or self._shape.is_empty:
            return self
        self._shape = self._shape.difference(rect.to_polygon())
        return self

    @property
    def area(self) -> float:
        return float(self._shape.area)

    @property
    def shape(self) -> BaseGeometry:
        """The underlying shapely geometry (read-only by convention)."""
        return self._shape

    @property
    def is_empty(self) -> bool:
        return self._shape.is_empty

    def __repr__(self) -> str:
        return f"Region(area={self.area:.4f})"
