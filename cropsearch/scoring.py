"""
Crop fitness.

Responsibility:
    Score a candidate crop rectangle against a SceneAnalysis. The total
    fitness blends three components:

        area_score        weighted share of all interesting object area
                          that falls inside the crop;
        face_align_score  importance-weighted closeness of faces to the
                          upper rule-of-thirds guide points;
        util_score        share of the crop covered by weighted objects.

    The scorer only reads its SceneAnalysis and is safe to call from
    several threads at once.

Non-goals:
    - No search logic (see cropsearch.cropper).
"""

from typing import Optional, Tuple

from cropsearch.analysis import SceneAnalysis
from cropsearch.config import ScoringConfig
from cropsearch.geometry import Point, Rectangle, Region, distance


def thirds_points(rect: Rectangle) -> Tuple[Point, Point]:
    """The two upper rule-of-thirds intersections of ``rect``."""
    top = rect.y + rect.height / 3
    return (
        Point(rect.x + rect.width / 3, top),
        Point(rect.x + rect.width * 2 / 3, top),
    )


class CropScorer:
    """Fitness function for crop rectangles.

    Usage:
        scorer = CropScorer(analyze(bundle))
        fitness = scorer(Rectangle(0.1, 0.1, 0.5, 0.5))
    """

    def __init__(
        self,
        scene: SceneAnalysis,
        config: Optional[ScoringConfig] = None,
    ) -> None:
        self._scene = scene
        self._config = config or ScoringConfig()

    @property
    def scene(self) -> SceneAnalysis:
        return self._scene

    def face_align_score(self, rect: Rectangle) -> float:
        score = 0.0
        for pose in self._scene.poses:
            face = pose.face_position
            if face is None or not rect.contains_point(face):
                continue
            first, second = thirds_points(rect)
            closeness = 1 - min(distance(face, first), distance(face, second))
            score += max(0.0, closeness) * pose.importance
        return score

    def coverage(self, rect: Rectangle) -> Tuple[float, float]:
        """Return (area_score, uncovered area of ``rect``)."""
        total = self._scene.total_weighted_area
        area_score = 0.0
        unused = Region().add(rect)

        for obj in self._scene.objects:
            overlap = obj.rect.intersection(rect)
            if overlap is None:
                continue
            unused.subtract(overlap)
            if total > 0:
                area_score += overlap.area * obj.strength / total

        return area_score, unused.area

    def area_score(self, rect: Rectangle) -> float:
        return self.coverage(rect)[0]

    def util_score(self, rect: Rectangle) -> float:
        area = rect.area
        if area <= 0:
            return 0.0
        return (area - self.coverage(rect)[1]) / area

    def fitness(self, rect: Rectangle) -> float:
        """Blended fitness of a crop rectangle (higher is better)."""
        area_score, unused = self.coverage(rect)
        area = rect.area
        util_score = (area - unused) / area if area > 0 else 0.0

        return (
            area_score * self._config.area_weight
            + self.face_align_score(rect) * self._config.face_align_weight
            + util_score * self._config.util_weight
        )

    __call__ = fitness
