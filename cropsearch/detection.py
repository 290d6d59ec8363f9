"""
Detection data transfer objects.

This module defines the structured detections the crop search consumes:
objects from the object detector and poses from the pose estimator, all
in coordinates normalized to the image size. Instances are frozen; every
value derived from them during analysis lives in separate structures.

Parsing from the detector JSON shape is tolerant: malformed entries are
logged and skipped, never raised, so one bad detection cannot abort a
search.

Non-goals:
    - No running of detection models.
    - No pixel-space coordinates.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

from cropsearch.geometry import Point, Rectangle

logger = logging.getLogger(__name__)

NOSE = "nose"
LEFT_EYE = "leftEye"
RIGHT_EYE = "rightEye"

# The three keypoints a face is built from
FACE_KEYPOINTS: Tuple[str, str, str] = (NOSE, LEFT_EYE, RIGHT_EYE)

PERSON_CLASS = "person"


@dataclass(frozen=True, slots=True)
class Keypoint:
    """A named body landmark.

    Attributes:
        score: Landmark confidence in [0.0, 1.0].
        position: Normalized landmark position.
    """

    score: float
    position: Point

    def to_dict(self) -> dict:
        return {"score": self.score, "position": self.position.to_dict()}


@dataclass(frozen=True)
class Pose:
    """One person's pose as produced by the pose estimator.

    Attributes:
        keypoints: Landmarks by part name (``nose``, ``leftEye``, ...).
        score: Overall pose confidence.
        bounds: Bounding box reported by the pose estimator, if any.
    """

    keypoints: Mapping[str, Keypoint] = field(default_factory=dict)
    score: float = 0.0
    bounds: Optional[Rectangle] = None

    @property
    def has_face(self) -> bool:
        """True if nose and both eyes are present."""
        return all(name in self.keypoints for name in FACE_KEYPOINTS)

    def face_keypoints(self) -> Optional[Tuple[Keypoint, Keypoint, Keypoint]]:
        """The (nose, left eye, right eye) keypoints, or None if any is missing."""
        if not self.has_face:
            return None
        return tuple(self.keypoints[name] for name in FACE_KEYPOINTS)

    def bounding_box(self) -> Optional[Rectangle]:
        """The pose's bounding box.

        Uses ``bounds`` when the pose estimator supplied one, otherwise the
        box around every keypoint position. None if neither is available.
        """
        if self.bounds is not None:
            return self.bounds
        return Rectangle.bounding([kp.position for kp in self.keypoints.values()])

    def to_dict(self) -> dict:
        out: Dict[str, Any] = {
            "score": self.score,
            "keypoints": {name: kp.to_dict() for name, kp in self.keypoints.items()},
        }
        if self.bounds is not None:
            out["bounds"] = self.bounds.to_dict()
        return out


@dataclass(frozen=True, slots=True)
class DetectedObject:
    """A single detected object.

    Attributes:
        label: Detector class name (``person``, ``cat``, ...).
        score: Detection confidence in [0.0, 1.0].
        rect: Normalized bounding rectangle.
    """

    label: str
    score: float
    rect: Rectangle

    @property
    def is_person(self) -> bool:
        return self.label == PERSON_CLASS

    def to_dict(self) -> dict:
        return {"class": self.label, "score": self.score, "rect": self.rect.to_dict()}


@dataclass(frozen=True)
class DetectionBundle:
    """Everything known about one image.

    Attributes:
        objects: Object detector results.
        poses: Pose estimator results.
        width: Image width in pixels (0 if unknown).
        height: Image height in pixels (0 if unknown).
    """

    objects: Tuple[DetectedObject, ...] = ()
    poses: Tuple[Pose, ...] = ()
    width: int = 0
    height: int = 0

    @property
    def has_size(self) -> bool:
        return self.width > 0 and self.height > 0

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "DetectionBundle":
        """Build a bundle from the combined detector output.

        Expected shape::

            {
                "width": 640, "height": 480,
                "cocossd": {"objects": [{"class", "score", "rect": {...}}]},
                "posenet": {"poses": [{"score", "keypoints", "bounds"?}]}
            }

        ``keypoints`` may be a mapping of part name to ``{score, position}``
        or a list of ``{part, score, position}`` entries. The image size may
        also be given inside the ``posenet`` or ``cocossd`` sections.

        Raises:
            ValueError: If ``raw`` is not a mapping.
        """
        if not isinstance(raw, Mapping):
            raise ValueError(
                f"Detection bundle must be a JSON object, got {type(raw).__name__}."
            )

        cocossd = _section(raw, "cocossd")
        posenet = _section(raw, "posenet")

        objects = tuple(
            obj for obj in (_parse_object(o, i) for i, o in enumerate(_entries(cocossd, "objects")))
            if obj is not None
        )
        poses = tuple(
            pose for pose in (_parse_pose(p, i) for i, p in enumerate(_entries(posenet, "poses")))
            if pose is not None
        )

        width, height = _parse_size(raw, posenet, cocossd)

        logger.debug(
            "Parsed bundle: %d objects, %d poses, size=%dx%d",
            len(objects), len(poses), width, height,
        )
        return cls(objects=objects, poses=poses, width=width, height=height)


# ---------------------------------------------------------------------------
# Tolerant parsing helpers
# ---------------------------------------------------------------------------

def _section(raw: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    """The named detector section, or an empty one if missing or malformed."""
    section = raw.get(name)
    if section is None:
        return {}
    if not isinstance(section, Mapping):
        logger.warning(
            "Ignoring '%s' section: expected an object, got %s.",
            name, type(section).__name__,
        )
        return {}
    return section


def _entries(section: Mapping[str, Any], name: str) -> List[Any]:
    """The named list inside a section, or an empty list if missing or malformed."""
    entries = section.get(name)
    if entries is None:
        return []
    if not isinstance(entries, list):
        logger.warning(
            "Ignoring '%s': expected a list, got %s.",
            name, type(entries).__name__,
        )
        return []
    return entries


def _parse_size(*sections: Mapping[str, Any]) -> Tuple[int, int]:
    """First usable (width, height) pair among the given sections."""
    for section in sections:
        try:
            width = int(section.get("width") or 0)
            height = int(section.get("height") or 0)
        except (TypeError, ValueError, OverflowError):
            continue
        if width > 0 and height > 0:
            return width, height
    return 0, 0


def _parse_point(raw: Any) -> Point:
    return Point(float(raw["x"]), float(raw["y"]))


def _parse_keypoint(raw: Any) -> Keypoint:
    return Keypoint(score=float(raw["score"]), position=_parse_point(raw["position"]))


def _parse_keypoints(raw: Any, pose_index: int) -> Dict[str, Keypoint]:
    if isinstance(raw, Mapping):
        entries = list(raw.items())
    elif isinstance(raw, list):
        entries = [(e.get("part") if isinstance(e, Mapping) else None, e) for e in raw]
    else:
        return {}

    keypoints: Dict[str, Keypoint] = {}
    for name, entry in entries:
        if not name:
            logger.debug("Pose %d: skipping unnamed keypoint.", pose_index)
            continue
        try:
            keypoints[str(name)] = _parse_keypoint(entry)
        except (KeyError, TypeError, ValueError):
            logger.debug("Pose %d: skipping malformed keypoint '%s'.", pose_index, name)
    return keypoints


def _parse_pose(raw: Any, index: int) -> Optional[Pose]:
    if not isinstance(raw, Mapping):
        logger.warning("Skipping pose %d: expected an object.", index)
        return None

    bounds = None
    if raw.get("bounds") is not None:
        try:
            bounds = Rectangle.from_dict(raw["bounds"])
        except (KeyError, TypeError, ValueError):
            logger.debug("Pose %d: ignoring malformed bounds.", index)

    try:
        score = float(raw.get("score") or 0.0)
    except (TypeError, ValueError):
        score = 0.0

    return Pose(
        keypoints=_parse_keypoints(raw.get("keypoints"), index),
        score=score,
        bounds=bounds,
    )


def _parse_object(raw: Any, index: int) -> Optional[DetectedObject]:
    try:
        return DetectedObject(
            label=str(raw["class"]),
            score=float(raw["score"]),
            rect=Rectangle.from_dict(raw["rect"]),
        )
    except (KeyError, TypeError, ValueError):
        logger.warning("Skipping malformed object %d: %r", index, raw)
        return None
