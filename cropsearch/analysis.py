"""
Scene analysis for the crop search.

Responsibility:
    Turn raw detections into the read-only context the crop fitness is
    evaluated against:

        1. weigh each pose's face by landmark spread and confidence
           (importance, normalized to sum to 1);
        2. summarize each face (centroid and mean confidence);
        3. drop poses far less important than the most important one;
        4. pair "person" objects with poses, one-to-one;
        5. total up the weighted object area used to normalize coverage;
        6. prune people without a pose and poses without a person.

    Inputs are never modified. Everything derived lives in ObjectSummary,
    PoseSummary and SceneAnalysis.

Pose bounding boxes:
    Contested person/pose pairings are settled by how much the person
    rectangle overlaps the pose's bounding box. That box is the ``bounds``
    field supplied by the pose estimator; when it is missing the box around
    all of the pose's keypoints is used instead (see Pose.bounding_box).

Non-goals:
    - No globally optimal matching (pairing is greedy).
    - No fitness evaluation (see cropsearch.scoring).
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from cropsearch.detection import DetectedObject, DetectionBundle, Pose
from cropsearch.geometry import Point, Rectangle, distance
from cropsearch.weights import OBJECT_WEIGHTS, object_weight

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PoseSummary:
    """A pose together with everything derived from it.

    Attributes:
        pose: The original pose.
        importance: Normalized face importance (0 for poses without a face).
        face_position: Centroid of nose and eyes, None without a face.
        face_score: Mean confidence of nose and eyes, None without a face.
        person_index: Index of the matched person in SceneAnalysis.objects.
    """

    pose: Pose
    importance: float = 0.0
    face_position: Optional[Point] = None
    face_score: Optional[float] = None
    person_index: Optional[int] = None

    def to_dict(self) -> dict:
        out: Dict[str, Any] = self.pose.to_dict()
        out["importance"] = self.importance
        if self.face_position is not None:
            out["facePosition"] = self.face_position.to_dict()
            out["faceScore"] = self.face_score
        if self.person_index is not None:
            out["personIndex"] = self.person_index
        return out


@dataclass(frozen=True)
class ObjectSummary:
    """A detected object together with its class weight.

    Attributes:
        object: The original detection.
        weight: Class weight from the weight table.
        pose_index: Index of the matched pose in SceneAnalysis.poses.
    """

    object: DetectedObject
    weight: float = 0.0
    pose_index: Optional[int] = None

    @property
    def rect(self) -> Rectangle:
        return self.object.rect

    @property
    def strength(self) -> float:
        """Class weight times detection confidence."""
        return self.weight * self.object.score

    @property
    def weighted_area(self) -> float:
        return self.object.rect.area * self.strength

    def to_dict(self) -> dict:
        out = self.object.to_dict()
        if self.pose_index is not None:
            out["poseIndex"] = self.pose_index
        return out


@dataclass(frozen=True)
class SceneAnalysis:
    """Read-only detection context for fitness evaluation.

    Attributes:
        objects: Retained objects (unmatched people removed).
        poses: Retained poses (only those matched to a person).
        total_weighted_area: Sum of weighted areas over all input objects.
    """

    objects: Tuple[ObjectSummary, ...] = ()
    poses: Tuple[PoseSummary, ...] = ()
    total_weighted_area: float = 0.0


# ---------------------------------------------------------------------------
# Pipeline steps
# ---------------------------------------------------------------------------

def face_triangle_weight(pose: Pose) -> float:
    """Raw face weight: nose/eye triangle perimeter times summed confidence.

    Returns 0.0 for poses without all three face keypoints.
    """
    face = pose.face_keypoints()
    if face is None:
        return 0.0
    nose, left, right = face
    perimeter = (
        distance(nose.position, left.position)
        + distance(left.position, right.position)
        + distance(right.position, nose.position)
    )
    return perimeter * (nose.score + left.score + right.score)


def pose_importances(poses: Sequence[Pose]) -> List[float]:
    """Normalized face importance of each pose.

    Non-zero importances sum to 1. If no pose has a usable face every
    importance is 0.
    """
    raw = [face_triangle_weight(p) for p in poses]
    total = sum(raw)
    if total <= 0:
        return [0.0] * len(poses)
    return [w / total for w in raw]


def face_summary(pose: Pose) -> Optional[Tuple[Point, float]]:
    """(centroid, mean confidence) of nose and eyes, or None without a face."""
    face = pose.face_keypoints()
    if face is None:
        return None
    position = Point(
        sum(kp.position.x for kp in face) / 3,
        sum(kp.position.y for kp in face) / 3,
    )
    score = sum(kp.score for kp in face) / 3
    return position, score


def important_poses(
    poses: Sequence[Pose],
    importances: Sequence[float],
    floor: float,
) -> List[int]:
    """Indices of face poses at least ``floor`` times as important as the best.

    Poses without a face are never returned.
    """
    candidates = [i for i, p in enumerate(poses) if p.has_face]
    if not candidates:
        return []
    threshold = max(importances[i] for i in candidates) * floor
    kept = [i for i in candidates if importances[i] >= threshold]
    if len(kept) < len(candidates):
        logger.debug(
            "Importance floor dropped %d of %d face poses.",
            len(candidates) - len(kept), len(candidates),
        )
    return kept


def contains_face(rect: Rectangle, pose: Pose) -> bool:
    """True if ``rect`` contains nose and both eyes of ``pose``."""
    face = pose.face_keypoints()
    if face is None:
        return False
    return all(rect.contains_point(kp.position) for kp in face)


def _overlap(person: DetectedObject, pose: Pose) -> float:
    """Area shared by a person rectangle and a pose bounding box."""
    bounds = pose.bounding_box()
    if bounds is None:
        return 0.0
    shared = person.rect.intersection(bounds)
    return shared.area if shared is not None else 0.0


def match_people(
    objects: Sequence[DetectedObject],
    poses: Sequence[Pose],
    pose_indices: Sequence[int],
) -> Dict[int, int]:
    """Greedily pair person objects with the given poses.

    A person qualifies for a pose if its rectangle contains the pose's
    nose and eyes. When either side already has a partner, the newcomer
    wins only if its person/pose overlap is non-zero and at least as large
    as the existing pairing's; the losing pairing is dissolved.

    Returns:
        Mapping of pose index to object index. One-to-one.
    """
    person_of: Dict[int, int] = {}
    pose_of: Dict[int, int] = {}

    for p in pose_indices:
        pose = poses[p]
        for o, obj in enumerate(objects):
            if not obj.is_person or not contains_face(obj.rect, pose):
                continue

            overlap = _overlap(obj, pose)
            rival_pose = pose_of.get(o)
            rival_person = person_of.get(p)

            if rival_pose is not None or rival_person is not None:
                if overlap <= 0:
                    continue
                if rival_pose is not None and overlap < _overlap(obj, poses[rival_pose]):
                    continue
                if rival_person is not None and overlap < _overlap(objects[rival_person], pose):
                    continue

            if rival_pose is not None:
                del person_of[rival_pose]
            if rival_person is not None:
                del pose_of[rival_person]

            person_of[p] = o
            pose_of[o] = p

    return person_of


def total_weighted_area(
    objects: Sequence[DetectedObject],
    weights: Mapping[str, float] = OBJECT_WEIGHTS,
) -> float:
    """Sum of area × class weight × score over ``objects``."""
    return sum(
        o.rect.area * (object_weight(o.label, weights) * o.score) for o in objects
    )


def analyze(
    bundle: DetectionBundle,
    importance_floor: float = 0.5,
    weights: Mapping[str, float] = OBJECT_WEIGHTS,
) -> SceneAnalysis:
    """Run the full analysis pipeline over one bundle of detections.

    Args:
        bundle: Detections for one image, normalized coordinates.
        importance_floor: Fraction of the top importance a pose needs to
                          be considered at all.
        weights: Object class weight table.

    Returns:
        The pruned, cross-referenced SceneAnalysis.
    """
    objects = bundle.objects
    poses = bundle.poses

    importances = pose_importances(poses)
    candidates = important_poses(poses, importances, importance_floor)
    person_of = match_people(objects, poses, candidates)
    total = total_weighted_area(objects, weights)

    matched_people = set(person_of.values())
    kept_objects = [
        o for o, obj in enumerate(objects)
        if not obj.is_person or o in matched_people
    ]
    kept_poses = [p for p in candidates if p in person_of]

    object_slot = {o: i for i, o in enumerate(kept_objects)}
    pose_slot = {p: i for i, p in enumerate(kept_poses)}
    pose_of = {o: p for p, o in person_of.items()}

    object_summaries = tuple(
        ObjectSummary(
            object=objects[o],
            weight=object_weight(objects[o].label, weights),
            pose_index=pose_slot.get(pose_of[o]) if o in pose_of else None,
        )
        for o in kept_objects
    )

    pose_summaries = []
    for p in kept_poses:
        position, score = face_summary(poses[p])
        pose_summaries.append(PoseSummary(
            pose=poses[p],
            importance=importances[p],
            face_position=position,
            face_score=score,
            person_index=object_slot[person_of[p]],
        ))

    logger.debug(
        "Scene analysis: %d/%d objects, %d/%d poses retained, weighted area %.5f",
        len(object_summaries), len(objects), len(pose_summaries), len(poses), total,
    )

    return SceneAnalysis(
        objects=object_summaries,
        poses=tuple(pose_summaries),
        total_weighted_area=total,
    )
