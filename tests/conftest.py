"""
Shared fixtures: small hand-made detection bundles.
"""

import pytest


def make_pose(nose, left_eye, right_eye, score=1.0, bounds=None, extra=None):
    """Build a raw pose dict with the three face keypoints."""
    keypoints = {
        "nose": {"score": score, "position": {"x": nose[0], "y": nose[1]}},
        "leftEye": {"score": score, "position": {"x": left_eye[0], "y": left_eye[1]}},
        "rightEye": {"score": score, "position": {"x": right_eye[0], "y": right_eye[1]}},
    }
    for name, (x, y) in (extra or {}).items():
        keypoints[name] = {"score": score, "position": {"x": x, "y": y}}
    pose = {"score": score, "keypoints": keypoints}
    if bounds is not None:
        pose["bounds"] = dict(zip(("x", "y", "width", "height"), bounds))
    return pose


def make_object(label, rect, score=1.0):
    """Build a raw object detector entry."""
    return {
        "class": label,
        "score": score,
        "rect": dict(zip(("x", "y", "width", "height"), rect)),
    }


@pytest.fixture
def cat_bundle():
    """No poses, a single cat in the middle of a square image."""
    return {
        "width": 100,
        "height": 100,
        "cocossd": {"objects": [make_object("cat", (0.4, 0.4, 0.2, 0.2))]},
        "posenet": {"poses": []},
    }


@pytest.fixture
def portrait_bundle():
    """One person with a clearly visible face in a 4:3 image."""
    return {
        "width": 400,
        "height": 300,
        "cocossd": {"objects": [make_object("person", (0.3, 0.1, 0.4, 0.8), score=0.9)]},
        "posenet": {"poses": [
            make_pose((0.5, 0.3), (0.53, 0.27), (0.47, 0.27),
                      extra={"leftHip": (0.55, 0.7), "rightHip": (0.45, 0.7)}),
        ]},
    }
