"""
Serialization for the crop search.

Responsibility:
    Read detection bundles from JSON files and export crop results to
    JSON for downstream consumption.

Non-goals:
    - No search, scoring or rendering logic.
    - No fetching of remote images or detections.
"""

import json
import logging
from pathlib import Path

from cropsearch.cropper import CropResult
from cropsearch.detection import DetectionBundle

logger = logging.getLogger(__name__)


def load_bundle(input_path: str) -> DetectionBundle:
    """Load a detection bundle from a JSON file.

    Args:
        input_path: Path to a JSON file in the combined detector format
                    (see DetectionBundle.from_dict).

    Returns:
        The parsed DetectionBundle. Malformed detections are skipped.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the file is not valid JSON or not a JSON object.
    """
    path = Path(input_path)
    if not path.is_file():
        raise FileNotFoundError(
            f"Detection bundle not found: {path}. "
            f"Provide the JSON produced by the object and pose detectors."
        )

    with open(path, "r", encoding="utf-8") as f:
        try:
            raw = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Detection bundle {path} is not valid JSON: {e}") from e

    bundle = DetectionBundle.from_dict(raw)
    logger.info(
        "Bundle loaded: %s (%d objects, %d poses)",
        path, len(bundle.objects), len(bundle.poses),
    )
    return bundle


def save_json(result: CropResult, output_path: str) -> None:
    """Export a crop result to a JSON file.

    Output schema:
        {
            "elapsed": 12.345,
            "rect1": {"x": ..., "y": ..., "width": ..., "height": ...},
            "rect2": {...},
            "objects": [{"class": ..., "score": ..., "rect": {...}, "poseIndex": 0}],
            "poses": [{"keypoints": {...}, "importance": ..., "personIndex": 0}]
        }

    Args:
        result: The crop result to write.
        output_path: Path to the output JSON file.

    Raises:
        OSError: If the output path is not writable.
    """
    _ensure_parent_dir(output_path)

    with open(output_path, "w", encoding="utf-8") as f:
        json.dump(result.to_dict(), f, indent=2)

    logger.info(
        "JSON output saved: %s (%d objects, %d poses)",
        output_path, len(result.objects), len(result.poses),
    )


def _ensure_parent_dir(path: str) -> None:
    """Create parent directories if they don't exist."""
    parent = Path(path).parent
    parent.mkdir(parents=True, exist_ok=True)
