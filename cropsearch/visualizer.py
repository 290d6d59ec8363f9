"""
Visualization for crop search results.

Responsibility:
    Draw the two crop rectangles, and optionally the retained objects and
    face positions, onto an image. This is a pure rendering module — it
    produces an annotated copy of the image and performs no I/O.

Non-goals:
    - No file writing, window management, or display logic.
    - No search or scoring logic.
"""

from typing import Tuple

import cv2
import numpy as np

from cropsearch.config import VisualizationConfig
from cropsearch.cropper import CropResult
from cropsearch.geometry import Point, Rectangle

# Hard-coded rendering constants (cosmetic internals, not user-facing)
_FONT = cv2.FONT_HERSHEY_SIMPLEX
_FONT_SCALE = 0.5
_FONT_THICKNESS = 1
_LABEL_PADDING = 4
_FACE_RADIUS = 4


def to_pixels(rect: Rectangle, width: int, height: int) -> Tuple[Tuple[int, int], Tuple[int, int]]:
    """Map a normalized rectangle onto (top-left, bottom-right) pixel corners.

    Corners are clamped to the image.
    """
    x1 = max(0, min(int(round(rect.x * width)), width - 1))
    y1 = max(0, min(int(round(rect.y * height)), height - 1))
    x2 = max(0, min(int(round(rect.right * width)), width - 1))
    y2 = max(0, min(int(round(rect.bottom * height)), height - 1))
    return (x1, y1), (x2, y2)


def _point_to_pixels(p: Point, width: int, height: int) -> Tuple[int, int]:
    return int(round(p.x * width)), int(round(p.y * height))


def _draw_label(
    image: np.ndarray,
    label: str,
    corner: Tuple[int, int],
    color: Tuple[int, int, int],
) -> None:
    """Draw a filled label box just inside the top-left corner."""
    (text_w, text_h), _ = cv2.getTextSize(label, _FONT, _FONT_SCALE, _FONT_THICKNESS)
    x, y = corner
    cv2.rectangle(
        image,
        (x, y),
        (x + text_w + _LABEL_PADDING, y + text_h + 2 * _LABEL_PADDING),
        color=color,
        thickness=cv2.FILLED,
    )
    cv2.putText(
        image,
        label,
        (x + _LABEL_PADDING // 2, y + text_h + _LABEL_PADDING),
        _FONT,
        _FONT_SCALE,
        (0, 0, 0),  # Black text on colored background
        _FONT_THICKNESS,
        cv2.LINE_AA,
    )


def draw_crops(
    image: np.ndarray,
    result: CropResult,
    config: VisualizationConfig,
) -> np.ndarray:
    """Draw crop rectangles (and optionally detections) onto an image.

    Args:
        image: Input BGR image (not modified — a copy is returned).
        result: Crop search result in normalized coordinates.
        config: Visualization parameters (colors, thickness, detail).

    Returns:
        A new BGR numpy array with the crops drawn.

    Raises:
        ValueError: If the image is empty.
    """
    if image is None or image.size == 0:
        raise ValueError("Cannot draw onto an empty image.")

    annotated = image.copy()
    height, width = annotated.shape[:2]

    if config.show_objects:
        for obj in result.objects:
            top_left, bottom_right = to_pixels(obj.rect, width, height)
            cv2.rectangle(
                annotated, top_left, bottom_right,
                color=config.object_color,
                thickness=1,
            )
            _draw_label(
                annotated, f"{obj.object.label} {obj.object.score:.2f}",
                top_left, config.object_color,
            )

        for pose in result.poses:
            if pose.face_position is None:
                continue
            cv2.circle(
                annotated,
                _point_to_pixels(pose.face_position, width, height),
                _FACE_RADIUS,
                config.face_color,
                thickness=cv2.FILLED,
            )

    for label, rect, color in (
        ("tight", result.rect1, config.tight_color),
        ("loose", result.rect2, config.loose_color),
    ):
        top_left, bottom_right = to_pixels(rect, width, height)
        cv2.rectangle(
            annotated, top_left, bottom_right,
            color=color,
            thickness=config.thickness,
        )
        _draw_label(annotated, label, top_left, color)

    return annotated
