"""
Tests for crop rendering.
"""

import numpy as np
import pytest

from cropsearch.analysis import analyze
from cropsearch.config import VisualizationConfig
from cropsearch.cropper import CropResult
from cropsearch.detection import DetectionBundle
from cropsearch.geometry import Rectangle
from cropsearch.visualizer import draw_crops, to_pixels


def _result(bundle=None) -> CropResult:
    scene = analyze(bundle or DetectionBundle())
    return CropResult(
        elapsed=1.0,
        rect1=Rectangle(0.25, 0.25, 0.5, 0.5),
        rect2=Rectangle(0.1, 0.1, 0.8, 0.8),
        objects=scene.objects,
        poses=scene.poses,
    )


def test_to_pixels_clamps():
    """Test normalized-to-pixel conversion stays inside the image."""
    assert to_pixels(Rectangle(0.25, 0.5, 0.5, 0.25), 100, 200) == ((25, 100), (75, 150))
    assert to_pixels(Rectangle(-0.1, -0.1, 1.5, 1.5), 100, 100) == ((0, 0), (99, 99))


def test_draw_crops_returns_annotated_copy():
    """Test that drawing leaves the input untouched."""
    image = np.zeros((100, 200, 3), dtype=np.uint8)

    annotated = draw_crops(image, _result(), VisualizationConfig())

    assert annotated.shape == image.shape
    assert not image.any()
    assert annotated.any()
    # Tight crop border in its configured BGR color
    assert tuple(annotated[75, 100]) == (0, 255, 0)


def test_draw_crops_with_detections(portrait_bundle):
    """Test rendering of objects and faces."""
    image = np.zeros((300, 400, 3), dtype=np.uint8)
    result = _result(DetectionBundle.from_dict(portrait_bundle))
    config = VisualizationConfig()

    shown = draw_crops(image, result, config)
    hidden = draw_crops(image, result, VisualizationConfig(show_objects=False))

    face = result.poses[0].face_position
    fx, fy = int(round(face.x * 400)), int(round(face.y * 300))
    assert tuple(shown[fy, fx]) == config.face_color
    assert tuple(hidden[fy, fx]) != config.face_color


def test_draw_crops_rejects_empty_image():
    """Test fail-fast on an empty image."""
    with pytest.raises(ValueError, match="empty"):
        draw_crops(np.zeros((0, 0, 3), dtype=np.uint8), _result(), VisualizationConfig())
