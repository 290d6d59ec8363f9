"""
Crop Search — evolutionary search for the best crops of an image.

Public API:
    - CropFinder: The single entry point for crop search.
    - CropResult: The outcome of a search (two crops plus retained detections).
    - DetectionBundle: Object and pose detections for one image.
    - find_crops: One-off convenience wrapper around CropFinder.

The evolutionary engine (cropsearch.evolution) is independent of crops and
can drive any search.

Usage:
    from cropsearch import CropFinder, DetectionBundle

    finder = CropFinder()
    result = finder.find(DetectionBundle.from_dict(raw), aspect=4 / 3)
"""

from cropsearch.cropper import CropFinder, CropResult, find_crops
from cropsearch.detection import DetectionBundle

__all__ = ["CropFinder", "CropResult", "DetectionBundle", "find_crops"]
