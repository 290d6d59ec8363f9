"""
Output handling for the crop search.

Responsibility:
    Route a crop result to the configured output sinks: stdout, a JSON
    file, or an annotated copy of the source image. Multiple sinks can be
    active at once.

Non-goals:
    - No search logic.
    - No input acquisition.
"""

import json
import logging
import sys
from pathlib import Path
from typing import Optional, Set, TextIO

import cv2
import numpy as np

from cropsearch.config import AppConfig, get_project_root
from cropsearch.cropper import CropResult
from cropsearch.serializer import save_json
from cropsearch.visualizer import draw_crops

logger = logging.getLogger(__name__)


class OutputHandler:
    """Routes crop results to configured output sinks.

    Supports orthogonal outputs - multiple modes can be active simultaneously:
        - 'print': Write the result as JSON to stdout.
        - 'save_json': Write the result to ``crops.json``.
        - 'save_image': Write the source image with crops drawn to ``crops.jpg``.

    Usage:
        handler = OutputHandler(config)
        handler.process(result, image)
    """

    def __init__(self, config: AppConfig, stream: Optional[TextIO] = None) -> None:
        """Initialize the output handler.

        Args:
            config: Application configuration (output mode, paths, vis params).
            stream: Text stream for 'print' mode, stdout if None.
        """
        self._config = config
        self._stream = stream

        # Parse output modes (comma-separated for multiple outputs)
        self._modes: Set[str] = set(m.strip() for m in config.output.mode.split(','))

        # Resolve output path
        save_path = Path(config.output.save_path)
        if not save_path.is_absolute():
            save_path = get_project_root() / save_path
        self._save_path = save_path

        if self._modes & {'save_json', 'save_image'}:
            self._save_path.mkdir(parents=True, exist_ok=True)

        logger.info("OutputHandler initialized: modes=%s, save_path=%s",
                    self._modes, self._save_path)

    @property
    def save_path(self) -> Path:
        return self._save_path

    def process(self, result: CropResult, image: Optional[np.ndarray] = None) -> None:
        """Send one crop result through every active sink.

        Args:
            result: The crop result.
            image: Source BGR image, required for 'save_image'.
        """
        if 'print' in self._modes:
            stream = self._stream or sys.stdout
            json.dump(result.to_dict(), stream, indent=2)
            stream.write("\n")

        if 'save_json' in self._modes:
            save_json(result, str(self._save_path / "crops.json"))

        if 'save_image' in self._modes:
            self._handle_save_image(result, image)

    def _handle_save_image(self, result: CropResult, image: Optional[np.ndarray]) -> None:
        """Save the annotated image. Skipped with a warning without an image."""
        if image is None:
            logger.warning("save_image requested but no source image was given; skipping.")
            return

        annotated = draw_crops(image, result, self._config.visualization)
        output_file = self._save_path / "crops.jpg"
        if not cv2.imwrite(str(output_file), annotated):
            raise OSError(f"Failed to write annotated image: {output_file}")
        logger.info("Annotated image saved: %s", output_file)
