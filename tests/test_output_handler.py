"""
Tests for output routing and the CLI entry point.
"""

import io
import json
import logging

import numpy as np

from cropsearch.config import AppConfig, OutputConfig
from cropsearch.cropper import CropResult
from cropsearch.geometry import Rectangle
from cropsearch.output_handler import OutputHandler

import main


def _result() -> CropResult:
    return CropResult(
        elapsed=3.0,
        rect1=Rectangle(0.25, 0.25, 0.5, 0.5),
        rect2=Rectangle(0.1, 0.1, 0.8, 0.8),
    )


def _config(mode, path) -> AppConfig:
    return AppConfig(output=OutputConfig(mode=mode, save_path=str(path)))


def test_print_mode_writes_json():
    """Test that 'print' writes the result to the stream."""
    stream = io.StringIO()
    OutputHandler(_config("print", "unused"), stream=stream).process(_result())

    data = json.loads(stream.getvalue())
    assert data["rect1"]["width"] == 0.5


def test_multiple_modes(tmp_path):
    """Test orthogonal outputs in one pass."""
    stream = io.StringIO()
    handler = OutputHandler(_config("print,save_json,save_image", tmp_path), stream=stream)

    handler.process(_result(), np.zeros((60, 80, 3), dtype=np.uint8))

    assert stream.getvalue()
    assert (tmp_path / "crops.json").is_file()
    assert (tmp_path / "crops.jpg").is_file()


def test_save_image_without_image_is_skipped(tmp_path, caplog):
    """Test that a missing source image only warns."""
    handler = OutputHandler(_config("save_image", tmp_path))

    with caplog.at_level(logging.WARNING):
        handler.process(_result())

    assert not (tmp_path / "crops.jpg").exists()
    assert "no source image" in caplog.text


def test_main_writes_crops(tmp_path, portrait_bundle):
    """Test a full CLI run to a JSON file."""
    bundle_path = tmp_path / "bundle.json"
    bundle_path.write_text(json.dumps(portrait_bundle), encoding="utf-8")
    out_dir = tmp_path / "out"

    code = main.main([
        "--bundle", str(bundle_path),
        "--aspect", "1.5",
        "--seed", "4",
        "--output-mode", "save_json",
        "--output-path", str(out_dir),
    ])

    assert code == 0
    data = json.loads((out_dir / "crops.json").read_text(encoding="utf-8"))
    assert set(data) == {"elapsed", "rect1", "rect2", "objects", "poses"}


def test_main_reports_errors(tmp_path):
    """Test non-zero exit codes for unusable input."""
    assert main.main(["--output-mode", "print"]) == 1
    assert main.main(["--bundle", str(tmp_path / "absent.json")]) == 1
    assert main.main(["--bundle", "x.json", "--aspect", "-1"]) == 1
