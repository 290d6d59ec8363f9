"""
Crop Search CLI Entrypoint.

Responsibility:
    Parse command-line arguments, configure the application, load the
    detection bundle, run the crop search and route the result to the
    configured outputs.

Usage:
    python main.py --bundle detections.json                   # Print crops
    python main.py --bundle detections.json --aspect 1.5 --seed 7
    python main.py --bundle detections.json --image photo.jpg \\
        --output-mode print,save_image
    python main.py --config my_config.yaml

This module is the executable entry point. It should not be imported
by other modules.
"""

import argparse
import logging
import sys
from typing import List, Optional

# Configure logging before importing local modules
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("main")

import cv2

from cropsearch.config import load_config, with_overrides
from cropsearch.cropper import CropFinder
from cropsearch.output_handler import OutputHandler
from cropsearch.serializer import load_bundle


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Crop Search — find the best framed crops for detected people and objects",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    parser.add_argument(
        "--bundle",
        type=str,
        help="Path to the detection bundle JSON (object + pose detector output).",
    )
    parser.add_argument(
        "--aspect",
        type=float,
        help="Crop aspect ratio, width / height. Overrides config.",
    )
    parser.add_argument(
        "--config",
        type=str,
        help="Path to YAML configuration file.",
    )
    parser.add_argument(
        "--seed",
        type=int,
        help="Random seed for reproducible crops. Overrides config.",
    )
    parser.add_argument(
        "--image",
        type=str,
        help="Source image, used to render the crops in save_image mode.",
    )
    parser.add_argument(
        "--output-mode",
        type=str,
        help="Output mode(s). Use comma-separated values for multiple outputs: "
             "print, save_json, save_image. Overrides config.",
    )
    parser.add_argument(
        "--output-path",
        type=str,
        help="Directory for output artifacts. Overrides config.",
    )

    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    """Run one crop search."""
    args = parse_args(argv)

    # 1. Load Configuration (CLI args > ENV > YAML > Defaults)
    try:
        config = load_config(args.config)
        config = with_overrides(
            config,
            input={"bundle": args.bundle, "image": args.image, "aspect": args.aspect},
            search={"seed": args.seed},
            output={"mode": args.output_mode, "save_path": args.output_path},
        )
        logger.info("Configuration active for this run.")

    except Exception as e:
        logger.error("Configuration error: %s", e)
        return 1

    if config.input.bundle is None:
        logger.error("No detection bundle given. Use --bundle or input.bundle in the config.")
        return 1

    # 2. Initialize Components and load inputs
    try:
        finder = CropFinder(config)
        output_handler = OutputHandler(config)
        bundle = load_bundle(config.input.bundle)

        image = None
        if config.input.image is not None:
            image = cv2.imread(config.input.image)
            if image is None:
                raise FileNotFoundError(f"Unreadable image: {config.input.image}")

    except (FileNotFoundError, ValueError, OSError) as e:
        logger.error("Initialization failed: %s", e)
        return 1
    except Exception as e:
        logger.exception("Unexpected initialization error: %s", e)
        return 1

    # 3. Search and output
    try:
        result = finder.find(bundle)
        output_handler.process(result, image)

    except KeyboardInterrupt:
        logger.info("Interrupted by user.")
        return 1
    except Exception as e:
        logger.exception("Runtime error during crop search: %s", e)
        return 1

    logger.info(
        "Crop search complete in %.1f ms: tight=%s loose=%s",
        result.elapsed, result.rect1, result.rect2,
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
