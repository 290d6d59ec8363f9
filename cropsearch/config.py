"""
Configuration management for the crop search.

Provides a layered configuration system with the following precedence
(highest to lowest):

    CLI arguments > Environment variables > YAML config file > Defaults

Design constraints:
    - The system MUST run with zero configuration (safe defaults only).
    - Missing or invalid values fail early and loudly.
    - No search logic, scoring or I/O belongs here.

Non-goals:
    - No dynamic reloading.
    - No database-backed or remote configuration.
"""

import logging
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Optional, Tuple

import yaml

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Project root resolution
# ---------------------------------------------------------------------------
# Resolved relative to this file's location: cropsearch/config.py → project root
_PROJECT_ROOT = Path(__file__).resolve().parent.parent


def get_project_root() -> Path:
    """Return the resolved project root directory."""
    return _PROJECT_ROOT


# ---------------------------------------------------------------------------
# Fitness blend weights
# ---------------------------------------------------------------------------

AREA_SCORE_WEIGHT = 1.0
FACE_ALIGN_WEIGHT = 1.3
UTIL_SCORE_WEIGHT = 0.1


# ---------------------------------------------------------------------------
# Configuration dataclasses
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SearchConfig:
    """Parameters of the two evolutionary crop searches.

    Attributes:
        population_size: Individuals per generation.
        max_generations: Generations each search runs for.
        keep_fittest: Best members carried into the next generation unchanged.
        random_count: Fresh random individuals per generation.
        mutate_count: Mutated individuals per generation. None fills the
                      rest of the population.
        selection_bias: Ranked selection bias (>= 1, 1 means uniform).
        tight_scale: (min, max) scale band of the first crop, relative to
                     the largest crop of the requested aspect.
        loose_scale: (min, max) scale band of the second crop.
        mutation_scale: Mutations rescale by a factor in [1 - s, 1 + s).
        nominal_size: (width, height) in pixels used for the one-pixel
                      position jitter when the image size is unknown.
        seed: Random seed. None gives a different result on every run.
        parallel: Run the two searches on two threads.
        deadline: Optional wall-clock budget per search, in seconds.
    """

    population_size: int = 15
    max_generations: int = 40
    keep_fittest: int = 3
    random_count: int = 3
    mutate_count: Optional[int] = None
    selection_bias: float = 1.5
    tight_scale: Tuple[float, float] = (0.5, 0.7)
    loose_scale: Tuple[float, float] = (0.8, 1.0)
    mutation_scale: float = 0.1
    nominal_size: Tuple[int, int] = (640, 480)
    seed: Optional[int] = None
    parallel: bool = False
    deadline: Optional[float] = None

    @property
    def mutations(self) -> int:
        """Mutated individuals per generation after filling the remainder."""
        if self.mutate_count is not None:
            return self.mutate_count
        return self.population_size - self.keep_fittest - self.random_count


@dataclass(frozen=True)
class ScoringConfig:
    """Crop fitness weights.

    Attributes:
        area_weight: Weight of the weighted-object coverage score.
        face_align_weight: Weight of the rule-of-thirds face alignment score.
        util_weight: Weight of the crop utilization score.
        importance_floor: Poses less important than this fraction of the
                          most important pose are ignored.
    """

    area_weight: float = AREA_SCORE_WEIGHT
    face_align_weight: float = FACE_ALIGN_WEIGHT
    util_weight: float = UTIL_SCORE_WEIGHT
    importance_floor: float = 0.5


@dataclass(frozen=True)
class InputConfig:
    """Input configuration.

    Attributes:
        bundle: Path to the detection bundle JSON file.
        image: Optional path to the source image (used for visualization only).
        aspect: Requested crop aspect ratio (width / height, in pixels).
    """

    bundle: Optional[str] = None
    image: Optional[str] = None
    aspect: float = 1.0


@dataclass(frozen=True)
class OutputConfig:
    """Output behavior configuration.

    Attributes:
        mode: Output mode(s). Supports multiple comma-separated values:
              'print', 'save_json', 'save_image'.
              Example: "print,save_json"
        save_path: Directory where output artifacts are written.
    """

    mode: str = "print"
    save_path: str = "output/"


@dataclass(frozen=True)
class VisualizationConfig:
    """Visualization rendering parameters.

    Attributes:
        tight_color: BGR color of the first (tight) crop.
        loose_color: BGR color of the second (loose) crop.
        object_color: BGR color of detected object boxes.
        face_color: BGR color of face markers.
        thickness: Line thickness in pixels.
        show_objects: Whether to render detected objects and faces.
    """

    tight_color: Tuple[int, int, int] = (0, 255, 0)
    loose_color: Tuple[int, int, int] = (255, 128, 0)
    object_color: Tuple[int, int, int] = (160, 160, 160)
    face_color: Tuple[int, int, int] = (0, 0, 255)
    thickness: int = 2
    show_objects: bool = True


@dataclass(frozen=True)
class AppConfig:
    """Top-level application configuration.

    Aggregates all sub-configurations into a single, frozen object.
    """

    search: SearchConfig = field(default_factory=SearchConfig)
    scoring: ScoringConfig = field(default_factory=ScoringConfig)
    input: InputConfig = field(default_factory=InputConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    visualization: VisualizationConfig = field(default_factory=VisualizationConfig)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

_VALID_OUTPUT_MODES = {"print", "save_json", "save_image"}


def _validate_band(name: str, band: Tuple[float, float]) -> None:
    if len(band) != 2:
        raise ValueError(f"search.{name} must be a (min, max) pair, got {band}.")
    low, high = band
    if not (0.0 < low <= high <= 1.0):
        raise ValueError(
            f"search.{name} must satisfy 0 < min <= max <= 1, got {band}."
        )


def _validate(config: AppConfig) -> None:
    """Validate configuration values. Raises ValueError on invalid state."""
    search = config.search

    if search.population_size <= 0:
        raise ValueError(
            f"search.population_size must be positive, got {search.population_size}."
        )

    if search.max_generations <= 0:
        raise ValueError(
            f"search.max_generations must be positive, got {search.max_generations}."
        )

    counts = {
        "keep_fittest": search.keep_fittest,
        "random_count": search.random_count,
        "mutate_count": search.mutations,
    }
    negative = {k: v for k, v in counts.items() if v < 0}
    if negative:
        raise ValueError(
            f"search generation counts must be non-negative, got {negative}."
        )

    if sum(counts.values()) != search.population_size:
        raise ValueError(
            f"search generation counts {counts} must add up to "
            f"search.population_size ({search.population_size})."
        )

    if search.selection_bias < 1.0:
        raise ValueError(
            f"search.selection_bias must be >= 1, got {search.selection_bias}."
        )

    _validate_band("tight_scale", search.tight_scale)
    _validate_band("loose_scale", search.loose_scale)

    if not (0.0 <= search.mutation_scale < 1.0):
        raise ValueError(
            f"search.mutation_scale must be in [0.0, 1.0), got {search.mutation_scale}."
        )

    if len(search.nominal_size) != 2 or any(d <= 0 for d in search.nominal_size):
        raise ValueError(
            f"search.nominal_size must be a positive (width, height) pair, "
            f"got {search.nominal_size}."
        )

    if search.deadline is not None and search.deadline <= 0:
        raise ValueError(
            f"search.deadline must be positive or None, got {search.deadline}."
        )

    if not (0.0 <= config.scoring.importance_floor <= 1.0):
        raise ValueError(
            f"scoring.importance_floor must be in [0.0, 1.0], "
            f"got {config.scoring.importance_floor}."
        )

    if config.input.aspect <= 0:
        raise ValueError(
            f"input.aspect must be positive, got {config.input.aspect}."
        )

    modes = set(m.strip() for m in config.output.mode.split(','))
    invalid_modes = modes - _VALID_OUTPUT_MODES
    if invalid_modes:
        raise ValueError(
            f"Invalid output.mode(s): {invalid_modes}. "
            f"Valid modes: {_VALID_OUTPUT_MODES}. "
            f"Use comma-separated values for multiple outputs."
        )

    if config.visualization.thickness <= 0:
        raise ValueError(
            f"visualization.thickness must be positive, "
            f"got {config.visualization.thickness}."
        )


# ---------------------------------------------------------------------------
# YAML loading
# ---------------------------------------------------------------------------

def _parse_tuple(value, expected_len: int, cast_type=float):
    """Convert a list from YAML into a tuple of the expected type and length."""
    if isinstance(value, (list, tuple)):
        if len(value) != expected_len:
            raise ValueError(
                f"Expected {expected_len} values, got {len(value)}: {value}"
            )
        return tuple(cast_type(v) for v in value)
    if isinstance(value, str):
        return _parse_tuple([v.strip() for v in value.split(",")], expected_len, cast_type)
    return value


def _parse_bool(value) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(value)


def _optional(value, cast_type):
    if value is None or (isinstance(value, str) and value.strip().lower() in {"", "none", "null"}):
        return None
    return cast_type(value)


def _build_search_config(raw: dict) -> SearchConfig:
    """Build SearchConfig from a raw YAML dict."""
    kwargs = {}
    for key in ("population_size", "max_generations", "keep_fittest",
                "random_count"):
        if key in raw:
            kwargs[key] = int(raw[key])
    if "mutate_count" in raw:
        kwargs["mutate_count"] = _optional(raw["mutate_count"], int)
    if "selection_bias" in raw:
        kwargs["selection_bias"] = float(raw["selection_bias"])
    if "tight_scale" in raw:
        kwargs["tight_scale"] = _parse_tuple(raw["tight_scale"], 2, float)
    if "loose_scale" in raw:
        kwargs["loose_scale"] = _parse_tuple(raw["loose_scale"], 2, float)
    if "mutation_scale" in raw:
        kwargs["mutation_scale"] = float(raw["mutation_scale"])
    if "nominal_size" in raw:
        kwargs["nominal_size"] = _parse_tuple(raw["nominal_size"], 2, int)
    if "seed" in raw:
        kwargs["seed"] = _optional(raw["seed"], int)
    if "parallel" in raw:
        kwargs["parallel"] = _parse_bool(raw["parallel"])
    if "deadline" in raw:
        kwargs["deadline"] = _optional(raw["deadline"], float)
    return SearchConfig(**kwargs)


def _build_scoring_config(raw: dict) -> ScoringConfig:
    """Build ScoringConfig from a raw YAML dict."""
    kwargs = {}
    for key in ("area_weight", "face_align_weight", "util_weight", "importance_floor"):
        if key in raw:
            kwargs[key] = float(raw[key])
    return ScoringConfig(**kwargs)


def _build_input_config(raw: dict) -> InputConfig:
    """Build InputConfig from a raw YAML dict."""
    kwargs = {}
    if "bundle" in raw:
        kwargs["bundle"] = _optional(raw["bundle"], str)
    if "image" in raw:
        kwargs["image"] = _optional(raw["image"], str)
    if "aspect" in raw:
        kwargs["aspect"] = float(raw["aspect"])
    return InputConfig(**kwargs)


def _build_output_config(raw: dict) -> OutputConfig:
    """Build OutputConfig from a raw YAML dict."""
    kwargs = {}
    if "mode" in raw:
        kwargs["mode"] = str(raw["mode"]).lower()
    if "save_path" in raw:
        kwargs["save_path"] = str(raw["save_path"])
    return OutputConfig(**kwargs)


def _build_visualization_config(raw: dict) -> VisualizationConfig:
    """Build VisualizationConfig from a raw YAML dict."""
    kwargs = {}
    for key in ("tight_color", "loose_color", "object_color", "face_color"):
        if key in raw:
            kwargs[key] = _parse_tuple(raw[key], 3, int)
    if "thickness" in raw:
        kwargs["thickness"] = int(raw["thickness"])
    if "show_objects" in raw:
        kwargs["show_objects"] = _parse_bool(raw["show_objects"])
    return VisualizationConfig(**kwargs)


# ---------------------------------------------------------------------------
# Environment variable overrides
# ---------------------------------------------------------------------------

_ENV_PREFIX = "CROPSEARCH_"


def _apply_env_overrides(raw: dict) -> dict:
    """Apply environment variable overrides to the raw config dict.

    Environment variables follow the pattern:
        CROPSEARCH_SEARCH_SEED=42
        CROPSEARCH_INPUT_ASPECT=1.5
    """
    env_map = {
        f"{_ENV_PREFIX}SEARCH_POPULATION_SIZE": ("search", "population_size"),
        f"{_ENV_PREFIX}SEARCH_MAX_GENERATIONS": ("search", "max_generations"),
        f"{_ENV_PREFIX}SEARCH_SELECTION_BIAS": ("search", "selection_bias"),
        f"{_ENV_PREFIX}SEARCH_SEED": ("search", "seed"),
        f"{_ENV_PREFIX}SEARCH_PARALLEL": ("search", "parallel"),
        f"{_ENV_PREFIX}SEARCH_DEADLINE": ("search", "deadline"),
        f"{_ENV_PREFIX}SCORING_IMPORTANCE_FLOOR": ("scoring", "importance_floor"),
        f"{_ENV_PREFIX}INPUT_BUNDLE": ("input", "bundle"),
        f"{_ENV_PREFIX}INPUT_IMAGE": ("input", "image"),
        f"{_ENV_PREFIX}INPUT_ASPECT": ("input", "aspect"),
        f"{_ENV_PREFIX}OUTPUT_MODE": ("output", "mode"),
        f"{_ENV_PREFIX}OUTPUT_SAVE_PATH": ("output", "save_path"),
    }

    for env_var, (section, key) in env_map.items():
        value = os.environ.get(env_var)
        if value is not None:
            raw.setdefault(section, {})[key] = value
            logger.debug("Config override from env: %s=%s", env_var, value)

    return raw


# ---------------------------------------------------------------------------
# Public loader
# ---------------------------------------------------------------------------

def load_config(config_path: Optional[str] = None) -> AppConfig:
    """Load and validate application configuration.

    Precedence (highest → lowest):
        Environment variables > YAML file > Hard-coded defaults

    Args:
        config_path: Path to a YAML configuration file. If None,
                     the system runs entirely on defaults (safe for
                     programmatic usage).

    Returns:
        A validated, frozen AppConfig instance.

    Raises:
        FileNotFoundError: If config_path is provided but does not exist.
        ValueError: If any configuration value is invalid.
        yaml.YAMLError: If the YAML file is malformed.
    """
    raw: dict = {}

    # --- Layer 1: YAML file ---
    if config_path is not None:
        resolved = Path(config_path)
        if not resolved.is_absolute() and not resolved.is_file():
            resolved = _PROJECT_ROOT / resolved

        if not resolved.is_file():
            raise FileNotFoundError(
                f"Configuration file not found: {resolved}. "
                f"Provide a valid path or omit to use defaults."
            )

        logger.info("Loading config from: %s", resolved)
        with open(resolved, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}

    # --- Layer 2: Environment variable overrides ---
    raw = _apply_env_overrides(raw)

    # --- Build typed configs ---
    config = AppConfig(
        search=_build_search_config(raw.get("search", {})),
        scoring=_build_scoring_config(raw.get("scoring", {})),
        input=_build_input_config(raw.get("input", {})),
        output=_build_output_config(raw.get("output", {})),
        visualization=_build_visualization_config(raw.get("visualization", {})),
    )

    # --- Validate ---
    _validate(config)

    logger.debug("Configuration loaded: %s", config)
    return config


def with_overrides(config: AppConfig, **sections: dict) -> AppConfig:
    """Return a copy of ``config`` with per-section field overrides applied.

    Overrides whose value is None are ignored, so CLI arguments can be
    passed straight through:

        with_overrides(config, search={"seed": args.seed})

    Raises:
        ValueError: If a section is unknown or the result is invalid.
    """
    changes = {}
    for name, fields in sections.items():
        if not hasattr(config, name):
            raise ValueError(f"Unknown configuration section: '{name}'.")
        values = {k: v for k, v in fields.items() if v is not None}
        if values:
            changes[name] = replace(getattr(config, name), **values)

    updated = replace(config, **changes)
    _validate(updated)
    return updated
