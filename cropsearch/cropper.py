"""
CropFinder — the single public API for crop search.

Public contract:
    CropFinder.find(bundle: DetectionBundle, aspect: float) -> CropResult

Given detections for one image and a requested crop aspect ratio, two
independent evolutionary searches look for the best crop rectangle:
a tight one (50-70% of the largest crop of that aspect by default) and
a loose one (80-100%). Both rectangles are in normalized coordinates.

Constraints:
    - Input detections are never modified.
    - With a seed (config or explicit generator) results are bit-identical
      between runs, whether the two searches run sequentially or on two
      threads: each search draws from its own child generator.

Non-goals:
    - No detection, image decoding or I/O of any kind.
    - No guarantee of a globally optimal crop.
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

from cropsearch.analysis import ObjectSummary, PoseSummary, analyze
from cropsearch.config import AppConfig, SearchConfig, load_config
from cropsearch.detection import DetectionBundle
from cropsearch.evolution import (
    MAXIMIZE,
    EvolutionConfig,
    GenerationBuilder,
    RankedSelector,
    RunState,
    Terminator,
    run,
)
from cropsearch.geometry import Rectangle
from cropsearch.scoring import CropScorer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CropResult:
    """Outcome of a crop search.

    Attributes:
        elapsed: Wall-clock time of the whole search, in milliseconds.
        rect1: Best tight crop.
        rect2: Best loose crop.
        objects: Retained objects; ``pose_index`` refers into ``poses``.
        poses: Retained poses; ``person_index`` refers into ``objects``.
        fitness1: Fitness of ``rect1``.
        fitness2: Fitness of ``rect2``.
    """

    elapsed: float
    rect1: Rectangle
    rect2: Rectangle
    objects: Tuple[ObjectSummary, ...] = ()
    poses: Tuple[PoseSummary, ...] = ()
    fitness1: float = 0.0
    fitness2: float = 0.0

    def to_dict(self) -> dict:
        """Return a plain dict suitable for JSON serialization."""
        return {
            "elapsed": round(self.elapsed, 3),
            "rect1": self.rect1.to_dict(),
            "rect2": self.rect2.to_dict(),
            "objects": [o.to_dict() for o in self.objects],
            "poses": [p.to_dict() for p in self.poses],
        }


def normal_aspect(aspect: float, bundle: DetectionBundle) -> float:
    """Convert a pixel aspect ratio into normalized-coordinate terms.

    A crop that is ``aspect`` wide in pixels is ``aspect * height / width``
    wide in coordinates normalized to the image size. Without a known image
    size the aspect is returned unchanged.
    """
    if not bundle.has_size:
        return aspect
    return aspect * bundle.height / bundle.width


class ScaleBand:
    """Random generation and mutation of crops within one scale band.

    Every rectangle produced has the aspect of ``max_rect``, a size between
    ``low`` and ``high`` times that of ``max_rect``, and lies inside the
    unit square.
    """

    def __init__(
        self,
        max_rect: Rectangle,
        low: float,
        high: float,
        jitter: Tuple[float, float],
        mutation_scale: float,
    ) -> None:
        self.max_rect = max_rect
        self.low = low
        self.high = high
        self.jitter = jitter
        self.mutation_scale = mutation_scale

    def random(self, rng: np.random.Generator) -> Rectangle:
        scale = self.low + float(rng.random()) * (self.high - self.low)
        width = self.max_rect.width * scale
        height = self.max_rect.height * scale
        return Rectangle(
            float(rng.random()) * (1 - width),
            float(rng.random()) * (1 - height),
            width,
            height,
        )

    def mutate(self, state: RunState, rect: Rectangle) -> Rectangle:
        """Nudge by up to a pixel and rescale by up to ``mutation_scale``."""
        rng = state.rng
        jx, jy = self.jitter
        s = self.mutation_scale

        moved = rect.translate(
            float(rng.random()) * 2 * jx - jx,
            float(rng.random()) * 2 * jy - jy,
        )
        mutated = moved.scale(1 + float(rng.random()) * 2 * s - s)

        width, height = mutated.width, mutated.height
        if width > self.max_rect.width * self.high:
            width = self.max_rect.width * self.high
            height = self.max_rect.height * self.high
        elif width < self.max_rect.width * self.low:
            width = self.max_rect.width * self.low
            height = self.max_rect.height * self.low

        x = min(max(mutated.x, 0.0), 1 - width)
        y = min(max(mutated.y, 0.0), 1 - height)
        return Rectangle(x, y, width, height)


class CropFinder:
    """Finds the best tight and loose crops for a set of detections.

    Usage:
        finder = CropFinder()                       # Uses safe defaults
        finder = CropFinder(config=my_config)       # Custom config
        result = finder.find(bundle, aspect=4 / 3)
    """

    def __init__(self, config: Optional[AppConfig] = None) -> None:
        """Initialize the finder.

        Args:
            config: Application configuration. If None, safe defaults
                    are used (no config file required).

        Raises:
            ValueError: If configuration values are invalid.
        """
        if config is None:
            config = load_config()

        self._config = config

        logger.info(
            "CropFinder initialized (population=%d, generations=%d, seed=%s)",
            config.search.population_size,
            config.search.max_generations,
            config.search.seed,
        )

    @property
    def config(self) -> AppConfig:
        """Return the active configuration (read-only)."""
        return self._config

    def find(
        self,
        bundle: DetectionBundle,
        aspect: Optional[float] = None,
        rng: Optional[np.random.Generator] = None,
    ) -> CropResult:
        """Search for the best tight and loose crops.

        Args:
            bundle: Detections for one image, in normalized coordinates.
            aspect: Crop aspect ratio (width / height, in pixels). Defaults
                    to the configured input aspect.
            rng: Random generator. Defaults to one seeded from the
                 configured seed.

        Returns:
            A CropResult with both rectangles and the retained detections.

        Raises:
            ValueError: If aspect is not positive.
        """
        if aspect is None:
            aspect = self._config.input.aspect
        if aspect <= 0:
            raise ValueError(f"Crop aspect must be positive, got {aspect}.")

        search = self._config.search
        if rng is None:
            rng = np.random.default_rng(search.seed)

        start = time.perf_counter()

        scene = analyze(bundle, importance_floor=self._config.scoring.importance_floor)
        scorer = CropScorer(scene, self._config.scoring)

        max_rect = Rectangle.unit().contain(normal_aspect(aspect, bundle))
        width, height = (bundle.width, bundle.height) if bundle.has_size else search.nominal_size
        jitter = (1 / width, 1 / height)

        bands = [
            ScaleBand(max_rect, *search.tight_scale, jitter, search.mutation_scale),
            ScaleBand(max_rect, *search.loose_scale, jitter, search.mutation_scale),
        ]
        child_rngs = rng.spawn(len(bands))

        if search.parallel:
            with ThreadPoolExecutor(max_workers=len(bands)) as pool:
                futures = [
                    pool.submit(self._search, scorer, band, child)
                    for band, child in zip(bands, child_rngs)
                ]
                tight, loose = [f.result() for f in futures]
        else:
            tight, loose = [
                self._search(scorer, band, child)
                for band, child in zip(bands, child_rngs)
            ]

        elapsed = (time.perf_counter() - start) * 1000.0

        logger.info(
            "Crop search finished in %.1f ms (tight fitness=%.4f, loose fitness=%.4f)",
            elapsed, tight.fitness, loose.fitness,
        )

        return CropResult(
            elapsed=elapsed,
            rect1=tight.best.individual,
            rect2=loose.best.individual,
            objects=scene.objects,
            poses=scene.poses,
            fitness1=tight.fitness,
            fitness2=loose.fitness,
        )

    def _search(
        self,
        scorer: CropScorer,
        band: ScaleBand,
        rng: np.random.Generator,
    ) -> RunState:
        """Run one evolutionary search constrained to ``band``."""
        search: SearchConfig = self._config.search

        config = EvolutionConfig(
            population_size=search.population_size,
            random=band.random,
            fitness=scorer,
            fitness_sign=MAXIMIZE,
            terminate=Terminator(
                max_generations=search.max_generations,
                deadline=search.deadline,
            ),
            generate=GenerationBuilder(
                fittest=search.keep_fittest,
                mutate=search.mutations,
                random=search.random_count,
                select=RankedSelector(search.selection_bias),
                mutator=band.mutate,
            ),
        )

        state = run(config, rng=rng)

        logger.debug(
            "Band [%.2f, %.2f]: %d generations, best fitness %.4f",
            band.low, band.high, state.generation, state.fitness,
        )
        return state


def find_crops(
    bundle: DetectionBundle,
    aspect: float,
    config: Optional[AppConfig] = None,
    seed: Optional[int] = None,
) -> CropResult:
    """Convenience wrapper: one-off crop search.

    Args:
        bundle: Detections for one image.
        aspect: Crop aspect ratio (width / height, in pixels).
        config: Optional configuration, defaults when None.
        seed: Overrides the configured seed when given.
    """
    finder = CropFinder(config)
    rng = np.random.default_rng(seed) if seed is not None else None
    return finder.find(bundle, aspect, rng=rng)
