"""
Tests for the CropFinder API.
"""

from dataclasses import replace

import numpy as np
import pytest

from cropsearch import CropFinder, CropResult, DetectionBundle, find_crops
from cropsearch.analysis import analyze
from cropsearch.config import AppConfig, SearchConfig
from cropsearch.cropper import ScaleBand, normal_aspect
from cropsearch.evolution import RunState
from cropsearch.geometry import Rectangle
from cropsearch.scoring import CropScorer

_EPS = 1e-9


def _config(**search) -> AppConfig:
    search.setdefault("seed", 1234)
    return AppConfig(search=SearchConfig(**search))


def _scene(finder, bundle):
    return analyze(bundle, importance_floor=finder.config.scoring.importance_floor)


def _inside_unit_square(rect: Rectangle) -> bool:
    return (
        rect.x >= -_EPS and rect.y >= -_EPS
        and rect.right <= 1 + _EPS and rect.bottom <= 1 + _EPS
    )


def test_normal_aspect():
    """Test pixel-to-normalized aspect conversion."""
    sized = DetectionBundle(width=400, height=300)

    assert normal_aspect(4 / 3, sized) == pytest.approx(1.0)
    assert normal_aspect(2.0, DetectionBundle()) == 2.0


def test_find_cat_crop(cat_bundle):
    """Test that both crops frame the only object in the image."""
    bundle = DetectionBundle.from_dict(cat_bundle)
    cat = bundle.objects[0].rect
    finder = CropFinder(_config())

    result = finder.find(bundle, aspect=1.0)

    assert isinstance(result, CropResult)
    assert result.rect1.intersection(cat) is not None
    assert result.rect2.intersection(cat) is not None

    scorer = CropScorer(_scene(finder, bundle))
    max_rect = Rectangle.unit().contain(1.0)
    assert scorer.area_score(result.rect1) >= scorer.area_score(max_rect) - _EPS
    assert result.fitness1 == pytest.approx(scorer.fitness(result.rect1))
    assert result.fitness2 == pytest.approx(scorer.fitness(result.rect2))


def test_find_portrait_matches_person_and_face(portrait_bundle):
    """Test person/pose pairing and face-aware crops for a portrait."""
    bundle = DetectionBundle.from_dict(portrait_bundle)
    result = CropFinder(_config()).find(bundle, aspect=4 / 3)

    assert len(result.poses) == 1
    assert len(result.objects) == 1
    assert result.poses[0].person_index == 0
    assert result.objects[0].pose_index == 0
    assert result.poses[0].importance == pytest.approx(1.0)

    scorer = CropScorer(_scene(CropFinder(_config()), bundle))
    assert scorer.face_align_score(Rectangle(0.2, 0.1, 0.6, 0.6)) > 0.0
    # The best crop keeps the face in frame
    face = result.poses[0].face_position
    assert result.rect2.contains_point(face)


def test_crops_stay_in_image_and_band(portrait_bundle):
    """Test the unit-square and scale-band constraints on both crops."""
    bundle = DetectionBundle.from_dict(portrait_bundle)
    config = _config()
    aspect = 16 / 9

    result = CropFinder(config).find(bundle, aspect=aspect)
    max_rect = Rectangle.unit().contain(normal_aspect(aspect, bundle))

    for rect, (low, high) in (
        (result.rect1, config.search.tight_scale),
        (result.rect2, config.search.loose_scale),
    ):
        assert _inside_unit_square(rect)
        scale = rect.width / max_rect.width
        assert low - _EPS <= scale <= high + _EPS
        # Same aspect as the largest crop
        assert rect.width / rect.height == pytest.approx(max_rect.width / max_rect.height)


def test_find_is_deterministic_with_seed(portrait_bundle):
    """Test identical crops for identical seeds."""
    bundle = DetectionBundle.from_dict(portrait_bundle)

    a = CropFinder(_config(seed=99)).find(bundle, aspect=1.5)
    b = CropFinder(_config(seed=99)).find(bundle, aspect=1.5)

    assert a.rect1 == b.rect1
    assert a.rect2 == b.rect2


def test_parallel_matches_sequential(portrait_bundle):
    """Test that running both searches on threads changes nothing."""
    bundle = DetectionBundle.from_dict(portrait_bundle)

    sequential = CropFinder(_config(seed=5)).find(bundle, aspect=1.0)
    parallel = CropFinder(_config(seed=5, parallel=True)).find(bundle, aspect=1.0)

    assert parallel.rect1 == sequential.rect1
    assert parallel.rect2 == sequential.rect2


def test_explicit_rng_overrides_seed(cat_bundle):
    """Test passing a generator directly."""
    bundle = DetectionBundle.from_dict(cat_bundle)
    finder = CropFinder(_config(seed=None))

    a = finder.find(bundle, aspect=1.0, rng=np.random.default_rng(3))
    b = finder.find(bundle, aspect=1.0, rng=np.random.default_rng(3))
    c = find_crops(bundle, 1.0, config=_config(seed=None), seed=3)

    assert a.rect1 == b.rect1 == c.rect1


def test_find_with_no_detections():
    """Test that an empty bundle still yields valid crops."""
    result = CropFinder(_config()).find(DetectionBundle(), aspect=1.0)

    assert _inside_unit_square(result.rect1)
    assert _inside_unit_square(result.rect2)
    assert result.objects == ()
    assert result.poses == ()


def test_find_does_not_modify_bundle(portrait_bundle):
    """Test that the input bundle is left untouched."""
    bundle = DetectionBundle.from_dict(portrait_bundle)
    before = (bundle.objects, [p.to_dict() for p in bundle.poses])

    CropFinder(_config()).find(bundle, aspect=1.0)

    assert (bundle.objects, [p.to_dict() for p in bundle.poses]) == before


@pytest.mark.parametrize("aspect", [0.0, -1.0])
def test_find_rejects_non_positive_aspect(aspect):
    """Test fail-fast on impossible aspect ratios."""
    with pytest.raises(ValueError, match="aspect"):
        CropFinder(_config()).find(DetectionBundle(), aspect=aspect)


def test_find_uses_configured_aspect(cat_bundle):
    """Test the configured aspect when none is passed."""
    config = _config()
    config = replace(config, input=replace(config.input, aspect=2.0))
    bundle = DetectionBundle.from_dict(cat_bundle)

    result = CropFinder(config).find(bundle)

    assert result.rect2.width / result.rect2.height == pytest.approx(2.0)


def test_result_to_dict(portrait_bundle):
    """Test the JSON-ready result shape."""
    bundle = DetectionBundle.from_dict(portrait_bundle)
    out = CropFinder(_config()).find(bundle, aspect=1.0).to_dict()

    assert set(out) == {"elapsed", "rect1", "rect2", "objects", "poses"}
    assert set(out["rect1"]) == {"x", "y", "width", "height"}
    assert out["objects"][0]["class"] == "person"
    assert out["objects"][0]["poseIndex"] == 0
    assert out["poses"][0]["personIndex"] == 0
    assert out["elapsed"] >= 0


# ---------------------------------------------------------------------------
# ScaleBand
# ---------------------------------------------------------------------------

def _band_state(seed=0) -> RunState:
    return RunState(config=None, rng=np.random.default_rng(seed))


def test_scale_band_random_within_band():
    """Test random crops respect the band and the unit square."""
    max_rect = Rectangle.unit().contain(1.5)
    band = ScaleBand(max_rect, 0.5, 0.7, (1 / 640, 1 / 480), 0.1)
    rng = np.random.default_rng(0)

    for _ in range(200):
        rect = band.random(rng)
        assert _inside_unit_square(rect)
        assert 0.5 - _EPS <= rect.width / max_rect.width <= 0.7 + _EPS


def test_scale_band_mutate_clamps():
    """Test mutation keeps crops inside the band and the image."""
    max_rect = Rectangle.unit().contain(1.0)
    band = ScaleBand(max_rect, 0.8, 1.0, (0.01, 0.01), 0.1)
    state = _band_state()

    rect = Rectangle(0.0, 0.0, 1.0, 1.0)
    for _ in range(200):
        rect = band.mutate(state, rect)
        assert _inside_unit_square(rect)
        assert 0.8 - _EPS <= rect.width <= 1.0 + _EPS
