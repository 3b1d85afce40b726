"""Tests for the configuration classes in :mod:`nominal_spd.config`.

Each test logs its progress using the standard :mod:`logging` module so the
messages show up with ``pytest -o log_cli=true``.
"""

import logging

import numpy as np
import pytest

from nominal_spd.config import (
    ConfigurationError,
    FilterConfig,
    ObserverConfig,
    RunConfig,
    SearchConfig,
    StimulusDirection,
)

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def test_run_config_defaults():
    cfg = RunConfig()
    assert cfg.primary_headroom == 0.05
    assert cfg.observer.field_size_degrees == 30.0
    assert cfg.observer.pupil_diameter_mm == 2.0
    assert cfg.observer.age_years == 25.0
    assert cfg.filters.enabled is True
    assert cfg.filters.max_slope == 0.2
    assert cfg.filters.center_wavelengths is None
    assert cfg.search.n_primaries_to_keep == 8
    assert cfg.search.min_spacing_nm == 20.0
    assert cfg.search.n_tests is None
    assert cfg.search.step_size == 0.025
    assert cfg.search.shrink_factor_thresh == 0.5
    assert cfg.search.x0_policy == "background"
    assert cfg.surface_areas["EP"] == pytest.approx(4.0)
    assert cfg.surface_areas["SR"] == pytest.approx(1.8)
    assert cfg.surface_areas["21"] == pytest.approx(2.0)


def test_run_config_surface_areas_are_not_shared():
    a = RunConfig()
    a.surface_areas["XX"] = 1.0
    assert "XX" not in RunConfig().surface_areas


@pytest.mark.parametrize("headroom", [-0.1, 0.5, 0.7])
def test_run_config_invalid_headroom(headroom):
    with pytest.raises(ValueError):
        RunConfig(primary_headroom=headroom)


def test_run_config_invalid_surface_area():
    with pytest.raises(ValueError):
        RunConfig(surface_areas={"EP": 0.0})


def test_observer_config_invalid():
    with pytest.raises(ValueError):
        ObserverConfig(field_size_degrees=0)
    with pytest.raises(ValueError):
        ObserverConfig(pupil_diameter_mm=-1)
    with pytest.raises(ValueError):
        ObserverConfig(age_years=0)


def test_filter_config_invalid_slope():
    logger.info("Starting test_filter_config_invalid_slope")
    with pytest.raises(ValueError):
        FilterConfig(max_slope=0.0)
    with pytest.raises(ValueError):
        FilterConfig(center_wavelengths=[450.0, -1.0])


@pytest.mark.parametrize("kwargs", [
    dict(n_primaries_to_keep=0),
    dict(min_spacing_nm=-1.0),
    dict(n_tests=0),
    dict(background_mode="brightest"),
    dict(x0_policy="zeros"),
    dict(step_size=0.0),
    dict(step_size=1.0),
    dict(shrink_factor_thresh=1.5),
    dict(n_workers=0),
    dict(primaries_to_keep_best=[1, 1, 2]),
])
def test_search_config_invalid(kwargs):
    with pytest.raises(ValueError):
        SearchConfig(**kwargs)


def test_search_config_best_with_n_tests_warns(caplog):
    with caplog.at_level(logging.WARNING):
        cfg = SearchConfig(primaries_to_keep_best=[0, 2, 4], n_tests=10)
    assert list(cfg.primaries_to_keep_best) == [0, 2, 4]
    assert any("n_tests=10 will be ignored" in r.getMessage() for r in caplog.records)


def test_direction_normalises_inputs():
    d = StimulusDirection(
        name="LminusM",
        targets=[0, 1],
        ignore=[6],
        desired_contrast=[0.12, -0.12],
        contrast_groups=[[0, 1]],
        max_contrast_diff=0.005,
    )
    assert d.targets == (0, 1)
    assert d.contrast_groups == ((0, 1),)
    assert d.desired_contrast == (0.12, -0.12)
    np.testing.assert_allclose(d.desired, [0.12, -0.12])
    hash(d)


def test_direction_scalar_desired_broadcasts():
    d = StimulusDirection(name="Mel", targets=(6,), desired_contrast=0.6)
    np.testing.assert_allclose(d.desired, [0.6])
    d = StimulusDirection(name="S", targets=(2, 5), desired_contrast=0.7)
    np.testing.assert_allclose(d.desired, [0.7, 0.7])


@pytest.mark.parametrize("kwargs", [
    dict(name="", targets=(0,)),
    dict(name="x", targets=()),
    dict(name="x", targets=(0, 1), ignore=(1,)),
    dict(name="x", targets=(0, 1), minimize=(0,)),
    dict(name="x", targets=(0, 1), desired_contrast=(0.1, 0.2, 0.3)),
    dict(name="x", targets=(0, 1), contrast_groups=((0, 2),)),
    dict(name="x", targets=(0,), max_contrast_diff=-0.1),
])
def test_direction_invalid(kwargs):
    with pytest.raises(ValueError):
        StimulusDirection(**kwargs)


def test_scored_direction_needs_non_zero_first_contrast():
    with pytest.raises(ValueError):
        StimulusDirection(name="Mel", targets=(6,), desired_contrast=0.0, score=True)
    with pytest.raises(ValueError):
        StimulusDirection(name="LM", targets=(0, 1), desired_contrast=(0.0, 0.1), score=True)
    StimulusDirection(name="LM", targets=(0, 1), desired_contrast=(0.1, 0.0), score=True)
    StimulusDirection(name="Mel", targets=(6,), desired_contrast=0.0)


def test_direction_validate_receptors():
    d = StimulusDirection(name="x", targets=(0,), ignore=(7,))
    d.validate_receptors(8)
    with pytest.raises(ConfigurationError):
        d.validate_receptors(7)


def test_configuration_error_is_value_error():
    assert issubclass(ConfigurationError, ValueError)
