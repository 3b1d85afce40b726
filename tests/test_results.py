# File: tests/test_results.py
"""
Unit tests for nominal_spd.results: the npz/json result set on disk.
"""
import json

import numpy as np
import pytest

from nominal_spd.config import RunConfig, SearchConfig
from nominal_spd.directions import PHOTORECEPTOR_NAMES, default_directions
from nominal_spd.results import JSON_NAME, NPZ_NAME, load_result_set, result_arrays, save_result_set
from nominal_spd.search import PrimarySearch


@pytest.fixture
def search_result(primary_manager, T):
    config = RunConfig(
        search=SearchConfig(n_primaries_to_keep=5, primaries_to_keep_best=[0, 2, 4, 6, 8], random_seed=0),
        verbose=False,
    )
    return PrimarySearch(config, primary_manager, T, PHOTORECEPTOR_NAMES, default_directions()).run()


def test_result_arrays_keys(search_result):
    arrays = result_arrays(search_result)
    for key in ("primaries", "names", "receptor_names", "T_receptors", "B_primary",
                "B_primary_pre_filter", "filter_center_wavelengths", "ambient_spd", "scores"):
        assert key in arrays
    assert "LMS__positive_contrast" in arrays
    assert "SnoMel__negative_spd" in arrays


def test_save_and_load_round_trip(search_result, tmp_path):
    out = save_result_set(search_result, tmp_path / "nested" / "out")
    assert (out / NPZ_NAME).exists()
    assert (out / JSON_NAME).exists()

    loaded = load_result_set(out)
    best = search_result.best
    np.testing.assert_array_equal(loaded["primaries"], [0, 2, 4, 6, 8])
    assert loaded["names"].tolist() == best.names
    assert loaded["receptor_names"].tolist() == PHOTORECEPTOR_NAMES
    np.testing.assert_array_equal(loaded["B_primary"], best.B)
    np.testing.assert_array_equal(loaded["T_receptors"], search_result.T)
    for name, res in best.directions.items():
        np.testing.assert_array_equal(loaded[name]["modulation_primary"], res.modulation_primary)
        np.testing.assert_array_equal(loaded[name]["positive_spd"], res.positive_spd)


def test_json_summary(search_result, tmp_path):
    save_result_set(search_result, tmp_path)
    with open(tmp_path / JSON_NAME) as f:
        summary = json.load(f)
    assert summary["primaries"] == [0, 2, 4, 6, 8]
    assert summary["n_tested"] == 1
    assert summary["best_index"] == 0
    assert "timestamp" in summary
    assert [d["name"] for d in summary["directions"]] == ["LMS", "LminusM", "S", "Mel", "SnoMel"]
    assert summary["directions"][0]["contrast_groups"] == [[0, 1, 2]]
    assert len(summary["contrasts"]["Mel"]["positive"]) == len(PHOTORECEPTOR_NAMES)
    assert len(summary["filter_center_wavelengths"]) == 4
