"""
Persist the outcome of a search.

Two files are written to the output directory:

* ``resultSet.npz`` holds every array of the winning subset.  Per-direction
  arrays are stored under ``<direction>__<field>``.
* ``resultSet.json`` holds a readable summary: subset identity and names,
  scores, direction specs, achieved contrasts and a timestamp.
"""
import json
import logging
from dataclasses import asdict
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Union

import numpy as np

from nominal_spd.search import SearchResult

logger = logging.getLogger(__name__)

NPZ_NAME = "resultSet.npz"
JSON_NAME = "resultSet.json"
KEY_SEP = "__"


def result_arrays(result: SearchResult) -> Dict[str, np.ndarray]:
    """Flatten the winning subset into named arrays."""
    best = result.best
    arrays = {
        "primaries": np.asarray(best.primaries, dtype=int),
        "names": np.asarray(best.names),
        "receptor_names": np.asarray(result.receptor_names),
        "T_receptors": result.T,
        "B_primary_pre_filter": best.B_pre_filter,
        "B_primary": best.B,
        "filter_center_wavelengths": best.filter_centers,
        "ambient_spd": best.ambient,
        "scores": result.scores,
    }
    for name, direction in best.directions.items():
        for key, value in direction.as_dict().items():
            arrays[f"{name}{KEY_SEP}{key}"] = value
    return arrays


def result_summary(result: SearchResult) -> Dict[str, Any]:
    """JSON-friendly description of the search outcome."""
    best = result.best
    return {
        "timestamp": datetime.now().isoformat(),
        "primaries": list(best.primaries),
        "names": best.names,
        "n_tested": result.n_tested,
        "best_index": result.best_index,
        "best_score": float(result.scores[result.best_index]),
        "elapsed_seconds": result.elapsed,
        "receptor_names": result.receptor_names,
        "filter_center_wavelengths": best.filter_centers.tolist(),
        "directions": [asdict(d) for d in result.directions],
        "contrasts": {
            name: {
                "positive": d.positive_contrast.tolist(),
                "negative": d.negative_contrast.tolist(),
                "modulation_primary": d.modulation_primary.tolist(),
                "background_primary": d.background_primary.tolist(),
            }
            for name, d in best.directions.items()
        },
    }


def save_result_set(result: SearchResult, save_dir: Union[str, Path]) -> Path:
    """Write ``resultSet.npz`` and ``resultSet.json``; return the directory."""
    save_dir = Path(save_dir).expanduser()
    save_dir.mkdir(parents=True, exist_ok=True)
    np.savez(save_dir / NPZ_NAME, **result_arrays(result))
    with open(save_dir / JSON_NAME, "w") as f:
        json.dump(result_summary(result), f, indent=2, default=str)
    logger.info(f"Saved result set to {save_dir}")
    return save_dir


def load_result_set(save_dir: Union[str, Path]) -> Dict[str, Any]:
    """Read ``resultSet.npz`` back; per-direction arrays are nested under the direction name."""
    data = np.load(Path(save_dir).expanduser() / NPZ_NAME)
    out: Dict[str, Any] = {}
    for key in data.files:
        if KEY_SEP in key:
            direction, field = key.split(KEY_SEP, 1)
            out.setdefault(direction, {})[field] = data[key]
        else:
            out[key] = data[key]
    return out
