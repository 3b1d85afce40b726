"""
Constrained search for a modulation that isolates a set of photoreceptors.

Given the primaries of the device, a background and the receptor
sensitivities, :func:`mod_primary_search` looks for primary settings that
put the desired contrast on the targeted receptors while holding the
silenced receptors at zero contrast.  Targets that should respond equally
(e.g. L and M cones at two eccentricities) are grouped; when the achieved
contrast within a group differs by more than the allowed amount, the
requested contrast is lowered step by step until the groups agree or the
search gives up.

Receptors that are neither targeted nor ignored are silenced.
"""

import logging
from typing import Protocol, Sequence, Tuple, Union

import numpy as np
from scipy import optimize

logger = logging.getLogger(__name__)

SILENCE_PENALTY = 1e3
"""Weight of the silencing term when it cannot be imposed as constraints."""

DIFF_TOLERANCE = 1e-9


class ModulationSolver(Protocol):
    """Signature of a solver that returns modulation primaries."""

    def __call__(
        self,
        B: np.ndarray,
        background: np.ndarray,
        x0: np.ndarray,
        ambient: np.ndarray,
        T: np.ndarray,
        targets: Sequence[int],
        ignore: Sequence[int],
        minimize: Sequence[int],
        pinned: Sequence[int],
        headroom: float,
        desired_contrast: Union[float, Sequence[float]],
        contrast_groups: Sequence[Sequence[int]],
        max_contrast_diff: float,
        step_size: float,
        shrink_factor_thresh: float,
    ) -> np.ndarray:
        ...


def contrast_matrix(T: np.ndarray, B: np.ndarray, background: np.ndarray, ambient: np.ndarray) -> np.ndarray:
    """Matrix ``A`` such that receptor contrast is ``A @ (x - background)``."""
    TB = T @ B
    bg_excitation = T @ (B @ background + ambient)
    with np.errstate(divide="ignore", invalid="ignore"):
        return TB / bg_excitation[:, None]


def differential_contrast(contrast: np.ndarray, groups: Sequence[Sequence[int]]) -> float:
    """Largest spread of contrast magnitude within any group.

    ``contrast`` holds the target contrasts and ``groups`` index into it.
    Magnitudes are compared so that L-M style groups with opposite signs
    still count as equal.
    """
    worst = 0.0
    for group in groups:
        if len(group) < 2:
            continue
        mags = np.abs(np.asarray(contrast)[list(group)])
        worst = max(worst, float(mags.max() - mags.min()))
    return worst


def _solve_once(
    A_target: np.ndarray,
    A_silence: np.ndarray,
    background: np.ndarray,
    x0: np.ndarray,
    free: np.ndarray,
    bounds: Sequence[Tuple[float, float]],
    requested: np.ndarray,
) -> np.ndarray:
    """One SLSQP solve for a fixed requested contrast."""
    bg_free = background[free]
    At = A_target[:, free]
    As = A_silence[:, free]
    use_constraints = 0 < As.shape[0] < free.size

    def objective(z):
        r = At @ (z - bg_free) - requested
        f = float(r @ r)
        g = 2.0 * At.T @ r
        if As.shape[0] and not use_constraints:
            s = As @ (z - bg_free)
            f += SILENCE_PENALTY * float(s @ s)
            g = g + 2.0 * SILENCE_PENALTY * As.T @ s
        return f, g

    constraints = []
    if use_constraints:
        constraints.append({
            "type": "eq",
            "fun": lambda z: As @ (z - bg_free),
            "jac": lambda z: As,
        })

    lo = np.array([b[0] for b in bounds])
    hi = np.array([b[1] for b in bounds])
    start = np.clip(x0[free], lo, hi)
    res = optimize.minimize(
        objective,
        start,
        jac=True,
        method="SLSQP",
        bounds=bounds,
        constraints=constraints,
        options={"maxiter": 500, "ftol": 1e-12},
    )
    if not res.success:
        logger.debug(f"SLSQP did not converge: {res.message}")

    x = background.copy()
    x[free] = np.clip(res.x, lo, hi)
    return x


def mod_primary_search(
    B: np.ndarray,
    background: np.ndarray,
    x0: np.ndarray,
    ambient: np.ndarray,
    T: np.ndarray,
    targets: Sequence[int],
    ignore: Sequence[int],
    minimize: Sequence[int],
    pinned: Sequence[int],
    headroom: float,
    desired_contrast: Union[float, Sequence[float]],
    contrast_groups: Sequence[Sequence[int]] = (),
    max_contrast_diff: float = 0.0,
    step_size: float = 0.025,
    shrink_factor_thresh: float = 0.5,
) -> np.ndarray:
    """Find modulation primaries for one direction.

    The requested contrast starts at ``desired_contrast`` and is reduced by
    ``step_size`` of the desired contrast at each step until the differential
    contrast within every group is at most ``max_contrast_diff``.  Once the
    requested contrast would fall below ``shrink_factor_thresh`` of the
    desired contrast, the last attempted solution is returned.

    Returns
    -------
    np.ndarray
        Primary settings within ``[headroom, 1 - headroom]``; pinned
        primaries stay at the background.
    """
    B = np.asarray(B, dtype=float)
    T = np.asarray(T, dtype=float)
    background = np.asarray(background, dtype=float)
    x0 = np.asarray(x0, dtype=float)
    ambient = np.zeros(B.shape[0]) if ambient is None else np.asarray(ambient, dtype=float)
    n_receptors, n_primaries = T.shape[0], B.shape[1]

    targets = list(targets)
    silenced = sorted((set(range(n_receptors)) - set(targets) - set(ignore)) | set(minimize))
    free = np.array([i for i in range(n_primaries) if i not in set(pinned)], dtype=int)
    desired = np.broadcast_to(np.asarray(desired_contrast, dtype=float), (len(targets),)).copy()

    A = contrast_matrix(T, B, background, ambient)
    used = targets + silenced
    if not np.all(np.isfinite(A[used])):
        logger.warning("Background excitation is zero for a used receptor; returning the background")
        return background.copy()
    if free.size == 0:
        return background.copy()

    A_target = A[targets]
    A_silence = A[silenced]
    bounds = [(headroom, 1.0 - headroom)] * free.size

    x = background.copy()
    k = 0
    while True:
        scale = 1.0 - k * step_size
        if k > 0 and (scale < shrink_factor_thresh or scale <= 0):
            logger.debug(
                f"Gave up at {scale + step_size:.3f} of the desired contrast; "
                f"differential contrast {diff:.4f} > {max_contrast_diff}"
            )
            return x
        x = _solve_once(A_target, A_silence, background, x0, free, bounds, desired * scale)
        diff = differential_contrast(A_target @ (x - background), contrast_groups)
        if diff <= max_contrast_diff + DIFF_TOLERANCE:
            logger.debug(f"Accepted {scale:.3f} of the desired contrast (diff {diff:.4f})")
            return x
        k += 1
