"""Implicit surface primitives and the chained distance-field evaluator.

Every primitive takes an ``(N, 3)`` point array and a scale that is either a
scalar or an ``(N,)`` array, and evaluates the unit-period surface at
``p * scale``.  The evaluator composes a ``DistanceData`` chain as a right fold:
each entry's scale is multiplied by the field value of the remaining tail, so
``[a, b]`` evaluates ``a`` at ``p * s * a.number * b(p * s * b.number)``.
"""

from __future__ import annotations

from typing import Callable

import numpy as np

from moldgen.models import DistanceData, MethodEntry

Primitive = Callable[[np.ndarray, "np.ndarray | float"], np.ndarray]


def _scaled(points: np.ndarray, scale: np.ndarray | float) -> np.ndarray:
    scale = np.asarray(scale, dtype=np.float64)
    if scale.ndim == 0:
        return points * scale
    return points * scale[:, np.newaxis]


# --- Triply periodic minimal surfaces ---


def gyroid(points: np.ndarray, scale: np.ndarray | float) -> np.ndarray:
    q = _scaled(points, scale)
    x, y, z = q[:, 0], q[:, 1], q[:, 2]
    return np.sin(x) * np.cos(y) + np.sin(y) * np.cos(z) + np.sin(z) * np.cos(x)


def schwarz_p(points: np.ndarray, scale: np.ndarray | float) -> np.ndarray:
    q = _scaled(points, scale)
    return np.cos(q[:, 0]) + np.cos(q[:, 1]) + np.cos(q[:, 2])


def schwarz_d(points: np.ndarray, scale: np.ndarray | float) -> np.ndarray:
    q = _scaled(points, scale)
    x, y, z = q[:, 0], q[:, 1], q[:, 2]
    return np.cos(x) * np.cos(y) * np.cos(z) - np.sin(x) * np.sin(y) * np.sin(z)


def neovius(points: np.ndarray, scale: np.ndarray | float) -> np.ndarray:
    q = _scaled(points, scale)
    x, y, z = q[:, 0], q[:, 1], q[:, 2]
    return 3.0 * (np.cos(x) + np.cos(y) + np.cos(z)) - 4.0 * np.cos(x) * np.cos(y) * np.cos(z)


# --- Distance estimators (unit size) ---


def sphere(points: np.ndarray, scale: np.ndarray | float) -> np.ndarray:
    q = _scaled(points, scale)
    return np.linalg.norm(q, axis=1) - 1.0


def box(points: np.ndarray, scale: np.ndarray | float) -> np.ndarray:
    q = _scaled(points, scale)
    return np.max(np.abs(q), axis=1) - 1.0


def torus(points: np.ndarray, scale: np.ndarray | float) -> np.ndarray:
    """Torus in the XZ plane, major radius 1, minor radius 0.25."""
    q = _scaled(points, scale)
    ring = np.hypot(q[:, 0], q[:, 2]) - 1.0
    return np.hypot(ring, q[:, 1]) - 0.25


def cylinder(points: np.ndarray, scale: np.ndarray | float) -> np.ndarray:
    """Unit-radius revolution about X: distance of ``(|q| - 1, |q.yz|)`` from the origin."""
    q = _scaled(points, scale)
    radial = np.hypot(q[:, 1], q[:, 2])
    return np.hypot(np.hypot(q[:, 0], radial) - 1.0, radial)


PRIMITIVES: dict[str, Primitive] = {
    "gyroid": gyroid,
    "schwarz_p": schwarz_p,
    "schwarz_d": schwarz_d,
    "neovius": neovius,
    "sphere": sphere,
    "box": box,
    "torus": torus,
    "cylinder": cylinder,
}


# ---------------------------------------------------------------------------
# Composition
# ---------------------------------------------------------------------------


def evaluate(distance_data: DistanceData, points: np.ndarray) -> np.ndarray | float:
    """Evaluate the composed field of *distance_data* at *points*.

    Args:
        distance_data: Primitive chain and global scale.
        points: A single point ``(3,)`` or a batch ``(N, 3)``.

    Returns:
        A float for a single point, otherwise an ``(N,)`` array.
    """
    pts = np.asarray(points, dtype=np.float64)
    single = pts.ndim == 1
    pts = np.atleast_2d(pts)

    values = _evaluate_chain(distance_data.methods, pts, distance_data.scale)

    if single:
        return float(values[0])
    return values


def _evaluate_chain(
    methods: list[MethodEntry], points: np.ndarray, scale: float
) -> np.ndarray:
    if not methods:
        return np.zeros(len(points), dtype=np.float64)

    # Fold from the innermost (last) entry outwards
    last = methods[-1]
    values = PRIMITIVES[last.method](points, scale * last.number)
    for entry in reversed(methods[:-1]):
        values = PRIMITIVES[entry.method](points, scale * entry.number * values)
    return values
