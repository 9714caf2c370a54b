"""Sample grid construction and field displacement of the top layer."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass

import numpy as np

from moldgen.errors import GeometryError
from moldgen.models import MAX_DIVS_ONE_SIDE, DistanceData, GeometrySettings
from moldgen.sdf import evaluate

logger = logging.getLogger(__name__)


@dataclass
class GridLayers:
    """Displaced and planar vertex layers sharing one ``(i, j)`` index space.

    Both arrays are ``(H+1)*(V+1) x 3`` and stored row-major with
    ``idx(i, j) = i * (V + 1) + j``.
    """

    moved: np.ndarray  # (n, 3) float64
    base: np.ndarray  # (n, 3) float64
    horizontal_divisions: int
    vertical_divisions: int

    def index(self, i: int, j: int) -> int:
        return i * (self.vertical_divisions + 1) + j


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves toward positive infinity."""
    return math.floor(value + 0.5)


def resolve_divisions(settings: GeometrySettings) -> tuple[int, int]:
    """Return ``(H, V)`` clamped to ``[1, MAX_DIVS_ONE_SIDE]``.

    Missing divisions default to one division per unit length.

    Raises:
        GeometryError: If a missing division count would come from a non-finite size.
    """
    h = settings.horizontal_divisions
    v = settings.vertical_divisions
    for count, size in ((h, settings.inner_width), (v, settings.inner_length)):
        if count is None and not math.isfinite(size):
            raise GeometryError(f"Cannot derive divisions from non-finite size {size!r}")
    if h is None:
        h = round_half_up(settings.inner_width)
    if v is None:
        v = round_half_up(settings.inner_length)
    h = max(1, min(int(h), MAX_DIVS_ONE_SIDE))
    v = max(1, min(int(v), MAX_DIVS_ONE_SIDE))
    return h, v


def grid_spacing(settings: GeometrySettings) -> tuple[float, float]:
    """Return ``(grid_width, grid_length)``, the size of one grid cell.

    Raises:
        GeometryError: If either size is non-finite or not positive.
    """
    h, v = resolve_divisions(settings)
    grid_width = settings.inner_width / h
    grid_length = settings.inner_length / v
    for name, value in (("width", grid_width), ("length", grid_length)):
        if not math.isfinite(value) or value <= 0.0:
            raise GeometryError(f"Grid cell {name} must be finite and positive, got {value!r}")
    return grid_width, grid_length


def build_grid(settings: GeometrySettings, distance_data: DistanceData) -> GridLayers:
    """Sample the field on the cell grid and build the moved and base layers.

    ``base = p - ins`` and ``moved = p + ins * (field(p) * amplitude / height)``,
    where ``ins`` tapers linearly across each axis by ``inset``.
    """
    if settings.height == 0.0:
        raise GeometryError("Cell height must be non-zero")

    h, v = resolve_divisions(settings)
    grid_width, grid_length = grid_spacing(settings)
    bx, by, bz = settings.base_position
    inset = settings.inset

    # (H+1, V+1) index planes, flattened in C order -> i * (V+1) + j
    ii, jj = np.meshgrid(
        np.arange(h + 1, dtype=np.float64),
        np.arange(v + 1, dtype=np.float64),
        indexing="ij",
    )
    ii = ii.ravel()
    jj = jj.ravel()
    n = len(ii)

    planar = np.column_stack(
        [
            bx + ii * grid_width,
            np.full(n, by + settings.height),
            bz + jj * grid_length,
        ]
    )
    inset_dir = np.column_stack(
        [
            ii * inset * 2.0 / (h + 1) - inset,
            np.full(n, settings.height),
            jj * inset * 2.0 / (v + 1) - inset,
        ]
    )

    field = np.asarray(evaluate(distance_data, planar), dtype=np.float64)
    factor = field * settings.amplitude / settings.height

    base = planar - inset_dir
    moved = planar + inset_dir * factor[:, np.newaxis]

    logger.debug(
        "Sampled %dx%d grid (%d vertices per layer), field range [%.4g, %.4g]",
        h,
        v,
        n,
        float(field.min()),
        float(field.max()),
    )
    return GridLayers(moved=moved, base=base, horizontal_divisions=h, vertical_divisions=v)
