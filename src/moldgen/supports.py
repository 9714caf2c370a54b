"""Internal support struts grown from the base layer toward the moved layer."""

from __future__ import annotations

import logging
import math

import numpy as np

from moldgen.displacement import grid_spacing, resolve_divisions
from moldgen.models import GeometrySettings

logger = logging.getLogger(__name__)

SPACING_LENGTH = 8.0
START_LENGTH = 3.0
GRADIENT = 0.5
SUPPORT_INSET = 1.0
OPENING_LENGTH = 1.5


def add_supports(
    moved: np.ndarray, base: np.ndarray, settings: GeometrySettings
) -> np.ndarray:
    """Return a copy of *base* with struts grown toward *moved*.

    Struts are only added when the grid is finer than ``SPACING_LENGTH / 4``.
    Perimeter vertices are never touched, so the walls keep their shape.
    Each strut grows by ``min(max_height(j), gap - SUPPORT_INSET)``, never
    below zero, so the gap between the layers can only shrink.
    """
    result = np.array(base, dtype=np.float64, copy=True)
    moved = np.asarray(moved, dtype=np.float64)

    h, v = resolve_divisions(settings)
    grid_width, grid_length = grid_spacing(settings)

    if grid_width >= SPACING_LENGTH / 4.0:
        logger.debug("Grid width %.4g too coarse for supports, skipping", grid_width)
        return result
    if h < 2 or v < 2:
        return result

    rows = np.arange(1, v)
    max_height = _max_strut_height(rows, grid_length, settings.inner_length)

    if grid_width >= SPACING_LENGTH / 10.0:
        columns = np.arange(1, h)
        regime = "coarse"
    else:
        columns = _strut_columns(h, grid_width)
        regime = "dense"

    logger.debug("Adding %s supports on %d columns x %d rows", regime, len(columns), len(rows))
    if columns.size == 0:
        return result

    cols_2d, rows_2d = np.meshgrid(columns, rows, indexing="ij")
    idx = (cols_2d * (v + 1) + rows_2d).ravel()
    limit = np.broadcast_to(max_height, cols_2d.shape).ravel()

    gap = moved[idx] - result[idx]
    gap_length = np.linalg.norm(gap, axis=1)
    growth = np.clip(np.minimum(limit, gap_length - SUPPORT_INSET), 0.0, None)

    # Coincident layers have no direction to grow along
    mask = gap_length > 0.0
    scale = growth[mask] / gap_length[mask]
    result[idx[mask]] += gap[mask] * scale[:, np.newaxis]
    return result


def _max_strut_height(rows: np.ndarray, grid_length: float, inner_length: float) -> np.ndarray:
    """Linear taper peaking at mid-span, zero within START_LENGTH of either edge."""
    half = inner_length / 2.0
    distance_to_edge = half - np.abs(rows * grid_length - half)
    return np.maximum(0.0, (distance_to_edge - START_LENGTH) * GRADIENT)


def _strut_columns(h: int, grid_width: float) -> np.ndarray:
    """Column indices touched by the dense strut lattice.

    Columns are walked from ``support_start`` in periods of ``resolution``
    columns; each period starts with an opening of ``opening_width`` columns
    followed by a two-column strut footprint ``(i, i + 1)``.
    """
    support_start = math.ceil(START_LENGTH / grid_width)
    opening_width = math.ceil(OPENING_LENGTH / grid_width)
    resolution = max(1, math.floor(SPACING_LENGTH / grid_width))

    last = min(h - support_start, h - 1)
    starts = np.arange(support_start + opening_width, last, resolution)
    if starts.size == 0:
        return np.zeros(0, dtype=np.int64)
    return np.unique(np.concatenate([starts, starts + 1]))
