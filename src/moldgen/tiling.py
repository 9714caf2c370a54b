"""Layout of one or more cavity cells into a rectangular array."""

from __future__ import annotations

import logging
import math
import re
from typing import Callable

from moldgen.displacement import round_half_up
from moldgen.errors import LayoutError
from moldgen.models import (
    DEFAULT_COLOR,
    MAX_DIV_PER_MM,
    MAX_DIVS_ONE_SIDE,
    MAX_UV_COUNT,
    MIN_DIV_PER_MM,
    BaseGrid,
    CellData,
    DistanceData,
    GeometrySettings,
    GroupableGrid,
    IndividuallyCustomizableGrid,
    SimpleGrid,
    SingleGrid,
)
from moldgen.tessellation import TriangularMesh, create_mesh
from moldgen.validation import resolve_groups, validate_grid
from moldgen.warning_policy import WarningPolicy, emit_warning

logger = logging.getLogger(__name__)

_HEX_COLOR = re.compile(r"^#[0-9a-fA-F]{6}$")


def tile(
    grid: BaseGrid,
    *,
    tilted: bool = False,
    warning_policy: WarningPolicy | None = None,
) -> list[TriangularMesh]:
    """Build one cavity mesh per cell of *grid*.

    Raises:
        ValidationError: If the layout is inconsistent.
        LayoutError: If the grid variant has no tiling strategy.
    """
    cells = resolve_cells(grid, warning_policy=warning_policy)
    meshes = [
        create_mesh(cell.geometry_settings, cell.sdf_settings, cell.with_supports, tilted)
        for cell in cells
    ]
    logger.debug("Tiled %d cell(s) for %r grid", len(meshes), getattr(grid, "type", None))
    return meshes


def resolve_cells(
    grid: BaseGrid, *, warning_policy: WarningPolicy | None = None
) -> list[CellData]:
    """Resolve *grid* into per-cell geometry and field settings, without meshing."""
    resolvers: dict[str, Callable[[BaseGrid, WarningPolicy | None], list[CellData]]] = {
        "single": _single_cells,
        "simple": _simple_cells,
        "individually_customizable": _individually_customizable_cells,
        "groupable": _groupable_cells,
    }
    grid_type = getattr(grid, "type", None)
    resolver = resolvers.get(grid_type)
    if resolver is None:
        raise LayoutError(f"Grid type {grid_type!r} is not implemented")

    validate_grid(grid)
    grid = clamp_basic_fields(grid, warning_policy)
    return resolver(grid, warning_policy)


# ---------------------------------------------------------------------------
# Clamping helpers
# ---------------------------------------------------------------------------


def clamp_basic_fields(grid: BaseGrid, policy: WarningPolicy | None = None) -> BaseGrid:
    """Round and clamp item counts and sampling density into their valid ranges.

    The returned grid always carries whole ``u_count``/``v_count`` values.
    """
    updates: dict[str, object] = {}

    for name in ("u_count", "v_count"):
        raw = getattr(grid, name)
        value = max(1, min(round_half_up(raw), MAX_UV_COUNT))
        if value != raw:
            emit_warning("W01", f"{name} {raw!r} clamped to {value}", policy=policy)
        if value != raw or not isinstance(raw, int):
            updates[name] = value

    density = grid.div_per_mm
    if density <= 0.0:
        updates["div_per_mm"] = MIN_DIV_PER_MM
    elif density > MAX_DIV_PER_MM:
        updates["div_per_mm"] = MAX_DIV_PER_MM
    if "div_per_mm" in updates:
        emit_warning(
            "W01",
            f"div_per_mm {density!r} clamped to {updates['div_per_mm']}",
            policy=policy,
        )

    if not updates:
        return grid
    return grid.model_copy(update=updates)


def _divisions(length: float, div_per_mm: float, label: str, policy: WarningPolicy | None) -> int:
    product = length * div_per_mm
    if not math.isfinite(product):
        emit_warning(
            "W01",
            f"{label} divisions {product!r} clamped to {MAX_DIVS_ONE_SIDE}",
            policy=policy,
        )
        return MAX_DIVS_ONE_SIDE
    raw = round_half_up(product)
    value = max(1, min(raw, MAX_DIVS_ONE_SIDE))
    if value != raw:
        emit_warning("W01", f"{label} divisions {raw} clamped to {value}", policy=policy)
    return value


def _resolve_color(colors: list[str], index: int, policy: WarningPolicy | None) -> str:
    """Pick ``colors[index]``, falling back to ``colors[0]`` then ``DEFAULT_COLOR``."""
    candidate = colors[index] if index < len(colors) else (colors[0] if colors else None)
    if isinstance(candidate, str) and _HEX_COLOR.match(candidate):
        return candidate
    emit_warning(
        "W02", f"color {candidate!r} is not a #RRGGBB value, using {DEFAULT_COLOR}", policy=policy
    )
    return DEFAULT_COLOR


def _resolve_sdf_index(
    sdf_map: list[int], ordinal: int, entry_count: int, policy: WarningPolicy | None
) -> int:
    if entry_count == 0:
        return 0
    if ordinal >= len(sdf_map):
        emit_warning("W03", f"sdf_map has no entry for cell {ordinal}, using 0", policy=policy)
        return 0
    index = sdf_map[ordinal]
    if not 0 <= index < entry_count:
        emit_warning(
            "W03",
            f"sdf_map[{ordinal}] = {index} is outside sdf_settings (size {entry_count}), using 0",
            policy=policy,
        )
        return 0
    return index


def _sdf_entry(entries: list[DistanceData], index: int, policy: WarningPolicy | None) -> DistanceData:
    if not entries:
        emit_warning("W03", "sdf_settings is empty, using the zero field", policy=policy)
        return DistanceData()
    return entries[index]


def _cell_geometry(
    grid: BaseGrid,
    width: float,
    length: float,
    position: tuple[float, float, float],
    color: str,
    policy: WarningPolicy | None,
) -> GeometrySettings:
    return GeometrySettings(
        inner_width=width,
        inner_length=length,
        height=grid.height,
        amplitude=grid.amplitude,
        inset=grid.inset,
        horizontal_divisions=_divisions(width, grid.div_per_mm, "horizontal", policy),
        vertical_divisions=_divisions(length, grid.div_per_mm, "vertical", policy),
        base_position=position,
        display_wireframe=grid.display_wireframe,
        color=color,
    )


# ---------------------------------------------------------------------------
# Variant resolvers
# ---------------------------------------------------------------------------


def _single_cells(grid: SingleGrid, policy: WarningPolicy | None) -> list[CellData]:
    color = _resolve_color([grid.color], 0, policy)
    geometry = _cell_geometry(
        grid, grid.cell_width, grid.cell_length, (0.0, 0.0, 0.0), color, policy
    )
    return [CellData(geometry, grid.sdf_setting, grid.with_supports)]


def _array_positions(
    grid: SimpleGrid | IndividuallyCustomizableGrid,
) -> list[tuple[int, int, tuple[float, float, float]]]:
    """Cell origins of a ``u_count x v_count`` array centered on the origin."""
    gap = grid.spacing - 2.0 * grid.inset
    u_length = (grid.u_count - 1) * gap + grid.u_count * grid.cell_width
    v_length = (grid.v_count - 1) * gap + grid.v_count * grid.cell_length
    x0 = -u_length / 2.0
    z0 = -v_length / 2.0

    positions = []
    for i in range(grid.u_count):
        for j in range(grid.v_count):
            x = x0 + i * (grid.cell_width + gap)
            z = z0 + j * (grid.cell_length + gap)
            positions.append((i, j, (x, 0.0, z)))
    return positions


def _simple_cells(grid: SimpleGrid, policy: WarningPolicy | None) -> list[CellData]:
    color = _resolve_color(grid.colors, 0, policy)
    cells = []
    for _i, _j, position in _array_positions(grid):
        geometry = _cell_geometry(
            grid, grid.cell_width, grid.cell_length, position, color, policy
        )
        cells.append(CellData(geometry, grid.sdf_setting, grid.with_supports))
    return cells


def _individually_customizable_cells(
    grid: IndividuallyCustomizableGrid, policy: WarningPolicy | None
) -> list[CellData]:
    cells = []
    for i, j, position in _array_positions(grid):
        ordinal = i * grid.v_count + j
        index = _resolve_sdf_index(grid.sdf_map, ordinal, len(grid.sdf_settings), policy)
        color = _resolve_color(grid.colors, index, policy)
        geometry = _cell_geometry(
            grid, grid.cell_width, grid.cell_length, position, color, policy
        )
        cells.append(
            CellData(geometry, _sdf_entry(grid.sdf_settings, index, policy), grid.with_supports)
        )
    return cells


def _spans(total: float, weights: list[float], gap: float) -> tuple[list[float], list[float]]:
    """Split *total* into weighted spans separated by *gap*; return ``(starts, sizes)``."""
    usable = total - (len(weights) - 1) * gap
    weight_sum = sum(weights)
    sizes = [usable * w / weight_sum for w in weights]
    starts = []
    cursor = -total / 2.0
    for size in sizes:
        starts.append(cursor)
        cursor += size + gap
    return starts, sizes


def _groupable_cells(grid: GroupableGrid, policy: WarningPolicy | None) -> list[CellData]:
    gap = grid.spacing - 2.0 * grid.inset
    x_starts, widths = _spans(grid.total_width, grid.u_divisions, gap)
    z_starts, lengths = _spans(grid.total_length, grid.v_divisions, gap)

    cells = []
    for group_index, (c0, c1, r0, r1) in enumerate(resolve_groups(grid)):
        width = sum(widths[c0 : c1 + 1]) + (c1 - c0) * gap
        length = sum(lengths[r0 : r1 + 1]) + (r1 - r0) * gap
        index = _resolve_sdf_index(grid.sdf_map, group_index, len(grid.sdf_settings), policy)
        color = _resolve_color(grid.colors, index, policy)
        geometry = _cell_geometry(
            grid, width, length, (x_starts[c0], 0.0, z_starts[r0]), color, policy
        )
        cells.append(
            CellData(geometry, _sdf_entry(grid.sdf_settings, index, policy), grid.with_supports)
        )
    return cells
