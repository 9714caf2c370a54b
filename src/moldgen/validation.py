"""Semantic validation of grid layouts."""

from __future__ import annotations

import math
from typing import Iterator

from pydantic import BaseModel

from moldgen.errors import ValidationError
from moldgen.models import BaseGrid, GroupableGrid


def validate_grid(grid: BaseGrid) -> None:
    """Run all semantic checks that clamping cannot repair.

    Raises:
        ValidationError: On any rule violation.
    """
    _check_no_nan_infinity(grid)
    _check_height_nonzero(grid)
    if isinstance(grid, GroupableGrid):
        _check_division_weights(grid)
        _check_positive_spans(grid)
        resolve_groups(grid)
    else:
        _check_cell_dimensions_positive(grid)


def _check_no_nan_infinity(grid: BaseGrid) -> None:
    """V01: numeric settings must be finite, including nested field settings."""
    for path, item in _iter_numbers(grid, ""):
        if not math.isfinite(item):
            raise ValidationError(f"V01: {path} must be finite, got {item!r}")


def _iter_numbers(value: object, path: str) -> Iterator[tuple[str, float]]:
    if isinstance(value, BaseModel):
        for name, field_value in value:
            yield from _iter_numbers(field_value, f"{path}.{name}" if path else name)
    elif isinstance(value, (list, tuple)):
        for index, item in enumerate(value):
            yield from _iter_numbers(item, f"{path}[{index}]")
    elif isinstance(value, float):
        yield path, value


def _check_height_nonzero(grid: BaseGrid) -> None:
    """V02: slab height divides the displacement and must not be zero."""
    if grid.height == 0.0:
        raise ValidationError("V02: height must be non-zero")


def _check_cell_dimensions_positive(grid: BaseGrid) -> None:
    """V03: cell width and length must be positive."""
    for name in ("cell_width", "cell_length"):
        value = getattr(grid, name, None)
        if value is not None and value <= 0.0:
            raise ValidationError(f"V03: {name} must be > 0, got {value}")


def _check_division_weights(grid: GroupableGrid) -> None:
    """V04: row/column weights must be non-empty and positive."""
    for name in ("u_divisions", "v_divisions"):
        weights = getattr(grid, name)
        if not weights:
            raise ValidationError(f"V04: {name} must not be empty")
        for w in weights:
            if w <= 0.0:
                raise ValidationError(f"V04: {name} weights must be > 0, got {w}")


def _check_positive_spans(grid: GroupableGrid) -> None:
    """V05: gaps must leave room for every row and column."""
    gap = grid.spacing - 2.0 * grid.inset
    for name, total, weights in (
        ("total_width", grid.total_width, grid.u_divisions),
        ("total_length", grid.total_length, grid.v_divisions),
    ):
        usable = total - (len(weights) - 1) * gap
        if usable <= 0.0:
            raise ValidationError(
                f"V05: {name} {total} leaves no room for {len(weights)} cell(s) "
                f"with gap {gap}"
            )


def resolve_groups(grid: GroupableGrid) -> list[tuple[int, int, int, int]]:
    """Return ``(col_start, col_end, row_start, row_end)`` per group, ends inclusive.

    Explicit groups come first, followed by a singleton group for every cell
    not covered, in ordinal order.  Cell ordinal is ``col * len(v_divisions) + row``.

    Raises:
        ValidationError: V06 unknown ordinal or empty group, V07 a cell claimed
            twice, V08 a group that does not fill its bounding rectangle.
    """
    n_cols = len(grid.u_divisions)
    n_rows = len(grid.v_divisions)
    cell_count = n_cols * n_rows

    claimed: dict[int, int] = {}
    spans = []
    for g, members in enumerate(grid.groups):
        if not members:
            raise ValidationError(f"V06: group {g} is empty")
        for k in members:
            if not 0 <= k < cell_count:
                raise ValidationError(
                    f"V06: group {g} references cell {k}, grid has {cell_count} cells"
                )
            if k in claimed and claimed[k] != g:
                raise ValidationError(
                    f"V07: cell {k} belongs to both group {claimed[k]} and group {g}"
                )
            claimed[k] = g

        cols = [k // n_rows for k in members]
        rows = [k % n_rows for k in members]
        c0, c1, r0, r1 = min(cols), max(cols), min(rows), max(rows)
        if (c1 - c0 + 1) * (r1 - r0 + 1) != len(set(members)):
            raise ValidationError(f"V08: group {g} cells {sorted(set(members))} are not rectangular")
        spans.append((c0, c1, r0, r1))

    for k in range(cell_count):
        if k not in claimed:
            col, row = divmod(k, n_rows)
            spans.append((col, col, row, row))
    return spans
