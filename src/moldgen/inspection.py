"""Per-cell diagnostics for a grid layout."""

from __future__ import annotations

import numpy as np

from moldgen.models import BaseGrid
from moldgen.tessellation import TriangularMesh, create_mesh
from moldgen.tiling import resolve_cells
from moldgen.warning_policy import WarningPolicy


def _round_list(values: np.ndarray) -> list[float]:
    return [round(float(v), 6) for v in values]


def inspect_grid(
    grid: BaseGrid,
    *,
    build_meshes: bool = True,
    warning_policy: WarningPolicy | None = None,
) -> dict[str, object]:
    """Resolve *grid* and return deterministic per-cell diagnostics.

    With ``build_meshes=False`` only the layout is resolved, which is cheap even
    at the maximum grid resolution.
    """
    cells = resolve_cells(grid, warning_policy=warning_policy)

    entries = []
    meshes: list[TriangularMesh] = []
    for ordinal, cell in enumerate(cells):
        gs = cell.geometry_settings
        entry: dict[str, object] = {
            "cell": ordinal,
            "base_position": list(gs.base_position),
            "inner_width": round(gs.inner_width, 6),
            "inner_length": round(gs.inner_length, 6),
            "divisions": [gs.horizontal_divisions, gs.vertical_divisions],
            "color": gs.color,
            "primitives": [m.method for m in cell.sdf_settings.methods],
            "with_supports": cell.with_supports,
        }
        if build_meshes:
            mesh = create_mesh(gs, cell.sdf_settings, cell.with_supports)
            meshes.append(mesh)
            entry.update(_mesh_payload(mesh))
        entries.append(entry)

    summary: dict[str, object] = {
        "grid_type": grid.type,
        "cell_count": len(cells),
    }
    if build_meshes:
        summary["vertex_count"] = sum(m.vertex_count for m in meshes)
        summary["face_count"] = sum(m.face_count for m in meshes)
        summary["bounds"] = _layout_bounds(meshes)

    return {
        "inspect_schema_version": 1,
        "summary": summary,
        "cells": entries,
    }


def _mesh_payload(mesh: TriangularMesh) -> dict[str, object]:
    aabb_min, aabb_max = mesh.bounds()
    return {
        "vertex_count": mesh.vertex_count,
        "face_count": mesh.face_count,
        "aabb": {"min": _round_list(aabb_min), "max": _round_list(aabb_max)},
    }


def _layout_bounds(meshes: list[TriangularMesh]) -> dict[str, list[float]]:
    if not meshes:
        return {"min": [0.0, 0.0, 0.0], "max": [0.0, 0.0, 0.0]}
    mins = np.array([m.bounds()[0] for m in meshes])
    maxs = np.array([m.bounds()[1] for m in meshes])
    return {"min": _round_list(mins.min(axis=0)), "max": _round_list(maxs.max(axis=0))}


def render_text(payload: dict[str, object]) -> str:
    """Render an inspection payload as human-readable text."""
    summary = payload["summary"]
    lines = [
        f"grid: {summary['grid_type']}",
        f"cells: {summary['cell_count']}",
    ]
    if "vertex_count" in summary:
        lines.append(f"vertices: {summary['vertex_count']}")
        lines.append(f"triangles: {summary['face_count']}")
        bounds = summary["bounds"]
        lines.append(f"bounds: min={bounds['min']} max={bounds['max']}")

    for cell in payload["cells"]:
        h, v = cell["divisions"]
        line = (
            f"  cell {cell['cell']}: {cell['inner_width']} x {cell['inner_length']} "
            f"at {cell['base_position']}, {h}x{v} divisions, {cell['color']}"
        )
        if "face_count" in cell:
            line += f", {cell['vertex_count']} vertices, {cell['face_count']} triangles"
        lines.append(line)
    return "\n".join(lines) + "\n"
