"""Double-layer mesh assembly, vertex normals and the cell mesh pipeline."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass

import numpy as np

from moldgen.displacement import build_grid
from moldgen.errors import GeometryError
from moldgen.models import DEFAULT_COLOR, DistanceData, GeometrySettings
from moldgen.supports import add_supports

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MaterialHints:
    """Display hints handed to a renderer alongside the geometry."""

    wireframe: bool = False
    color: str = DEFAULT_COLOR


@dataclass
class TriangularMesh:
    """Flat triangle mesh buffers."""

    vertices: np.ndarray  # (N*3,) float64
    faces: np.ndarray  # (M*3,) uint32
    normals: np.ndarray  # (N*3,) float64
    material: MaterialHints | None = None

    @property
    def positions(self) -> np.ndarray:
        return self.vertices.reshape(-1, 3)

    @property
    def vertex_count(self) -> int:
        return len(self.vertices) // 3

    @property
    def face_count(self) -> int:
        return len(self.faces) // 3

    def bounds(self) -> tuple[np.ndarray, np.ndarray]:
        """Return ``(aabb_min, aabb_max)``; zeros for an empty mesh."""
        if self.vertex_count == 0:
            return np.zeros(3, dtype=np.float64), np.zeros(3, dtype=np.float64)
        pos = self.positions
        return pos.min(axis=0), pos.max(axis=0)


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------


def create_mesh(
    settings: GeometrySettings,
    distance_data: DistanceData,
    with_supports: bool = False,
    tilted: bool = False,
) -> TriangularMesh:
    """Build the closed cavity mesh for one cell.

    Pipeline: sample grid -> (supports) -> assemble -> (tilt).
    """
    layers = build_grid(settings, distance_data)
    base = layers.base
    if with_supports:
        base = add_supports(layers.moved, base, settings)

    mesh = assemble(
        layers.moved, base, layers.horizontal_divisions, layers.vertical_divisions
    )
    mesh.material = MaterialHints(
        wireframe=settings.display_wireframe,
        color=settings.color or DEFAULT_COLOR,
    )
    if tilted:
        mesh = tilt(mesh, settings)
    return mesh


# ---------------------------------------------------------------------------
# Assembly
# ---------------------------------------------------------------------------


def assemble(moved: np.ndarray, base: np.ndarray, h: int, v: int) -> TriangularMesh:
    """Triangulate both layers and the four perimeter walls.

    Vertex buffer holds the moved layer followed by the base layer, each in
    ``i * (v + 1) + j`` order.  Quad diagonals alternate with index parity.
    """
    moved = np.asarray(moved, dtype=np.float64).reshape(-1, 3)
    base = np.asarray(base, dtype=np.float64).reshape(-1, 3)
    n = (h + 1) * (v + 1)
    if len(moved) != n or len(base) != n:
        raise GeometryError(
            f"Layer sizes {len(moved)}/{len(base)} do not match a {h}x{v} grid ({n} vertices)"
        )

    faces = np.concatenate(
        [
            _layer_faces(h, v, n).reshape(-1),
            _walls_along_v(h, v, n).reshape(-1),
            _walls_along_u(h, v, n).reshape(-1),
        ]
    ).astype(np.uint32)

    positions = np.concatenate([moved, base], axis=0)
    normals = compute_vertex_normals(positions, faces)

    logger.debug("Assembled %d vertices, %d triangles", len(positions), len(faces) // 3)
    return TriangularMesh(
        vertices=positions.reshape(-1),
        faces=faces,
        normals=normals.reshape(-1),
    )


def _pick(even: np.ndarray, even_tri: list[np.ndarray], odd_tri: list[np.ndarray]) -> np.ndarray:
    return np.where(even[:, np.newaxis], np.stack(even_tri, axis=1), np.stack(odd_tri, axis=1))


def _layer_faces(h: int, v: int, n: int) -> np.ndarray:
    """Top and base triangles, four per grid cell, shape ``(h*v, 4, 3)``."""
    ii, jj = np.meshgrid(np.arange(h), np.arange(v), indexing="ij")
    ii = ii.ravel()
    jj = jj.ravel()
    a = ii * (v + 1) + jj
    b = a + v + 1
    even = (ii + jj) % 2 == 0

    return np.stack(
        [
            _pick(even, [a, b, a + 1], [a, b + 1, a + 1]),
            _pick(even, [a + 1, b, b + 1], [a, b, b + 1]),
            _pick(even, [n + a, n + a + 1, n + b], [n + a, n + a + 1, n + b + 1]),
            _pick(even, [n + a + 1, n + b + 1, n + b], [n + a, n + b + 1, n + b]),
        ],
        axis=1,
    )


def _walls_along_v(h: int, v: int, n: int) -> np.ndarray:
    """Walls on the ``i = 0`` and ``i = h`` perimeters, shape ``(v, 4, 3)``."""
    j = np.arange(v)
    top = j
    low = j + n
    even = j % 2 == 0

    end_top = h * (v + 1) + j
    end_low = end_top + n
    end_even = (j + h) % 2 == 0

    return np.stack(
        [
            _pick(even, [top, top + 1, low], [top, top + 1, low + 1]),
            _pick(even, [top + 1, low + 1, low], [top, low + 1, low]),
            _pick(end_even, [end_top, end_low, end_top + 1], [end_top, end_low + 1, end_top + 1]),
            _pick(end_even, [end_top + 1, end_low, end_low + 1], [end_top, end_low, end_low + 1]),
        ],
        axis=1,
    )


def _walls_along_u(h: int, v: int, n: int) -> np.ndarray:
    """Walls on the ``j = 0`` and ``j = v`` perimeters, shape ``(h, 4, 3)``."""
    i = np.arange(h)
    step = v + 1
    top = i * step
    low = top + n
    even = i % 2 == 0

    end_top = top + v
    end_low = end_top + n
    end_even = (i + v) % 2 == 0

    return np.stack(
        [
            _pick(even, [top, low, top + step], [top, low + step, top + step]),
            _pick(even, [top + step, low, low + step], [top, low, low + step]),
            _pick(
                end_even,
                [end_top, end_top + step, end_low],
                [end_top, end_top + step, end_low + step],
            ),
            _pick(
                end_even,
                [end_top + step, end_low + step, end_low],
                [end_top, end_low + step, end_low],
            ),
        ],
        axis=1,
    )


def compute_vertex_normals(positions: np.ndarray, faces: np.ndarray) -> np.ndarray:
    """Area-independent smoothed vertex normals, shape ``(N, 3)``.

    Each face contributes its unit normal ``(p0 - p1) x (p2 - p1)`` to its three
    vertices; zero-area faces contribute nothing and unreferenced vertices keep
    a zero normal.
    """
    positions = np.asarray(positions, dtype=np.float64).reshape(-1, 3)
    tris = np.asarray(faces, dtype=np.int64).reshape(-1, 3)
    normals = np.zeros_like(positions)
    if len(tris) == 0:
        return normals

    p0 = positions[tris[:, 0]]
    p1 = positions[tris[:, 1]]
    p2 = positions[tris[:, 2]]
    face_normals = _normalize_rows(np.cross(p0 - p1, p2 - p1))

    for corner in range(3):
        np.add.at(normals, tris[:, corner], face_normals)
    return _normalize_rows(normals)


def _normalize_rows(vectors: np.ndarray) -> np.ndarray:
    lengths = np.linalg.norm(vectors, axis=1, keepdims=True)
    safe = np.where(lengths == 0.0, 1.0, lengths)
    return vectors / safe


# ---------------------------------------------------------------------------
# Transforms
# ---------------------------------------------------------------------------


def _x_rotation_matrix(angle: float) -> np.ndarray:
    c, s = math.cos(angle), math.sin(angle)
    return np.array([[1, 0, 0], [0, c, -s], [0, s, c]], dtype=np.float64)


def rotate_x(mesh: TriangularMesh, angle: float) -> TriangularMesh:
    """Rotate positions and normals about the X axis by *angle* radians."""
    rot = _x_rotation_matrix(angle)
    positions = (rot @ mesh.positions.T).T
    normals = (rot @ mesh.normals.reshape(-1, 3).T).T
    return TriangularMesh(
        vertices=positions.reshape(-1),
        faces=mesh.faces.copy(),
        normals=normals.reshape(-1),
        material=mesh.material,
    )


def tilt_angle(settings: GeometrySettings) -> float:
    """Draft angle ``atan(inset / height)`` of a tapered cell."""
    if settings.height == 0.0:
        raise GeometryError("Cannot tilt a cell with zero height")
    return math.atan(settings.inset / settings.height)


def tilt(mesh: TriangularMesh, settings: GeometrySettings) -> TriangularMesh:
    """Lay the draft of a tapered cavity flat for layer-by-layer printing."""
    return rotate_x(mesh, tilt_angle(settings))


def merge_meshes(meshes: list[TriangularMesh]) -> TriangularMesh:
    """Concatenate meshes into one buffer, offsetting face indices."""
    if not meshes:
        return TriangularMesh(
            vertices=np.zeros(0, dtype=np.float64),
            faces=np.zeros(0, dtype=np.uint32),
            normals=np.zeros(0, dtype=np.float64),
        )

    all_faces = []
    vertex_offset = 0
    for mesh in meshes:
        all_faces.append(mesh.faces.astype(np.int64) + vertex_offset)
        vertex_offset += mesh.vertex_count

    material = meshes[0].material if len(meshes) == 1 else None
    return TriangularMesh(
        vertices=np.concatenate([m.vertices for m in meshes]),
        faces=np.concatenate(all_faces).astype(np.uint32),
        normals=np.concatenate([m.normals for m in meshes]),
        material=material,
    )
