"""OBJ and ASCII STL text serialization of triangle meshes."""

from __future__ import annotations

import logging
import math
from decimal import ROUND_HALF_UP, Decimal
from pathlib import Path
from typing import Callable

import numpy as np

from moldgen.errors import ExportError
from moldgen.tessellation import TriangularMesh

logger = logging.getLogger(__name__)

DEFAULT_SOLID_NAME = "moldgen"

EXPORT_FORMATS: frozenset[str] = frozenset({"obj", "stl"})

# STL normal components smaller than this are written as a flat zero
_NORMAL_EPSILON = 1e-4


# ---------------------------------------------------------------------------
# Number formatting
# ---------------------------------------------------------------------------


def format_number(value: float) -> str:
    """Shortest round-trip decimal, laid out like ECMAScript ``Number.prototype.toString``."""
    value = float(value)
    if value == 0.0:
        return "0"
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"

    text = repr(value)
    if "e" not in text:
        return text[:-2] if text.endswith(".0") else text

    sign, digit_tuple, exponent = Decimal(text).as_tuple()
    digits = "".join(str(d) for d in digit_tuple).rstrip("0")
    exponent += len(digit_tuple) - len(digits)
    k = len(digits)
    n = exponent + k  # value = 0.<digits> * 10**n

    if k <= n <= 21:
        body = digits + "0" * (n - k)
    elif 0 < n <= 21:
        body = digits[:n] + "." + digits[n:]
    elif -6 < n <= 0:
        body = "0." + "0" * (-n) + digits
    else:
        e = n - 1
        mantissa = digits if k == 1 else digits[0] + "." + digits[1:]
        body = f"{mantissa}e{'+' if e >= 0 else '-'}{abs(e)}"
    return ("-" if sign else "") + body


def _is_decimal_tie(value: float, precision: int) -> bool:
    """True when the shortest repr of *value* ends in a 5 just past *precision* digits."""
    mantissa = repr(value).split("e")[0].replace(".", "").strip("0")
    return len(mantissa) == precision + 1 and mantissa.endswith("5")


def _significant_digits(value: float, precision: int) -> tuple[str, int]:
    """Rounded digits of positive *value* and the exponent of the leading digit.

    Float formatting rounds the exact binary value correctly but breaks exact
    ties to even; those go through ``decimal`` to round half up instead.
    """
    if _is_decimal_tie(value, precision):
        exact = Decimal(value)
        e = exact.adjusted()
        quantum = Decimal(1).scaleb(-(precision - 1))
        mantissa = exact.scaleb(-e).quantize(quantum, rounding=ROUND_HALF_UP)
        if mantissa >= 10:
            e += 1
            mantissa = exact.scaleb(-e).quantize(quantum, rounding=ROUND_HALF_UP)
        return str(mantissa).replace(".", ""), e

    mantissa_text, exponent_text = f"{value:.{precision - 1}e}".split("e")
    return mantissa_text.replace(".", ""), int(exponent_text)


def format_precision(value: float, precision: int = 3) -> str:
    """Round to *precision* significant digits, laid out like ``Number.prototype.toPrecision``."""
    value = float(value)
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    if value == 0.0:
        return "0" if precision == 1 else "0." + "0" * (precision - 1)

    digits, e = _significant_digits(abs(value), precision)

    if e < -6 or e >= precision:
        body = digits[0]
        if precision > 1:
            body += "." + digits[1:]
        body += f"e{'+' if e >= 0 else '-'}{abs(e)}"
    elif e >= 0:
        body = digits[: e + 1]
        if precision > e + 1:
            body += "." + digits[e + 1 :]
    else:
        body = "0." + "0" * (-e - 1) + digits
    return ("-" if value < 0 else "") + body


# ---------------------------------------------------------------------------
# Serializers
# ---------------------------------------------------------------------------


def export_obj(mesh: TriangularMesh) -> str:
    """Serialize *mesh* as Wavefront OBJ with shared position/normal indices."""
    positions = mesh.vertices.reshape(-1, 3)
    normals = mesh.normals.reshape(-1, 3)
    faces = mesh.faces.reshape(-1, 3).astype(np.int64) + 1

    position_lines = "\n".join(
        f"v {format_number(x)} {format_number(y)} {format_number(z)}" for x, y, z in positions
    )
    normal_lines = "\n".join(
        f"vn {format_number(x)} {format_number(y)} {format_number(z)}" for x, y, z in normals
    )
    face_lines = "\n".join(f"f {a}/{a} {b}/{b} {c}/{c}" for a, b, c in faces.tolist())
    return "\n".join([position_lines, normal_lines, face_lines])


def facet_normals(mesh: TriangularMesh) -> np.ndarray:
    """Unit ``(v1 - v0) x (v2 - v0)`` per triangle; zero for degenerate faces."""
    positions = mesh.vertices.reshape(-1, 3)
    tris = mesh.faces.reshape(-1, 3).astype(np.int64)
    v0 = positions[tris[:, 0]]
    v1 = positions[tris[:, 1]]
    v2 = positions[tris[:, 2]]
    cross = np.cross(v1 - v0, v2 - v0)
    lengths = np.linalg.norm(cross, axis=1, keepdims=True)
    return cross / np.where(lengths == 0.0, 1.0, lengths)


def _format_normal_component(value: float) -> str:
    if abs(value) < _NORMAL_EPSILON:
        return "0.000"
    return format_precision(value, 3)


def _format_unique(values: np.ndarray, formatter: Callable[[float], str]) -> np.ndarray:
    """Format each distinct value once and scatter the text back to *values*' shape."""
    unique, inverse = np.unique(values, return_inverse=True)
    texts = np.array([formatter(v) for v in unique.tolist()], dtype=object)
    return texts[inverse.reshape(-1)].reshape(values.shape)


def export_stl(mesh: TriangularMesh, name: str = DEFAULT_SOLID_NAME) -> str:
    """Serialize *mesh* as ASCII STL with three significant digits."""
    positions = mesh.vertices.reshape(-1, 3)
    tris = mesh.faces.reshape(-1, 3).astype(np.int64)
    normals = facet_normals(mesh) if len(tris) else np.zeros((0, 3))

    # Grid meshes repeat coordinates heavily; each vertex line is built once
    coords = _format_unique(positions, format_precision)
    vertex_lines = ["vertex " + " ".join(row) for row in coords.tolist()]
    normal_text = _format_unique(normals, _format_normal_component)

    facets = [
        f"facet normal {nx} {ny} {nz}\nouter loop\n"
        f"{vertex_lines[a]}\n{vertex_lines[b]}\n{vertex_lines[c]}\n"
        "endloop\nendfacet"
        for (a, b, c), (nx, ny, nz) in zip(tris.tolist(), normal_text.tolist())
    ]

    body = "\n".join(facets)
    return f"solid {name}\n{body}\nendsolid {name}"


def write_mesh(
    mesh: TriangularMesh,
    output_path: Path,
    fmt: str | None = None,
    *,
    name: str = DEFAULT_SOLID_NAME,
) -> str:
    """Serialize *mesh* and write it to *output_path*.

    The format defaults to the file suffix.  Returns the format used.

    Raises:
        ExportError: On an unknown format or a failed write.
    """
    fmt = (fmt or output_path.suffix.lstrip(".")).lower()
    if fmt not in EXPORT_FORMATS:
        raise ExportError(f"Unknown export format: {fmt!r} (expected one of {sorted(EXPORT_FORMATS)})")

    text = export_obj(mesh) if fmt == "obj" else export_stl(mesh, name=name)
    try:
        output_path.write_text(text, encoding="utf-8")
    except OSError as e:
        raise ExportError(f"Cannot write {fmt.upper()} to {output_path}: {e}") from e

    logger.info(
        "Wrote %s (%d vertices, %d triangles) to %s",
        fmt.upper(),
        mesh.vertex_count,
        mesh.face_count,
        output_path,
    )
    return fmt
