"""Build manifest describing a mesh export run."""

from __future__ import annotations

import hashlib
import sys
from datetime import datetime, timezone
from pathlib import Path

from moldgen import __version__
from moldgen.tessellation import TriangularMesh


def _sha256_of_file(path: Path) -> str:
    h = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(65536), b""):
            h.update(chunk)
    return h.hexdigest()


def build_manifest(
    *,
    input_path: Path,
    output_path: Path,
    export_format: str,
    meshes: list[TriangularMesh],
    tilted: bool = False,
    command_args: list[str] | None = None,
) -> dict:
    """Describe an export run; call after *output_path* has been written."""
    manifest: dict = {
        "manifest_version": 1,
        "tool": {
            "name": "moldgen",
            "version": __version__,
            "python": sys.version.split()[0],
        },
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "input": {
            "path": str(input_path),
            "sha256": _sha256_of_file(input_path),
        },
        "output": {
            "path": str(output_path),
            "format": export_format,
            "sha256": _sha256_of_file(output_path),
        },
        "geometry": {
            "cell_count": len(meshes),
            "vertex_count": sum(m.vertex_count for m in meshes),
            "face_count": sum(m.face_count for m in meshes),
            "tilted": tilted,
        },
    }

    if command_args is not None:
        manifest["command_args"] = command_args

    return manifest
