"""Pydantic v2 settings models for mold cavity generation."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

Vector3 = tuple[float, float, float]

DEFAULT_COLOR = "#9A4C0D"

MAX_UV_COUNT = 10
MAX_DIV_PER_MM = 4.0
MIN_DIV_PER_MM = 0.25
MAX_DIVS_ONE_SIDE = 2048

PrimitiveKind = Literal[
    "gyroid",
    "schwarz_p",
    "schwarz_d",
    "neovius",
    "sphere",
    "box",
    "torus",
    "cylinder",
]

PRIMITIVE_VOCABULARY: frozenset[str] = frozenset(
    {
        "gyroid",
        "schwarz_p",
        "schwarz_d",
        "neovius",
        "sphere",
        "box",
        "torus",
        "cylinder",
    }
)

# Names used by the browser tool's saved settings
_LEGACY_PRIMITIVE_NAMES: dict[str, str] = {
    "SDGyroid": "gyroid",
    "SDSchwarzP": "schwarz_p",
    "SDSchwarzD": "schwarz_d",
    "SDNeovius": "neovius",
    "SDSphere": "sphere",
    "SDBox": "box",
    "SDTorus": "torus",
    "SDCylinder": "cylinder",
}

GridType = Literal["single", "simple", "individually_customizable", "groupable"]

GRID_TYPES: tuple[str, ...] = ("single", "simple", "individually_customizable", "groupable")


class MethodEntry(BaseModel):
    model_config = ConfigDict(extra="forbid")

    method: PrimitiveKind
    number: float = 1.0

    @field_validator("method", mode="before")
    @classmethod
    def _accept_legacy_names(cls, v: object) -> object:
        if isinstance(v, str):
            return _LEGACY_PRIMITIVE_NAMES.get(v, v)
        return v

    @field_validator("number", mode="before")
    @classmethod
    def _default_missing_number(cls, v: object) -> object:
        return 1.0 if v is None else v


class DistanceData(BaseModel):
    """Ordered primitive chain plus global scale; an empty chain is the zero field."""

    model_config = ConfigDict(extra="forbid")

    methods: list[MethodEntry] = []
    scale: float = 1.0


class GeometrySettings(BaseModel):
    """Plan dimensions, slab thickness and sampling resolution of one cell."""

    model_config = ConfigDict(extra="forbid")

    inner_width: float
    inner_length: float
    height: float
    amplitude: float
    inset: float
    horizontal_divisions: int | None = None
    vertical_divisions: int | None = None
    base_position: Vector3 = (0.0, 0.0, 0.0)
    display_wireframe: bool = False
    color: str | None = None


class BaseGrid(BaseModel):
    model_config = ConfigDict(extra="forbid")

    # Rounded half up and clamped to whole counts at tiling time
    u_count: float = 2
    v_count: float = 2
    div_per_mm: float = 4.0
    height: float = 10.0
    inset: float = -3.0
    spacing: float = 1.0
    amplitude: float = 1.0
    display_wireframe: bool = False
    with_supports: bool = False


class SingleGrid(BaseGrid):
    type: Literal["single"] = "single"
    cell_length: float
    cell_width: float
    sdf_setting: DistanceData
    color: str = DEFAULT_COLOR


class SimpleGrid(BaseGrid):
    type: Literal["simple"] = "simple"
    cell_length: float
    cell_width: float
    sdf_setting: DistanceData
    colors: list[str] = [DEFAULT_COLOR]


class IndividuallyCustomizableGrid(BaseGrid):
    type: Literal["individually_customizable"] = "individually_customizable"
    cell_length: float
    cell_width: float
    sdf_settings: list[DistanceData]
    sdf_map: list[int] = []
    colors: list[str] = [DEFAULT_COLOR]


class GroupableGrid(BaseGrid):
    type: Literal["groupable"] = "groupable"
    total_length: float
    total_width: float
    u_divisions: list[float]
    v_divisions: list[float]
    sdf_settings: list[DistanceData]
    groups: list[list[int]] = []
    sdf_map: list[int] = []
    colors: list[str] = [DEFAULT_COLOR]


GridSettings = Annotated[
    Union[SingleGrid, SimpleGrid, IndividuallyCustomizableGrid, GroupableGrid],
    Field(discriminator="type"),
]


@dataclass(frozen=True)
class CellData:
    """Per-cell input bundle handed from the tiler to the mesh pipeline."""

    geometry_settings: GeometrySettings
    sdf_settings: DistanceData
    with_supports: bool = False


# --- Default factories ---


def default_distance_data() -> DistanceData:
    return DistanceData(
        methods=[
            MethodEntry(method="gyroid", number=1.0),
            MethodEntry(method="neovius", number=1.0),
        ],
        scale=1.0,
    )


def default_geometry_settings() -> GeometrySettings:
    return GeometrySettings(
        inner_width=50.0,
        inner_length=50.0,
        height=5.0,
        amplitude=1.0,
        inset=-1.0,
        horizontal_divisions=500,
        vertical_divisions=500,
        base_position=(-25.0, 0.0, -25.0),
        color=DEFAULT_COLOR,
    )


def default_grid_settings(grid_type: str) -> SingleGrid | SimpleGrid | IndividuallyCustomizableGrid | GroupableGrid:
    """Return a fully populated settings object for *grid_type*.

    Raises:
        ValueError: If *grid_type* is not one of ``GRID_TYPES``.
    """
    base: dict[str, Any] = {
        "u_count": 2,
        "v_count": 2,
        "div_per_mm": 4.0,
        "height": 10.0,
        "inset": -3.0,
        "spacing": 1.0,
        "amplitude": 1.0,
        "display_wireframe": False,
    }
    if grid_type == "single":
        return SingleGrid(
            **{**base, "u_count": 1, "v_count": 1},
            cell_length=40.0,
            cell_width=160.0,
            sdf_setting=default_distance_data(),
            color=DEFAULT_COLOR,
        )
    if grid_type == "simple":
        return SimpleGrid(
            **base,
            cell_length=50.0,
            cell_width=50.0,
            sdf_setting=default_distance_data(),
            colors=[DEFAULT_COLOR],
        )
    if grid_type == "individually_customizable":
        return IndividuallyCustomizableGrid(
            **base,
            cell_length=50.0,
            cell_width=50.0,
            sdf_settings=[default_distance_data()],
            sdf_map=[0, 0, 0, 0],
            colors=[DEFAULT_COLOR],
        )
    if grid_type == "groupable":
        return GroupableGrid(
            **base,
            total_length=100.0,
            total_width=100.0,
            u_divisions=[1.0, 2.0],
            v_divisions=[2.0, 1.0],
            groups=[[0, 1], [2, 3]],
            sdf_settings=[default_distance_data()],
            sdf_map=[0, 0],
            colors=[DEFAULT_COLOR],
        )
    raise ValueError(f"Unknown grid type: {grid_type!r} (known: {list(GRID_TYPES)})")
