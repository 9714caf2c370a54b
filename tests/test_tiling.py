"""Tests for cell layout across the grid variants."""

import itertools
import warnings

import numpy as np
import pytest

from moldgen.errors import LayoutError, ValidationError
from moldgen.models import (
    DEFAULT_COLOR,
    BaseGrid,
    DistanceData,
    GroupableGrid,
    IndividuallyCustomizableGrid,
    MethodEntry,
    SimpleGrid,
    SingleGrid,
    default_grid_settings,
)
from moldgen.parser import parse_settings
from moldgen.tiling import clamp_basic_fields, resolve_cells, tile
from moldgen.warning_policy import MoldgenWarning, WarningPolicy

CONSTANT_FIELD = DistanceData(methods=[MethodEntry(method="schwarz_p")], scale=0.0)


def _disjoint(a, b):
    (amin, amax), (bmin, bmax) = a.bounds(), b.bounds()
    return amax[0] < bmin[0] or bmax[0] < amin[0] or amax[2] < bmin[2] or bmax[2] < amin[2]


def _small_grid(cls, **kwargs):
    base = {
        "u_count": 2,
        "v_count": 2,
        "div_per_mm": 1.0,
        "height": 5.0,
        "inset": 1.0,
        "spacing": 4.0,
        "amplitude": 1.0,
    }
    base.update(kwargs)
    return cls(**base)


class TestSingle:
    def test_one_mesh_at_origin(self, single_grid_yaml):
        grid = parse_settings(single_grid_yaml)
        meshes = tile(grid)
        assert len(meshes) == 1
        assert meshes[0].vertex_count == 2 * 7 * 5

        cells = resolve_cells(grid)
        assert cells[0].geometry_settings.base_position == (0.0, 0.0, 0.0)
        assert cells[0].sdf_settings.methods[0].method == "gyroid"

    def test_tilted(self, single_grid_yaml):
        grid = parse_settings(single_grid_yaml)
        flat = tile(grid)[0]
        tilted = tile(grid, tilted=True)[0]
        assert not np.allclose(flat.vertices, tilted.vertices)


class TestSimple:
    def test_four_disjoint_cells(self, simple_grid_yaml):
        meshes = tile(parse_settings(simple_grid_yaml))
        assert len(meshes) == 4
        for a, b in itertools.combinations(meshes, 2):
            assert _disjoint(a, b)

    def test_layout_is_centered(self, simple_grid_yaml):
        cells = resolve_cells(parse_settings(simple_grid_yaml))
        positions = [c.geometry_settings.base_position for c in cells]
        # gap = 4 - 2*1 = 2; span x = 2*10 + 2, span z = 2*8 + 2
        assert positions == [
            (-11.0, 0.0, -9.0),
            (-11.0, 0.0, 1.0),
            (1.0, 0.0, -9.0),
            (1.0, 0.0, 1.0),
        ]
        assert {c.geometry_settings.horizontal_divisions for c in cells} == {10}
        assert {c.geometry_settings.vertical_divisions for c in cells} == {8}
        assert {c.geometry_settings.color for c in cells} == {"#112233"}

    def test_with_supports_flag_reaches_cells(self):
        grid = _small_grid(
            SimpleGrid, cell_width=4.0, cell_length=4.0, sdf_setting=DistanceData(), with_supports=True
        )
        assert all(c.with_supports for c in resolve_cells(grid))


class TestClamping:
    def test_counts_and_density_clamped(self):
        grid = _small_grid(
            SimpleGrid,
            u_count=20,
            v_count=0,
            div_per_mm=9.0,
            cell_width=1.0,
            cell_length=1.0,
            sdf_setting=DistanceData(),
        )
        with pytest.warns(MoldgenWarning, match="W01"):
            clamped = clamp_basic_fields(grid)
        assert clamped.u_count == 10
        assert clamped.v_count == 1
        assert clamped.div_per_mm == 4.0

    def test_non_positive_density_uses_minimum(self):
        grid = _small_grid(
            SingleGrid, div_per_mm=0.0, cell_width=8.0, cell_length=8.0, sdf_setting=DistanceData()
        )
        with pytest.warns(MoldgenWarning):
            cells = resolve_cells(grid)
        assert cells[0].geometry_settings.horizontal_divisions == 2

    def test_in_range_values_untouched(self):
        grid = default_grid_settings("simple")
        with warnings.catch_warnings():
            warnings.simplefilter("error")
            clamped = clamp_basic_fields(grid)
        assert (clamped.u_count, clamped.v_count) == (2, 2)
        assert isinstance(clamped.u_count, int)
        assert clamped.div_per_mm == grid.div_per_mm

    @pytest.mark.parametrize("raw,expected", [(2.6, 3), (2.5, 3), (2.4, 2), (0.2, 1)])
    def test_fractional_counts_rounded(self, simple_grid_yaml, raw, expected):
        grid = parse_settings(simple_grid_yaml.replace("u_count: 2", f"u_count: {raw}"))
        with pytest.warns(MoldgenWarning, match="W01"):
            cells = resolve_cells(grid)
        assert len(cells) == expected * 2

    def test_overflowing_division_count_clamped(self):
        grid = default_grid_settings("single").model_copy(update={"cell_width": 1e308})
        with pytest.warns(MoldgenWarning, match="W01"):
            cells = resolve_cells(grid)
        assert cells[0].geometry_settings.horizontal_divisions == 2048
        assert cells[0].geometry_settings.vertical_divisions == 160

    def test_overflowing_division_count_escalated(self):
        grid = default_grid_settings("single").model_copy(update={"cell_width": 1e308})
        with pytest.raises(ValidationError, match="W01"):
            resolve_cells(grid, warning_policy=WarningPolicy(warn_as_error=frozenset({"W01"})))

    def test_warn_as_error(self):
        grid = _small_grid(
            SingleGrid, div_per_mm=12.0, cell_width=2.0, cell_length=2.0, sdf_setting=DistanceData()
        )
        with pytest.raises(ValidationError, match="W01"):
            tile(grid, warning_policy=WarningPolicy(warn_as_error=frozenset({"W01"})))

    def test_suppressed(self):
        grid = _small_grid(
            SingleGrid, div_per_mm=12.0, cell_width=2.0, cell_length=2.0, sdf_setting=DistanceData()
        )
        with warnings.catch_warnings(record=True) as w:
            warnings.simplefilter("always")
            tile(grid, warning_policy=WarningPolicy(suppress=frozenset({"W01"})))
        assert w == []


class TestColors:
    def test_invalid_color_falls_back(self):
        grid = _small_grid(
            SimpleGrid,
            cell_width=2.0,
            cell_length=2.0,
            sdf_setting=DistanceData(),
            colors=["red"],
        )
        with pytest.warns(MoldgenWarning, match="W02"):
            cells = resolve_cells(grid)
        assert {c.geometry_settings.color for c in cells} == {DEFAULT_COLOR}

    def test_empty_color_list_falls_back(self):
        grid = _small_grid(
            SimpleGrid, cell_width=2.0, cell_length=2.0, sdf_setting=DistanceData(), colors=[]
        )
        with pytest.warns(MoldgenWarning, match="W02"):
            meshes = tile(grid)
        assert meshes[0].material.color == DEFAULT_COLOR


class TestIndividuallyCustomizable:
    def _grid(self, **kwargs):
        fields = {
            "cell_width": 4.0,
            "cell_length": 4.0,
            "sdf_settings": [DistanceData(), CONSTANT_FIELD],
            "sdf_map": [0, 1, 1, 0],
            "colors": ["#111111", "#222222"],
        }
        fields.update(kwargs)
        return _small_grid(IndividuallyCustomizableGrid, **fields)

    def test_sdf_map_selects_field(self):
        meshes = tile(self._grid())
        tops = [m.bounds()[1][1] for m in meshes]
        # constant field 3 lifts the top by 3 * amplitude
        np.testing.assert_allclose(tops, [5.0, 8.0, 8.0, 5.0])

    def test_color_follows_field_index(self):
        cells = resolve_cells(self._grid())
        assert [c.geometry_settings.color for c in cells] == [
            "#111111",
            "#222222",
            "#222222",
            "#111111",
        ]

    def test_short_map_falls_back_to_first_entry(self):
        with pytest.warns(MoldgenWarning, match="W03"):
            cells = resolve_cells(self._grid(sdf_map=[1]))
        assert cells[0].sdf_settings == CONSTANT_FIELD
        assert all(c.sdf_settings == DistanceData() for c in cells[1:])

    def test_out_of_range_index(self):
        with pytest.warns(MoldgenWarning, match="W03"):
            cells = resolve_cells(self._grid(sdf_map=[0, 7, 0, 0]))
        assert cells[1].sdf_settings == DistanceData()

    def test_empty_settings_list_gives_zero_field(self):
        with pytest.warns(MoldgenWarning, match="W03"):
            cells = resolve_cells(self._grid(sdf_settings=[]))
        assert all(c.sdf_settings.methods == [] for c in cells)


class TestGroupable:
    def test_default_layout(self):
        cells = resolve_cells(default_grid_settings("groupable"))
        assert len(cells) == 2
        first, second = (c.geometry_settings for c in cells)
        # gap = 1 - 2*(-3) = 7, usable = 93 split 1:2 and 2:1
        assert first.inner_width == pytest.approx(31.0)
        assert first.inner_length == pytest.approx(100.0)
        assert first.base_position == pytest.approx((-50.0, 0.0, -50.0))
        assert second.inner_width == pytest.approx(62.0)
        assert second.base_position == pytest.approx((-12.0, 0.0, -50.0))
        assert first.horizontal_divisions == 124
        assert first.vertical_divisions == 400

    def _grid(self, **kwargs):
        fields = {
            "total_width": 20.0,
            "total_length": 20.0,
            "u_divisions": [1.0, 1.0],
            "v_divisions": [1.0, 1.0],
            "sdf_settings": [DistanceData()],
        }
        fields.update(kwargs)
        return _small_grid(GroupableGrid, **fields)

    def test_ungrouped_cells_become_singletons(self):
        cells = resolve_cells(self._grid(groups=[[0, 1]]))
        assert len(cells) == 3
        # gap 2, each span 9
        assert cells[0].geometry_settings.inner_length == pytest.approx(20.0)
        assert cells[1].geometry_settings.base_position == pytest.approx((1.0, 0.0, -10.0))
        assert cells[2].geometry_settings.base_position == pytest.approx((1.0, 0.0, 1.0))

    def test_meshes_built_per_group(self):
        meshes = tile(self._grid(groups=[[0, 1], [2, 3]]))
        assert len(meshes) == 2
        assert _disjoint(meshes[0], meshes[1])

    def test_group_sdf_map(self):
        grid = self._grid(
            groups=[[0, 2]], sdf_settings=[DistanceData(), CONSTANT_FIELD], sdf_map=[1, 0, 0]
        )
        cells = resolve_cells(grid)
        assert cells[0].sdf_settings == CONSTANT_FIELD
        assert cells[0].geometry_settings.inner_width == pytest.approx(20.0)

    @pytest.mark.parametrize(
        "groups,code",
        [
            ([[0, 3]], "V08"),
            ([[0, 1], [1, 3]], "V07"),
            ([[0, 4]], "V06"),
            ([[]], "V06"),
        ],
    )
    def test_invalid_groups(self, groups, code):
        with pytest.raises(ValidationError, match=code):
            resolve_cells(self._grid(groups=groups))

    def test_bad_weights(self):
        with pytest.raises(ValidationError, match="V04"):
            resolve_cells(self._grid(u_divisions=[1.0, 0.0]))

    def test_no_room_for_gaps(self):
        with pytest.raises(ValidationError, match="V05"):
            resolve_cells(self._grid(total_width=1.0))


class TestValidation:
    def test_zero_height(self):
        grid = _small_grid(
            SingleGrid, height=0.0, cell_width=2.0, cell_length=2.0, sdf_setting=DistanceData()
        )
        with pytest.raises(ValidationError, match="V02"):
            tile(grid)

    def test_non_finite(self):
        grid = _small_grid(
            SingleGrid,
            amplitude=float("nan"),
            cell_width=2.0,
            cell_length=2.0,
            sdf_setting=DistanceData(),
        )
        with pytest.raises(ValidationError, match="V01"):
            tile(grid)

    @pytest.mark.parametrize(
        "field,path",
        [
            (DistanceData(scale=float("inf")), "sdf_setting.scale"),
            (
                DistanceData(methods=[MethodEntry(method="gyroid", number=float("nan"))]),
                r"sdf_setting.methods\[0\].number",
            ),
        ],
    )
    def test_non_finite_field_settings(self, field, path):
        grid = _small_grid(SingleGrid, cell_width=2.0, cell_length=2.0, sdf_setting=field)
        with pytest.raises(ValidationError, match=f"V01: {path}"):
            tile(grid)

    def test_non_finite_entry_in_field_list(self):
        grid = _small_grid(
            IndividuallyCustomizableGrid,
            cell_width=2.0,
            cell_length=2.0,
            sdf_settings=[DistanceData(), DistanceData(scale=float("-inf"))],
        )
        with pytest.raises(ValidationError, match=r"V01: sdf_settings\[1\].scale"):
            resolve_cells(grid)

    def test_non_positive_cell(self):
        grid = _small_grid(
            SimpleGrid, cell_width=-1.0, cell_length=2.0, sdf_setting=DistanceData()
        )
        with pytest.raises(ValidationError, match="V03"):
            tile(grid)

    def test_unknown_variant(self):
        with pytest.raises(LayoutError, match="not implemented"):
            tile(BaseGrid())
