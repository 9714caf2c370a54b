"""Tests for sample grid construction and displacement."""

import numpy as np
import pytest

from moldgen.displacement import build_grid, grid_spacing, resolve_divisions
from moldgen.errors import GeometryError
from moldgen.models import DistanceData, GeometrySettings, MethodEntry


class TestResolveDivisions:
    def test_explicit(self, small_geometry):
        assert resolve_divisions(small_geometry) == (3, 2)

    def test_missing_defaults_to_unit_length(self, small_geometry):
        gs = small_geometry.model_copy(update={"horizontal_divisions": None})
        assert resolve_divisions(gs) == (6, 2)

    @pytest.mark.parametrize("width,expected", [(2.5, 3), (3.5, 4), (4.49, 4)])
    def test_missing_rounds_half_up(self, small_geometry, width, expected):
        gs = small_geometry.model_copy(
            update={"inner_width": width, "horizontal_divisions": None}
        )
        assert resolve_divisions(gs)[0] == expected

    def test_missing_with_infinite_size(self, small_geometry):
        gs = small_geometry.model_copy(
            update={"inner_width": float("inf"), "horizontal_divisions": None}
        )
        with pytest.raises(GeometryError, match="non-finite"):
            resolve_divisions(gs)

    def test_clamped(self, small_geometry):
        gs = small_geometry.model_copy(
            update={"horizontal_divisions": 0, "vertical_divisions": 10_000}
        )
        assert resolve_divisions(gs) == (1, 2048)


class TestBuildGrid:
    def test_layer_shapes(self, small_geometry, zero_field):
        layers = build_grid(small_geometry, zero_field)
        assert layers.moved.shape == (12, 3)
        assert layers.base.shape == (12, 3)
        assert layers.index(2, 1) == 2 * 3 + 1

    def test_zero_field_keeps_top_planar(self, small_geometry, zero_field):
        layers = build_grid(small_geometry, zero_field)
        np.testing.assert_allclose(layers.moved[:, 1], 5.0)
        idx = layers.index(3, 2)
        np.testing.assert_allclose(layers.moved[idx], [6.0, 5.0, 4.0])

    def test_base_layer_tapers_by_inset(self, small_geometry, zero_field):
        layers = build_grid(small_geometry, zero_field)
        np.testing.assert_allclose(layers.base[:, 1], 0.0, atol=1e-12)
        # ins(0, 0) = (-inset, height, -inset)
        np.testing.assert_allclose(layers.base[layers.index(0, 0)], [1.0, 0.0, 1.0])
        # ins(3, 2) = (2*3/4 - 1, 5, 2*2/3 - 1)
        np.testing.assert_allclose(
            layers.base[layers.index(3, 2)], [6.0 - 0.5, 0.0, 4.0 - 1.0 / 3.0]
        )

    def test_displacement_follows_taper(self, small_geometry):
        field = DistanceData(methods=[MethodEntry(method="schwarz_p")], scale=0.0)
        # schwarz_p at scale 0 is exactly 3 everywhere
        layers = build_grid(small_geometry, field)
        factor = 3.0 * 1.0 / 5.0
        expected = np.array([0.0, 5.0, 0.0]) + np.array([-1.0, 5.0, -1.0]) * factor
        np.testing.assert_allclose(layers.moved[layers.index(0, 0)], expected)

    def test_base_position_offsets_grid(self, small_geometry, zero_field):
        gs = small_geometry.model_copy(update={"base_position": (10.0, 2.0, -4.0)})
        layers = build_grid(gs, zero_field)
        np.testing.assert_allclose(layers.moved[0], [10.0, 7.0, -4.0])

    def test_zero_width_rejected(self, small_geometry, zero_field):
        gs = small_geometry.model_copy(update={"inner_width": 0.0})
        with pytest.raises(GeometryError, match="width"):
            build_grid(gs, zero_field)

    def test_zero_height_rejected(self, small_geometry, zero_field):
        gs = small_geometry.model_copy(update={"height": 0.0})
        with pytest.raises(GeometryError, match="height"):
            build_grid(gs, zero_field)

    def test_grid_spacing(self, small_geometry):
        assert grid_spacing(small_geometry) == pytest.approx((2.0, 2.0))

    def test_accepts_plain_geometry(self):
        gs = GeometrySettings(
            inner_width=2.0, inner_length=2.0, height=1.0, amplitude=0.0, inset=0.0
        )
        layers = build_grid(gs, DistanceData())
        assert layers.horizontal_divisions == 2
        assert layers.vertical_divisions == 2
