"""Shared fixtures for moldgen tests."""

import pytest

from moldgen.models import DistanceData, GeometrySettings, MethodEntry


@pytest.fixture
def small_geometry():
    return GeometrySettings(
        inner_width=6.0,
        inner_length=4.0,
        height=5.0,
        amplitude=1.0,
        inset=1.0,
        horizontal_divisions=3,
        vertical_divisions=2,
        base_position=(0.0, 0.0, 0.0),
    )


@pytest.fixture
def zero_field():
    return DistanceData(methods=[], scale=1.0)


@pytest.fixture
def gyroid_field():
    return DistanceData(methods=[MethodEntry(method="gyroid", number=1.0)], scale=1.0)


@pytest.fixture
def simple_grid_yaml():
    return """\
type: simple
u_count: 2
v_count: 2
div_per_mm: 1
height: 5
inset: 1
spacing: 4
amplitude: 1
cell_width: 10
cell_length: 8
sdf_setting:
  methods:
    - method: gyroid
      number: 1
  scale: 1
colors: ["#112233"]
"""


@pytest.fixture
def single_grid_yaml():
    return """\
type: single
div_per_mm: 1
height: 5
inset: -1
amplitude: 1
cell_width: 6
cell_length: 4
sdf_setting:
  methods:
    - method: SDGyroid
      number: 2
    - method: neovius
  scale: 0.5
color: "#9A4C0D"
"""
