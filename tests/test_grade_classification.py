"""Copyright (C) 2025 Pierre Marrec
SPDX-License-Identifier: GPL-3.0-or-later
"""

from __future__ import annotations

import math

from utils.grade_classification import TerrainClass, classify_terrain, is_steep


def test_classify_terrain_boundaries() -> None:
    assert classify_terrain(2.0) is TerrainClass.CLIMBING
    assert classify_terrain(12.5) is TerrainClass.CLIMBING
    assert classify_terrain(1.99) is TerrainClass.FLAT
    assert classify_terrain(0.0) is TerrainClass.FLAT
    assert classify_terrain(-1.99) is TerrainClass.FLAT
    assert classify_terrain(-2.0) is TerrainClass.DESCENT
    assert classify_terrain(-15.0) is TerrainClass.DESCENT


def test_classify_terrain_nan_is_flat() -> None:
    assert classify_terrain(math.nan) is TerrainClass.FLAT


def test_terrain_class_values_are_strings() -> None:
    assert TerrainClass.CLIMBING == "climbing"
    assert [t.value for t in TerrainClass] == ["climbing", "flat", "descent"]


def test_is_steep_does_not_change_class() -> None:
    assert is_steep(8.0)
    assert is_steep(-8.0)
    assert not is_steep(7.9)
    assert not is_steep(-7.9)
    assert not is_steep(math.nan)
    # Steep climbs are still plain climbing terrain
    assert classify_terrain(10.0) is TerrainClass.CLIMBING
