"""
Tests for polyline normal flattening.
"""

import logging
import math

import pytest
from ezdxf.math import Vec2, Vec3

from cam_geometry import (
    BulgePolicy,
    MalformedEntity,
    NormalizerConfig,
    PlanarPolyline,
    is_canonical,
    normalize,
    normalize_all,
    shape_deviation,
)


def square(normal=(0, 0, -1), **kwargs):
    return PlanarPolyline(
        vertices=[(0, 0), (1, 0), (1, 1), (0, 1)],
        bulges=[0, 1, 0, -1],
        normal=normal,
        closed=True,
        **kwargs
    )


def assert_points_close(actual, expected):
    assert len(actual) == len(expected)
    for a, e in zip(actual, expected):
        assert Vec2(a).isclose(Vec2(e), abs_tol=1e-12), f"{a} != {e}"


def test_canonical_polyline_is_untouched():
    polyline = square(normal=(0, 0, 1))
    before = polyline.copy()

    assert normalize(polyline) == 0
    assert polyline.vertices == before.vertices
    assert polyline.bulges == before.bulges
    assert polyline.normal == Vec3(0, 0, 1)


def test_antiparallel_square_scenario():
    polyline = square()

    assert normalize(polyline) == 1
    assert polyline.normal == Vec3(0, 0, 1)
    # OCS x axis for (0, 0, -1) is world -X
    assert_points_close(polyline.vertices, [(0, 0), (-1, 0), (-1, 1), (0, 1)])
    assert polyline.bulges == [0, -1, 0, 1]


def test_second_normalize_is_noop():
    polyline = square()
    normalize(polyline)
    after_first = polyline.copy()

    assert normalize(polyline) == 0
    assert polyline.vertices == after_first.vertices
    assert polyline.bulges == after_first.bulges


def test_bulge_magnitude_kept_and_sign_flipped():
    bulges = [0.25, -0.7, 0.0, 2.0, -1.0]
    polyline = PlanarPolyline(
        vertices=[(i, i * i) for i in range(5)],
        bulges=bulges,
        normal=(0, 0, -1),
    )
    normalize(polyline)

    for before, after in zip(bulges, polyline.bulges):
        assert abs(after) == abs(before)
        if before != 0:
            assert math.copysign(1, after) == -math.copysign(1, before)


def test_elevation_and_flags_are_kept():
    polyline = square(elevation=3.0, handle='2A')
    normalize(polyline)

    assert polyline.elevation == 3.0
    assert polyline.closed is True
    assert polyline.handle == '2A'


def test_malformed_polyline_is_not_modified():
    polyline = PlanarPolyline(vertices=[(0, 0), (1, 0), (1, 1)], bulges=[0, 1], normal=(0, 0, -1))

    with pytest.raises(MalformedEntity):
        normalize(polyline)
    assert polyline.normal == Vec3(0, 0, -1)
    assert polyline.vertices == [Vec2(0, 0), Vec2(1, 0), Vec2(1, 1)]
    assert polyline.bulges == [0, 1]


@pytest.mark.parametrize('points', [
    [(0, 0, 0), (4, 0, 0.4), (4, 3, 0), (0, 3, -0.3)],
    [(1, 1, 1), (3, 1, 1)],
    [(-2, 0, 0.1), (0, -2, -0.8), (2, 0, 0.0), (0, 2, 0.9)],
])
def test_antiparallel_shape_is_preserved(points):
    polyline = PlanarPolyline(
        vertices=[(x, y) for x, y, _ in points],
        bulges=[b for _, _, b in points],
        normal=(0, 0, -1),
        elevation=1.5,
        closed=True,
    )
    original = polyline.copy()
    normalize(polyline)

    assert shape_deviation(original, polyline, tol=0.001) < 1e-2


def test_open_polyline_shape_is_preserved():
    polyline = PlanarPolyline(
        vertices=[(0, 0), (2, 0), (2, 2)],
        bulges=[0.5, -0.3, 0.0],
        normal=(0, 0, -1),
    )
    original = polyline.copy()
    normalize(polyline)

    assert shape_deviation(original, polyline, tol=0.001) < 1e-2


def test_tilted_normal_logs_warning(caplog):
    polyline = square(normal=(0, 0.6, 0.8))

    with caplog.at_level(logging.WARNING, logger='cam_geometry.normals'):
        assert normalize(polyline) == 1
    assert 'does not preserve its shape' in caplog.text
    assert polyline.normal == Vec3(0, 0, 1)
    assert polyline.bulges == [0, -1, 0, 1]


def test_handedness_policy_keeps_bulges_for_upward_tilt():
    config = NormalizerConfig(bulge_policy=BulgePolicy.HANDEDNESS)

    upward = square(normal=(0, 0.6, 0.8))
    normalize(upward, config)
    assert upward.bulges == [0, 1, 0, -1]

    downward = square(normal=(0, 0, -1))
    normalize(downward, config)
    assert downward.bulges == [0, -1, 0, 1]


def test_canonical_tolerance():
    nearly_up = (0, 1e-12, 1)
    assert not is_canonical(nearly_up)
    assert is_canonical(nearly_up, tolerance=1e-9)

    polyline = square(normal=nearly_up)
    assert normalize(polyline, NormalizerConfig(canonical_tolerance=1e-9)) == 0


def test_batch_counts_only_modified_polylines():
    candidates = [
        square(),
        square(normal=(0, 0, 1)),
        'not a polyline',
        square(normal=(0, 0, -1)),
        None,
        PlanarPolyline(vertices=[(0, 0)], bulges=[], normal=(0, 0, -1)),
    ]

    assert normalize_all(candidates) == 2
    assert normalize_all(candidates) == 0


def test_batch_with_no_candidates():
    assert normalize_all([]) == 0
