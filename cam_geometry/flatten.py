"""
Polyline flattening and shape comparison.

This module turns polylines (including bulge arcs) into point lists so the
result of a normal flattening can be checked against the original geometry.

Two routes are provided:
  - entity_to_polyline_points() uses ezdxf.path.make_path() + .flattening()
    on a live DXF entity. make_path() already resolves the entity OCS, so the
    points are world coordinates.
  - polyline_to_wcs_points() works on a PlanarPolyline value and does the
    bulge-to-arc conversion itself.

A bulge value is the tangent of 1/4 of the included arc angle:
  - bulge = 0: straight segment
  - bulge = 1: semicircle, counter-clockwise
  - bulge = -1: semicircle, clockwise
"""

import logging
import math
from typing import List, Tuple

import numpy as np
from ezdxf import path as ezdxf_path
from ezdxf.entities import DXFGraphic
from ezdxf.math import OCS, Vec2, Vec3
from shapely.geometry import LineString, Polygon

from .polyline import GeometryError, PlanarPolyline

logger = logging.getLogger(__name__)

CURVE_TYPES = {'LWPOLYLINE', 'POLYLINE', 'ARC', 'CIRCLE', 'ELLIPSE', 'SPLINE'}


def entity_to_polyline_points(entity: DXFGraphic, max_sagitta: float = 0.1) -> List[Tuple[float, float]]:
    """
    Convert a DXF entity into a list of world (x, y) points.

    Args:
        entity: The DXF entity to convert
        max_sagitta: Maximum deviation from true curve in drawing units

    Returns:
        List of (x, y) tuples. For closed shapes the last point equals the first.

    Raises:
        GeometryError: if ezdxf cannot build a path for the entity
    """
    dxftype = entity.dxftype()
    if dxftype == 'LINE':
        start = entity.dxf.start
        end = entity.dxf.end
        return [(float(start.x), float(start.y)), (float(end.x), float(end.y))]

    if dxftype not in CURVE_TYPES:
        return []

    try:
        path = ezdxf_path.make_path(entity)
        return [(float(v.x), float(v.y)) for v in path.flattening(max_sagitta)]
    except Exception as e:
        raise GeometryError(f"Failed to flatten {dxftype}: {e}") from e


def bulge_to_arc_points(start_point: Vec2, end_point: Vec2, bulge: float, tol: float) -> List[Vec2]:
    """
    Convert a bulge (curved segment) to points along the arc, start and end included.

    bulge = tan(angle/4)
    """
    start_point = Vec2(start_point)
    end_point = Vec2(end_point)
    if abs(bulge) < 1e-12:
        return [start_point, end_point]

    chord_vector = end_point - start_point
    chord_length = chord_vector.magnitude
    if chord_length < 1e-12:
        return [start_point]

    included_angle = 4 * math.atan(abs(bulge))
    radius = chord_length / (2 * math.sin(included_angle / 2))

    # Center sits left of the chord for ccw arcs below 180 degrees;
    # cos() goes negative past 180 and moves it to the other side
    chord_midpoint = (start_point + end_point) / 2
    perpendicular = Vec2(-chord_vector.y, chord_vector.x).normalize()
    center_distance = radius * math.cos(included_angle / 2)
    if bulge > 0:
        center = chord_midpoint + perpendicular * center_distance
    else:
        center = chord_midpoint - perpendicular * center_distance

    start_angle = math.atan2(start_point.y - center.y, start_point.x - center.x)
    sweep = included_angle if bulge > 0 else -included_angle

    if tol < radius:
        step = 2 * math.acos(1 - tol / radius)
    else:
        step = math.pi / 2
    num_segments = max(4, int(math.ceil(included_angle / step)))

    angles = np.linspace(start_angle, start_angle + sweep, num_segments + 1)
    points = [Vec2(center.x + radius * np.cos(a), center.y + radius * np.sin(a)) for a in angles[1:-1]]
    return [start_point] + points + [end_point]


def polyline_to_ocs_points(polyline: PlanarPolyline, tol: float = 0.01) -> List[Vec2]:
    """Flatten a polyline in its own OCS. Closed polylines repeat the first point at the end."""
    polyline.validate()
    vertices = polyline.vertices
    count = len(vertices)
    if count == 0:
        return []
    if count == 1:
        return [vertices[0]]

    segment_count = count if polyline.closed else count - 1
    points = [vertices[0]]
    for i in range(segment_count):
        start = vertices[i]
        end = vertices[(i + 1) % count]
        points.extend(bulge_to_arc_points(start, end, polyline.bulges[i], tol)[1:])
    return points


def polyline_to_wcs_points(polyline: PlanarPolyline, tol: float = 0.01) -> List[Tuple[float, float]]:
    """
    Flatten a polyline and resolve it to world (x, y) points.

    The out-of-plane (z) component is dropped.
    """
    ocs = OCS(polyline.normal)
    result = []
    for p in polyline_to_ocs_points(polyline, tol):
        wcs = ocs.to_wcs(Vec3(p.x, p.y, polyline.elevation))
        result.append((wcs.x, wcs.y))
    return result


def polyline_to_polygon(polyline: PlanarPolyline, tol: float = 0.01) -> Polygon:
    """Build a shapely Polygon from a closed polyline."""
    if not polyline.closed:
        raise GeometryError("Only closed polylines can be converted to a polygon")
    points = polyline_to_wcs_points(polyline, tol)
    if len(points) < 4:
        raise GeometryError(f"Polyline {polyline.handle or '<unbound>'} has too few points for a polygon")
    polygon = Polygon(points)
    if not polygon.is_valid:
        polygon = polygon.buffer(0)
    return polygon


def shape_deviation(first: PlanarPolyline, second: PlanarPolyline, tol: float = 0.01) -> float:
    """
    Measure how different two polylines look in world XY.

    Closed polylines: area of the symmetric difference of their polygons.
    Open polylines: Hausdorff distance between their flattened lines.
    """
    if first.closed and second.closed:
        a = polyline_to_polygon(first, tol)
        b = polyline_to_polygon(second, tol)
        return float(a.symmetric_difference(b).area)

    a = polyline_to_wcs_points(first, tol)
    b = polyline_to_wcs_points(second, tol)
    if len(a) < 2 or len(b) < 2:
        raise GeometryError("Need at least two points per polyline to compare")
    return float(LineString(a).hausdorff_distance(LineString(b)))
