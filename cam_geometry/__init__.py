"""
Geometry module for DXF polyline cleanup.

Key functions:
- normalize(polyline): re-express a polyline with a non-canonical extrusion
  vector in the WCS XY plane, negating bulges so arcs keep their shape.
- normalize_all(candidates): batch form, returns the number of polylines fixed.
- entity_to_polyline_points(entity, max_sagitta) / shape_deviation(a, b):
  flatten curves to points and compare shapes.
"""

from .polyline import (
    GeometryError,
    MalformedEntity,
    PlanarPolyline,
    apply_to_lwpolyline,
    from_lwpolyline,
)
from .normals import (
    CANONICAL_NORMAL,
    BulgePolicy,
    NormalizerConfig,
    is_canonical,
    normalize,
    normalize_all,
)
from .flatten import (
    bulge_to_arc_points,
    entity_to_polyline_points,
    polyline_to_polygon,
    polyline_to_wcs_points,
    shape_deviation,
)

__all__ = [
    "GeometryError", "MalformedEntity", "PlanarPolyline", "apply_to_lwpolyline", "from_lwpolyline",
    "CANONICAL_NORMAL", "BulgePolicy", "NormalizerConfig", "is_canonical", "normalize", "normalize_all",
    "bulge_to_arc_points", "entity_to_polyline_points", "polyline_to_polygon", "polyline_to_wcs_points",
    "shape_deviation",
]
