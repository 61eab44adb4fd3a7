"""
Polyline normal flattening.

Polylines drawn in a mirrored or rotated UCS end up with an extrusion vector
other than (0, 0, 1). CAM post-processors usually ignore the extrusion and
read the raw OCS coordinates, which shows up as parts mirrored in X.

normalize() rewrites such a polyline directly in the WCS XY plane:

  - every vertex is resolved from OCS to WCS using the *current* normal
    (arbitrary axis algorithm, ezdxf.math.OCS) and its X/Y are kept,
  - every bulge is negated, since the re-expression mirrors the 2D
    parameterization and reverses the turning direction of each arc,
  - the normal is reset to (0, 0, 1).

Only the antiparallel case (0, 0, -1) is an exact mirror. For tilted normals
the XY projection is not shape preserving (arcs become elliptical); those
polylines are still rewritten but a warning is logged. See BulgePolicy for
the choice of bulge sign on tilted normals.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional

from ezdxf.math import OCS, Vec2, Vec3, Z_AXIS

from .polyline import MalformedEntity, PlanarPolyline

logger = logging.getLogger(__name__)

CANONICAL_NORMAL = Z_AXIS


class BulgePolicy(Enum):
    """How bulge signs are rewritten for a non-canonical normal"""
    NEGATE = 'negate'          # always flip the sign
    HANDEDNESS = 'handedness'  # flip only when normal.z < 0


@dataclass
class NormalizerConfig:
    """Configuration for normal flattening"""
    canonical_tolerance: float = 0.0
    antiparallel_tolerance: float = 1e-9
    bulge_policy: BulgePolicy = BulgePolicy.NEGATE


DEFAULT_CONFIG = NormalizerConfig()


def is_canonical(normal, tolerance: float = 0.0) -> bool:
    """True if normal equals (0, 0, 1), exactly unless a tolerance is given."""
    normal = Vec3(normal)
    if tolerance <= 0.0:
        return normal.xyz == CANONICAL_NORMAL.xyz
    return normal.isclose(CANONICAL_NORMAL, abs_tol=tolerance)


def is_antiparallel(normal, tolerance: float = 1e-9) -> bool:
    return Vec3(normal).isclose(-CANONICAL_NORMAL, abs_tol=tolerance)


def _flip_bulge(normal: Vec3, policy: BulgePolicy) -> bool:
    if policy is BulgePolicy.HANDEDNESS:
        return normal.z < 0.0
    return True


def normalize(polyline: PlanarPolyline, config: Optional[NormalizerConfig] = None) -> int:
    """
    Re-express a polyline in the canonical XY plane.

    Args:
        polyline: polyline to rewrite in place
        config: tolerances and bulge policy, DEFAULT_CONFIG if omitted

    Returns:
        1 if the polyline was modified, 0 if its normal was already canonical

    Raises:
        MalformedEntity: vertex/bulge count mismatch, raised before any change
    """
    config = config or DEFAULT_CONFIG
    if is_canonical(polyline.normal, config.canonical_tolerance):
        return 0

    polyline.validate()

    normal = Vec3(polyline.normal)
    if not is_antiparallel(normal, config.antiparallel_tolerance):
        logger.warning(
            f"Polyline {polyline.handle or '<unbound>'} has tilted normal {normal}; "
            f"flat projection does not preserve its shape"
        )

    ocs = OCS(normal)
    flip = _flip_bulge(normal, config.bulge_policy)

    vertices = []
    bulges = []
    for vertex, bulge in zip(polyline.vertices, polyline.bulges):
        vertex = Vec2(vertex)
        wcs = ocs.to_wcs(Vec3(vertex.x, vertex.y, polyline.elevation))
        vertices.append(Vec2(wcs.x, wcs.y))
        bulges.append(-bulge if flip and bulge else bulge)

    # Vertices and bulges first, normal last
    polyline.vertices = vertices
    polyline.bulges = bulges
    polyline.normal = CANONICAL_NORMAL
    return 1


def normalize_all(candidates: Iterable, config: Optional[NormalizerConfig] = None) -> int:
    """
    Normalize every PlanarPolyline among the candidates.

    Anything that is not a PlanarPolyline is skipped silently. A malformed
    polyline is logged and skipped; the rest of the batch continues.

    Returns:
        number of polylines modified
    """
    fixed = 0
    for candidate in candidates:
        if not isinstance(candidate, PlanarPolyline):
            continue
        try:
            fixed += normalize(candidate, config)
        except MalformedEntity as e:
            logger.error(f"Skipping malformed polyline: {e}")
    return fixed
