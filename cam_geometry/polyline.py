"""
Planar polyline model.

A PlanarPolyline is the value form of a DXF LWPOLYLINE: a list of 2D vertices
living in the entity's own OCS (object coordinate system), one bulge per
vertex, the extrusion vector ("normal") that defines that OCS, and the plane
elevation.

Keeping the polyline as a plain value (instead of working on the live ezdxf
entity) lets the normalizer run without any drawing loaded. The helpers
from_lwpolyline() / apply_to_lwpolyline() move data between the two forms.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from ezdxf.math import Vec2, Vec3, Z_AXIS


class GeometryError(Exception):
    """Custom exception for geometry processing errors."""
    pass


class MalformedEntity(GeometryError):
    """Raised when a polyline's vertex and bulge lists are not aligned."""
    pass


@dataclass
class PlanarPolyline:
    """A planar polyline in its own OCS"""
    vertices: List[Vec2]
    bulges: List[float]
    normal: Vec3 = Z_AXIS
    elevation: float = 0.0
    closed: bool = False
    handle: Optional[str] = None
    # (start_width, end_width) per vertex, carried through unchanged
    widths: List[Tuple[float, float]] = field(default_factory=list)

    def __post_init__(self):
        self.vertices = [Vec2(v) for v in self.vertices]
        self.bulges = [float(b) for b in self.bulges]
        self.normal = Vec3(self.normal)
        self.elevation = float(self.elevation)

    def __len__(self) -> int:
        return len(self.vertices)

    def validate(self):
        """Raise MalformedEntity unless every vertex has exactly one bulge."""
        if len(self.vertices) != len(self.bulges):
            raise MalformedEntity(
                f"Polyline {self.handle or '<unbound>'} has {len(self.vertices)} "
                f"vertices but {len(self.bulges)} bulges"
            )
        if self.widths and len(self.widths) != len(self.vertices):
            raise MalformedEntity(
                f"Polyline {self.handle or '<unbound>'} has {len(self.vertices)} "
                f"vertices but {len(self.widths)} width pairs"
            )

    def copy(self) -> "PlanarPolyline":
        return PlanarPolyline(
            vertices=list(self.vertices),
            bulges=list(self.bulges),
            normal=self.normal,
            elevation=self.elevation,
            closed=self.closed,
            handle=self.handle,
            widths=list(self.widths),
        )


def from_lwpolyline(entity) -> PlanarPolyline:
    """
    Read an ezdxf LWPOLYLINE into a PlanarPolyline.

    Args:
        entity: ezdxf LWPolyline entity

    Returns:
        PlanarPolyline bound to the entity handle
    """
    if entity.dxftype() != 'LWPOLYLINE':
        raise GeometryError(f"Expected LWPOLYLINE, got {entity.dxftype()}")

    points = entity.get_points('xyseb')
    return PlanarPolyline(
        vertices=[(p[0], p[1]) for p in points],
        bulges=[p[4] for p in points],
        normal=entity.dxf.extrusion,
        elevation=entity.dxf.elevation,
        closed=entity.closed,
        handle=entity.dxf.handle,
        widths=[(p[2], p[3]) for p in points],
    )


def apply_to_lwpolyline(polyline: PlanarPolyline, entity):
    """
    Write vertices, bulges and normal of a PlanarPolyline back into an ezdxf
    LWPOLYLINE. Elevation, layer and all other attributes stay as they are.
    """
    polyline.validate()
    widths = polyline.widths or [(0.0, 0.0)] * len(polyline.vertices)
    points = [
        (v.x, v.y, w[0], w[1], b)
        for v, w, b in zip(polyline.vertices, widths, polyline.bulges)
    ]
    entity.set_points(points, format='xyseb')
    entity.dxf.extrusion = polyline.normal
