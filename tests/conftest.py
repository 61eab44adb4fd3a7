"""
Shared fixtures for the CAM cleaner tests.
"""

import io
import os
import sys

import ezdxf
import pytest

# Add the project root to the path so the top-level modules import
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from drawing_commands import DrawingSession  # noqa: E402

# Unit square with two semicircular bulges
SQUARE_POINTS = [(0, 0, 0), (1, 0, 1), (1, 1, 0), (0, 1, -1)]


def dxf_bytes(doc) -> bytes:
    stream = io.StringIO()
    doc.write(stream)
    return stream.getvalue().encode('utf8')


@pytest.fixture
def mirrored_doc():
    """Drawing with one inverted, one canonical polyline and a line"""
    doc = ezdxf.new()
    msp = doc.modelspace()
    msp.add_lwpolyline(SQUARE_POINTS, format='xyb', close=True,
                       dxfattribs={'extrusion': (0, 0, -1), 'elevation': 2.5, 'layer': 'CUT'})
    msp.add_lwpolyline([(5, 5, 0), (6, 5, 0.5), (6, 6, 0)], format='xyb')
    msp.add_line((0, 0), (10, 0))
    return doc


@pytest.fixture
def mirrored_session(mirrored_doc):
    return DrawingSession(mirrored_doc)


@pytest.fixture
def mirrored_bytes(mirrored_doc):
    return dxf_bytes(mirrored_doc)
