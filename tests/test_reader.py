"""
Tests for the polyline normal preview tool.
"""

import sys

import matplotlib

matplotlib.use('Agg')

import reader  # noqa: E402


def test_preview_counts_inverted_polylines(mirrored_session):
    preview = reader.NormalPreview()
    assert preview.preview(mirrored_session) == (2, 1)
    # previewing must not touch the drawing
    assert mirrored_session.doc.modelspace().query('LWPOLYLINE').first.dxf.extrusion.z == -1


def test_main_writes_png(mirrored_doc, tmp_path, monkeypatch):
    source = tmp_path / 'part.dxf'
    output = tmp_path / 'preview.png'
    mirrored_doc.saveas(source)
    monkeypatch.setattr(sys, 'argv', ['reader.py', str(source), str(output)])

    assert reader.main() == 0
    assert output.stat().st_size > 0


def test_main_missing_file(tmp_path, monkeypatch):
    monkeypatch.setattr(sys, 'argv', ['reader.py', str(tmp_path / 'missing.dxf')])
    assert reader.main() == 1
