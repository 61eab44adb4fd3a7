#!/usr/bin/env python3
"""
DXF Polyline Normal Preview - Standalone Debug Tool

Plots every LWPOLYLINE of a DXF file twice: as the raw OCS coordinates a
CAM post-processor would read, and after normal flattening. Polylines with
an inverted normal show up mirrored on the left and in place on the right.

Usage:
    python reader.py dxf_file_path [output.png]

Without an output path the plot window is shown.
"""

import logging
import os
import sys
from typing import List, Tuple

import matplotlib
import matplotlib.pyplot as plt

from cam_geometry import from_lwpolyline, is_canonical, normalize, polyline_to_wcs_points
from cam_geometry.flatten import polyline_to_ocs_points
from cleaner_config import CleanerConfig, configure_logging, normalizer_config_from_env
from drawing_commands import DrawingSession, EntityKind
from error_handler import handle_errors

logger = logging.getLogger(__name__)


@handle_errors('file_error')
def load_drawing(file_path: str) -> DrawingSession:
    return DrawingSession.from_file(file_path)


class NormalPreview:
    def __init__(self, max_sagitta: float = CleanerConfig.MAX_SAGITTA):
        self.max_sagitta = max_sagitta
        self.fig, (self.ax_raw, self.ax_fixed) = plt.subplots(1, 2, figsize=(14, 7))
        for ax in (self.ax_raw, self.ax_fixed):
            ax.set_aspect('equal')
            ax.grid(True, alpha=0.3)
            ax.set_xlabel('X Coordinate')
            ax.set_ylabel('Y Coordinate')
        self.ax_raw.set_title('Raw OCS coordinates')
        self.ax_fixed.set_title('After flattening normals')

    def _plot(self, ax, points: List[Tuple[float, float]], color: str):
        if len(points) < 2:
            return
        ax.plot([p[0] for p in points], [p[1] for p in points], color=color, linewidth=1)

    def preview(self, session: DrawingSession) -> Tuple[int, int]:
        """Plot all modelspace polylines, returns (total, inverted) counts"""
        config = normalizer_config_from_env()
        total = 0
        inverted = 0
        for handle in session.select(EntityKind.LWPOLYLINE):
            polyline = from_lwpolyline(session.open_for_write(handle))
            total += 1
            color = 'blue'
            if not is_canonical(polyline.normal, config.canonical_tolerance):
                inverted += 1
                color = 'red'

            raw = [(p.x, p.y) for p in polyline_to_ocs_points(polyline, self.max_sagitta)]
            self._plot(self.ax_raw, raw, color)

            fixed = polyline.copy()
            normalize(fixed, config)
            self._plot(self.ax_fixed, polyline_to_wcs_points(fixed, self.max_sagitta), color)

        self.fig.suptitle(f'{os.path.basename(session.source or "")}: '
                          f'{inverted} of {total} polylines with non-canonical normal')
        legend_elements = [
            plt.Line2D([0], [0], color='blue', label='Normal (0, 0, 1)'),
            plt.Line2D([0], [0], color='red', label='Other normal'),
        ]
        self.ax_fixed.legend(handles=legend_elements, loc='upper right')
        return total, inverted


def main():
    """Main function to run the preview."""
    configure_logging()
    if len(sys.argv) < 2:
        print("Usage: python reader.py dxf_file_path [output.png]")
        return 1

    file_path = sys.argv[1]
    if not os.path.exists(file_path):
        print(f"File not found: {file_path}")
        return 1

    output = sys.argv[2] if len(sys.argv) > 2 else None
    if output:
        matplotlib.use('Agg')

    preview = NormalPreview()
    total, inverted = preview.preview(load_drawing(file_path))
    logger.info(f"{total} polylines, {inverted} with non-canonical normal")

    plt.tight_layout()
    if output:
        preview.fig.savefig(output, dpi=150)
        logger.info(f"Preview written to {output}")
    else:
        plt.show()
    return 0


if __name__ == "__main__":
    sys.exit(main())
