from __future__ import annotations

from logging import getLogger

from .Types import Point

logger = getLogger(__name__)

MIN_ZOOM = 0.5
MAX_ZOOM = 2.0

WHEEL_ZOOM_IN = 1.1
WHEEL_ZOOM_OUT = 0.9


def clamp_zoom(value: float) -> float:
    return max(MIN_ZOOM, min(MAX_ZOOM, value))


class Viewport:
    """
    Pan/zoom transform between screen pixels and graph coordinates.

        graph = (screen - pan) / zoom
        screen = graph * zoom + pan

    The viewport never touches graph data; it only changes how it is viewed.
    """

    def __init__(self, zoom: float = 1.0, pan: Point = Point(0, 0)):
        self.zoom = clamp_zoom(zoom)
        self.pan_offset = Point(*pan)

    def screen_to_graph(self, point: Point) -> Point:
        return Point(*point).minus(self.pan_offset).scaled(1.0 / self.zoom)

    def graph_to_screen(self, point: Point) -> Point:
        return Point(*point).scaled(self.zoom).plus(self.pan_offset)

    def zoom_by(self, factor: float) -> float:
        # Multiplicative so that repeated steps converge on the limits
        if factor <= 0:
            logger.debug("Ignoring non-positive zoom factor %s", factor)
            return self.zoom
        self.zoom = clamp_zoom(self.zoom * factor)
        return self.zoom

    def pan(self, delta: Point):
        self.pan_offset = self.pan_offset.plus(Point(*delta))

    def wheel(self, delta_y: float, zoom_modifier: bool) -> bool:
        """Ctrl/Cmd + wheel zooms; a plain wheel is left to the host."""
        if not zoom_modifier:
            return False
        self.zoom_by(WHEEL_ZOOM_OUT if delta_y > 0 else WHEEL_ZOOM_IN)
        return True

    def reset(self):
        self.zoom = 1.0
        self.pan_offset = Point(0, 0)

    def copy(self) -> 'Viewport':
        return Viewport(self.zoom, self.pan_offset)

    def to_dict(self):
        return {"zoom": self.zoom, "pan": self.pan_offset.to_dict()}
