# selection.py
from __future__ import annotations
from typing import Optional, Tuple

from geometry import Rect, clamp_rect, display_to_image

Point = Tuple[float, float]


class SelectionHandler:
    """Drag-to-draw state machine: idle <-> drawing.

    Pointer positions arrive in display coordinates and are stored in image
    pixels, so the result does not depend on how large the editor surface is
    rendered. A drag commits only if both sides exceed min_size.
    """

    IDLE = "idle"
    DRAWING = "drawing"

    def __init__(self, image_width: float, image_height: float, min_size: float = 10):
        self.image_width = image_width
        self.image_height = image_height
        self.min_size = min_size
        self.anchor: Optional[Point] = None
        self.current: Optional[Point] = None

    @property
    def state(self) -> str:
        return self.DRAWING if self.anchor is not None else self.IDLE

    def _map(self, pointer: Point, display_rect) -> Point:
        return display_to_image(pointer, display_rect, self.image_width, self.image_height)

    def start(self, pointer: Point, display_rect) -> None:
        p = self._map(pointer, display_rect)
        self.anchor = p
        self.current = p

    def move(self, pointer: Point, display_rect) -> None:
        if self.anchor is None:
            return
        self.current = self._map(pointer, display_rect)

    def preview(self) -> Optional[Rect]:
        if self.anchor is None or self.current is None:
            return None
        (ax, ay), (cx, cy) = self.anchor, self.current
        return (min(ax, cx), min(ay, cy), abs(cx - ax), abs(cy - ay))

    def end(self) -> Optional[Rect]:
        rect = self.preview()
        self.anchor = None
        self.current = None
        if rect is None:
            return None
        # only the part inside the image counts
        rect = clamp_rect(*rect, self.image_width, self.image_height)
        _, _, w, h = rect
        if w > self.min_size and h > self.min_size:
            return rect
        return None

    # pointer leaving the surface finishes the drag the same way
    leave = end
