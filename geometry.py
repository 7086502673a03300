# geometry.py
"""
Coordinate bookkeeping between the spaces a region passes through:

  percent  - model I/O, 0..100 of the chunk that was sent to the detector
  chunk    - pixels inside one vertical slice of the source image
  image    - pixels of the full, unscaled source image
  display  - pointer coordinates on the (CSS sized) editor surface

Rectangles are (x, y, w, h) tuples like the rest of the project.
"""
from __future__ import annotations
import math
from typing import List, NamedTuple, Tuple

Rect = Tuple[float, float, float, float]
_EPS = 1e-6


class PercentBox(NamedTuple):
    ymin: float
    xmin: float
    ymax: float
    xmax: float


class DisplayRect(NamedTuple):
    left: float
    top: float
    width: float
    height: float


def _clamp(v: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, v))


# ---------- chunk planning ----------
def chunk_spans(height: int, chunk_height: int = 2048) -> List[Tuple[int, int]]:
    """[(start_y, h), ...] covering 0..height top to bottom, each h <= chunk_height."""
    if chunk_height <= 0:
        raise ValueError("chunk_height must be positive")
    n = math.ceil(height / chunk_height) if height > 0 else 0
    return [(i * chunk_height, min(chunk_height, height - i * chunk_height)) for i in range(n)]


def detection_scale(width: int, max_dim: int = 2048) -> float:
    return max_dim / width if width > max_dim else 1.0


# ---------- percent space ----------
def normalize_percent_box(box) -> PercentBox:
    y1, y2 = sorted((float(box.ymin), float(box.ymax)))
    x1, x2 = sorted((float(box.xmin), float(box.xmax)))
    return PercentBox(_clamp(y1, 0, 100), _clamp(x1, 0, 100), _clamp(y2, 0, 100), _clamp(x2, 0, 100))


def pad_percent_box(box, ratio: float = 0.05) -> PercentBox:
    """Grow every side by ratio * own size, then clamp to 0..100.

    Detector boxes tend to clip bubble borders and tails.
    """
    pad_y = (box.ymax - box.ymin) * ratio
    pad_x = (box.xmax - box.xmin) * ratio
    return PercentBox(
        ymin=max(0.0, box.ymin - pad_y),
        xmin=max(0.0, box.xmin - pad_x),
        ymax=min(100.0, box.ymax + pad_y),
        xmax=min(100.0, box.xmax + pad_x),
    )


def percent_to_chunk_pixels(box, chunk_width: float, chunk_height: float) -> Rect:
    x = box.xmin / 100 * chunk_width
    y = box.ymin / 100 * chunk_height
    w = (box.xmax - box.xmin) / 100 * chunk_width
    h = (box.ymax - box.ymin) / 100 * chunk_height
    return (x, y, w, h)


def chunk_to_image(rect: Rect, chunk_y_offset: float) -> Rect:
    # chunks are vertical slices, x is shared with the image
    x, y, w, h = rect
    return (x, y + chunk_y_offset, w, h)


def image_to_percent(rect: Rect, chunk_y_offset: float, chunk_width: float, chunk_height: float) -> PercentBox:
    x, y, w, h = rect
    y -= chunk_y_offset
    return PercentBox(
        ymin=y / chunk_height * 100,
        xmin=x / chunk_width * 100,
        ymax=(y + h) / chunk_height * 100,
        xmax=(x + w) / chunk_width * 100,
    )


def detected_to_image_rect(box, chunk_y_offset: float, chunk_width: float, chunk_height: float,
                           pad_ratio: float = 0.05) -> Rect:
    """Collaborator box -> padded rectangle in full-image pixels.

    chunk_width/chunk_height are the unscaled slice dimensions; percentages
    are invariant under the uniform downscale applied to the request.
    """
    padded = pad_percent_box(normalize_percent_box(box), pad_ratio)
    return chunk_to_image(percent_to_chunk_pixels(padded, chunk_width, chunk_height), chunk_y_offset)


# ---------- image / display ----------
def clamp_rect(x: float, y: float, w: float, h: float, image_width: float, image_height: float) -> Rect:
    x1 = _clamp(min(x, x + w), 0, image_width)
    x2 = _clamp(max(x, x + w), 0, image_width)
    y1 = _clamp(min(y, y + h), 0, image_height)
    y2 = _clamp(max(y, y + h), 0, image_height)
    return (x1, y1, x2 - x1, y2 - y1)


def display_to_image(pointer: Tuple[float, float], display_rect, image_width: float, image_height: float) -> Tuple[float, float]:
    left, top, dw, dh = display_rect
    if dw <= 0 or dh <= 0:
        raise ValueError("display rect has no area")
    px, py = pointer
    return ((px - left) * (image_width / dw), (py - top) * (image_height / dh))


def pixel_box(rect: Rect) -> Tuple[int, int, int, int]:
    """Integer (left, top, right, bottom) for PIL crop/paste, at least 1px each way.

    Edges go outward to whole pixels, so a rect inside the image never
    yields a box past its edge.
    """
    x, y, w, h = rect
    l, t = int(math.floor(x)), int(math.floor(y))
    r = int(math.ceil(x + w - _EPS))
    b = int(math.ceil(y + h - _EPS))
    return (l, t, max(r, l + 1), max(b, t + 1))
