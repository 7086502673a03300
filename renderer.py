# renderer.py
from __future__ import annotations
from typing import Iterable
from PIL import Image, ImageDraw

from regions import Region, RegionStatus
from utils import png_bytes

# outline/fill colours per status for the preview overlay
_STATUS_COLORS = {
    RegionStatus.IDLE: (59, 130, 246),
    RegionStatus.CLEANING: (245, 158, 11),
    RegionStatus.CLEANED: (16, 185, 129),
    RegionStatus.ERROR: (239, 68, 68),
}


def compose(base: Image.Image, regions: Iterable[Region]) -> Image.Image:
    """Base image at full resolution with every cleaned patch pasted on top.

    List order is draw order, so overlapping patches are last-write-wins.
    Always redraws everything; calling it twice gives the same result.
    """
    out = base.convert("RGBA").copy()
    for r in regions:
        if r.status is not RegionStatus.CLEANED or r.patch is None:
            continue
        l, t, rr, bb = r.pixel_box
        patch = r.patch
        if patch.size != (rr - l, bb - t):
            patch = patch.resize((rr - l, bb - t), Image.LANCZOS)
        out.paste(patch.convert("RGBA"), (l, t))
    return out


def render_overlay(img: Image.Image, regions: Iterable[Region], width: int = 2) -> Image.Image:
    """Composited image with each region outlined in its status colour."""
    base = img.convert("RGBA")
    layer = Image.new("RGBA", base.size, (0, 0, 0, 0))
    d = ImageDraw.Draw(layer)
    for r in regions:
        rgb = _STATUS_COLORS[r.status]
        l, t, rr, bb = r.pixel_box
        fill = (*rgb, 25) if r.status is RegionStatus.CLEANED else (*rgb, 50)
        d.rectangle([l, t, rr - 1, bb - 1], outline=(*rgb, 255), fill=fill, width=width)
    return Image.alpha_composite(base, layer)


def export_png(img: Image.Image) -> bytes:
    return png_bytes(img)
