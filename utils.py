# utils.py
from __future__ import annotations
from typing import BinaryIO, Union
from PIL import Image, UnidentifiedImageError
import base64, binascii, io, os, re

ImageSource = Union[str, os.PathLike, bytes, BinaryIO, Image.Image]

_DATA_URI_RE = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+);base64,")


def open_image(src: ImageSource) -> Image.Image:
    """Path, raw bytes, file object or PIL image -> RGBA copy."""
    if isinstance(src, Image.Image):
        return src.convert("RGBA")
    if isinstance(src, (bytes, bytearray)):
        src = io.BytesIO(src)
    with Image.open(src) as im:
        im.load()
        return im.convert("RGBA")


# ================= encoders =================
def png_bytes(im: Image.Image) -> bytes:
    buf = io.BytesIO()
    im.save(buf, format="PNG")
    return buf.getvalue()


def b64_png(im: Image.Image) -> str:
    return base64.b64encode(png_bytes(im)).decode("utf-8")


def b64_jpeg(im: Image.Image, quality: int = 80) -> str:
    # JPEG has no alpha
    buf = io.BytesIO()
    im.convert("RGB").save(buf, format="JPEG", quality=quality)
    return base64.b64encode(buf.getvalue()).decode("utf-8")


def to_data_uri(b64: str, mime_type: str) -> str:
    return f"data:{mime_type};base64,{b64}"


# ================= decoders =================
def split_data_uri(s: str):
    """'data:<mime>;base64,<data>' -> (mime, data). Bare base64 gives (None, s)."""
    m = _DATA_URI_RE.match(s or "")
    if not m:
        return None, (s or "")
    return m.group("mime"), s[m.end():]


def decode_data_uri(s: str) -> Image.Image:
    """Decode a data URI (or bare base64) fully into an RGBA raster."""
    _, b64 = split_data_uri(s)
    if not b64:
        raise ValueError("empty image data")
    try:
        raw = base64.b64decode(b64, validate=True)
        return open_image(raw)
    except (binascii.Error, UnidentifiedImageError, OSError) as ex:
        raise ValueError(f"undecodable image data: {ex}") from ex
