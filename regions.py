# regions.py
from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional
import uuid

from PIL import Image

from geometry import clamp_rect, pixel_box


class RegionStatus(str, Enum):
    IDLE = "idle"
    CLEANING = "cleaning"
    CLEANED = "cleaned"
    ERROR = "error"


class InvalidTransition(RuntimeError):
    pass


# status -> statuses it may move to
_TRANSITIONS = {
    RegionStatus.IDLE: {RegionStatus.CLEANING},
    RegionStatus.ERROR: {RegionStatus.CLEANING},
    RegionStatus.CLEANING: {RegionStatus.CLEANED, RegionStatus.ERROR},
    RegionStatus.CLEANED: set(),
}


@dataclass
class Region:
    x: float
    y: float
    width: float
    height: float
    status: RegionStatus = RegionStatus.IDLE
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    cleaned_image: Optional[str] = None       # data URI, only while cleaned
    patch: Optional[Image.Image] = field(default=None, repr=False, compare=False)
    error: Optional[str] = None

    @classmethod
    def create(cls, x: float, y: float, width: float, height: float,
               image_width: float, image_height: float) -> "Region":
        """New idle region clamped to the image. Raises ValueError if nothing is left."""
        cx, cy, cw, ch = clamp_rect(x, y, width, height, image_width, image_height)
        if cw <= 0 or ch <= 0:
            raise ValueError(f"empty region after clamping: {(x, y, width, height)}")
        return cls(x=cx, y=cy, width=cw, height=ch)

    @property
    def rect(self):
        return (self.x, self.y, self.width, self.height)

    @property
    def pixel_box(self):
        return pixel_box(self.rect)

    @property
    def pixel_size(self):
        l, t, r, b = self.pixel_box
        return (r - l, b - t)

    @property
    def is_pending(self) -> bool:
        return self.status in (RegionStatus.IDLE, RegionStatus.ERROR)

    def _move(self, new: RegionStatus) -> None:
        if new not in _TRANSITIONS[self.status]:
            raise InvalidTransition(f"region {self.id}: {self.status.value} -> {new.value}")
        self.status = new

    def start_cleaning(self) -> None:
        self._move(RegionStatus.CLEANING)
        self.error = None

    def mark_cleaned(self, data_uri: str, patch: Image.Image) -> None:
        if patch.size != self.pixel_size:
            raise ValueError(f"patch size {patch.size} != region size {self.pixel_size}")
        self._move(RegionStatus.CLEANED)
        self.cleaned_image = data_uri
        self.patch = patch

    def mark_error(self, reason: str = "") -> None:
        self._move(RegionStatus.ERROR)
        self.cleaned_image = None
        self.patch = None
        self.error = reason or None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "x": self.x,
            "y": self.y,
            "width": self.width,
            "height": self.height,
            "status": self.status.value,
            "has_patch": self.patch is not None,
            "error": self.error,
        }
