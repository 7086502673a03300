# editor.py
"""
Editor session: one source image, its region list and the two drivers that
push regions through the remote collaborators.

    load_image -> detect_all (optional) -> manual edits -> clean_all -> compose/export

Everything runs on the caller's thread. Both drivers are strict sequential
loops: the next collaborator request is sent only after the previous one
returned.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional
import logging

from PIL import Image

import config
import gemini
from geometry import DisplayRect, chunk_spans, detected_to_image_rect, detection_scale
from regions import InvalidTransition, Region, RegionStatus
from renderer import compose, export_png, render_overlay
from selection import SelectionHandler
from utils import ImageSource, b64_jpeg, b64_png, decode_data_uri, open_image

log = logging.getLogger(__name__)

DetectFn = Callable[[str, str], List[Any]]
CleanFn = Callable[[str, str], str]
ProgressFn = Callable[[int, int], None]

DETECT_FAILED_MSG = "Failed to detect text. You can draw boxes manually."


class EditorBusy(RuntimeError):
    pass


class NoImageLoaded(RuntimeError):
    pass


class DetectionError(RuntimeError):
    def __init__(self, message: str, added: int = 0, chunk: int = -1):
        super().__init__(message)
        self.added = added
        self.chunk = chunk


@dataclass(frozen=True)
class SourceImage:
    image: Image.Image
    filename: Optional[str] = None

    @property
    def width(self) -> int:
        return self.image.width

    @property
    def height(self) -> int:
        return self.image.height


class MangaEditor:
    def __init__(self,
                 detect_fn: Optional[DetectFn] = None,
                 clean_fn: Optional[CleanFn] = None,
                 chunk_height: int = config.CHUNK_HEIGHT,
                 max_dim: int = config.MAX_DIM,
                 jpeg_quality: int = config.JPEG_QUALITY,
                 pad_ratio: float = config.PAD_RATIO,
                 min_selection: float = config.MIN_SELECTION):
        self.detect_fn = detect_fn or gemini.detect_text_regions
        self.clean_fn = clean_fn or gemini.clean_text_region
        self.chunk_height = chunk_height
        self.max_dim = max_dim
        self.jpeg_quality = jpeg_quality
        self.pad_ratio = pad_ratio
        self.min_selection = min_selection

        self.source: Optional[SourceImage] = None
        self.regions: List[Region] = []
        self.selection: Optional[SelectionHandler] = None
        self.is_detecting = False
        self.is_cleaning = False
        self._composited: Optional[Image.Image] = None

    # ---------- image ----------
    def load_image(self, src: ImageSource, filename: Optional[str] = None) -> SourceImage:
        self._ensure_idle()
        img = open_image(src)
        self.source = SourceImage(img, filename)
        # regions never carry over to another image
        self.regions = []
        self.selection = SelectionHandler(img.width, img.height, self.min_selection)
        self.redraw()
        log.info("[editor] loaded %s (%dx%d)", filename or "image", img.width, img.height)
        return self.source

    def clear(self) -> None:
        self._ensure_idle()
        self.source = None
        self.regions = []
        self.selection = None
        self._composited = None

    def _require_source(self) -> SourceImage:
        if self.source is None:
            raise NoImageLoaded("no image loaded")
        return self.source

    def _ensure_idle(self) -> None:
        if self.is_detecting or self.is_cleaning:
            raise EditorBusy("detection or cleaning is already running")

    # ---------- region list ----------
    def get_region(self, region_id: str) -> Region:
        for r in self.regions:
            if r.id == region_id:
                return r
        raise KeyError(region_id)

    def add_region(self, x: float, y: float, width: float, height: float) -> Region:
        src = self._require_source()
        region = Region.create(x, y, width, height, src.width, src.height)
        self.regions.append(region)
        return region

    def remove_region(self, region_id: str) -> Region:
        region = self.get_region(region_id)
        if region.status is RegionStatus.CLEANING:
            raise InvalidTransition(f"region {region_id} is being cleaned")
        self.regions.remove(region)
        self.redraw()
        return region

    def pending_count(self) -> int:
        return sum(1 for r in self.regions if r.status is RegionStatus.IDLE)

    # ---------- manual selection ----------
    def begin_drag(self, pointer, display_rect) -> None:
        self._require_source()
        self.selection.start(pointer, DisplayRect(*display_rect))

    def update_drag(self, pointer, display_rect) -> None:
        if self.selection is not None:
            self.selection.move(pointer, DisplayRect(*display_rect))

    def end_drag(self) -> Optional[Region]:
        if self.selection is None:
            return None
        rect = self.selection.end()
        if rect is None:
            return None
        return self.add_region(*rect)

    leave_drag = end_drag

    # ---------- detection ----------
    def _detect_chunk(self, index: int, start_y: int, chunk_h: int) -> List[Region]:
        src = self.source
        chunk = src.image.crop((0, start_y, src.width, start_y + chunk_h))
        scale = detection_scale(src.width, self.max_dim)
        if scale < 1.0:
            # request only; mapping below uses the unscaled chunk
            chunk = chunk.resize((self.max_dim, max(1, int(chunk_h * scale))), Image.LANCZOS)

        boxes = self.detect_fn(b64_jpeg(chunk, self.jpeg_quality), "image/jpeg")
        found: List[Region] = []
        for box in boxes:
            x, y, w, h = detected_to_image_rect(box, start_y, src.width, chunk_h, self.pad_ratio)
            try:
                found.append(Region.create(x, y, w, h, src.width, src.height))
            except ValueError:
                log.debug("[detect] chunk %d: dropping degenerate box %r", index, box)
        return found

    def detect_all(self, on_progress: Optional[ProgressFn] = None) -> List[Region]:
        """Detect text chunk by chunk and append the new idle regions.

        A failing chunk aborts the run with DetectionError; regions from the
        chunks before it stay in the list.
        """
        src = self._require_source()
        self._ensure_idle()
        spans = chunk_spans(src.height, self.chunk_height)
        added: List[Region] = []
        self.is_detecting = True
        try:
            for i, (start_y, chunk_h) in enumerate(spans):
                try:
                    found = self._detect_chunk(i, start_y, chunk_h)
                except Exception as ex:
                    log.error("[detect] chunk %d/%d failed: %s", i + 1, len(spans), ex)
                    raise DetectionError(DETECT_FAILED_MSG, added=len(added), chunk=i) from ex
                self.regions.extend(found)
                added.extend(found)
                log.info("[detect] chunk %d/%d y=%d h=%d -> %d regions", i + 1, len(spans), start_y, chunk_h, len(found))
                if on_progress:
                    on_progress(i + 1, len(spans))
        finally:
            self.is_detecting = False
        return added

    # ---------- cleaning ----------
    def _clean_one(self, region: Region) -> None:
        src = self.source
        crop = src.image.crop(region.pixel_box)
        data_uri = self.clean_fn(b64_png(crop), "image/png")
        # fully decoded before the region is marked, the compositor never sees a half-loaded patch
        patch = decode_data_uri(data_uri)
        if patch.size != crop.size:
            patch = patch.resize(crop.size, Image.LANCZOS)
        region.mark_cleaned(data_uri, patch)

    def clean_all(self, on_progress: Optional[ProgressFn] = None) -> List[Region]:
        """Clean every idle/error region one at a time.

        A failure only marks that region as error; the batch keeps going.
        """
        self._require_source()
        self._ensure_idle()
        todo = [r for r in self.regions if r.is_pending]
        self.is_cleaning = True
        try:
            for n, region in enumerate(todo, 1):
                region.start_cleaning()
                try:
                    self._clean_one(region)
                except Exception as ex:
                    log.warning("[clean] region %s failed: %s", region.id, ex)
                    region.mark_error(str(ex))
                else:
                    log.info("[clean] region %s cleaned (%d/%d)", region.id, n, len(todo))
                    self.redraw()
                if on_progress:
                    on_progress(n, len(todo))
        finally:
            self.is_cleaning = False
        return todo

    # ---------- compositor ----------
    def redraw(self) -> Image.Image:
        src = self._require_source()
        self._composited = compose(src.image, self.regions)
        return self._composited

    def composited(self) -> Image.Image:
        if self._composited is None:
            return self.redraw()
        return self._composited

    def preview(self) -> Image.Image:
        return render_overlay(self.composited(), self.regions)

    def export_png(self) -> bytes:
        return export_png(self.composited())

    def state(self) -> Dict[str, Any]:
        src = self.source
        drawing = self.selection.preview() if self.selection else None
        return {
            "image": None if src is None else {"width": src.width, "height": src.height, "filename": src.filename},
            "regions": [r.to_dict() for r in self.regions],
            "pending": self.pending_count(),
            "is_detecting": self.is_detecting,
            "is_cleaning": self.is_cleaning,
            "drawing": list(drawing) if drawing else None,
        }
