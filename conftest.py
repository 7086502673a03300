import base64
import io

import pytest
from PIL import Image

from gemini import DetectedBoxPercent, GeminiError
from utils import b64_png, to_data_uri


def solid(w, h, color=(255, 255, 255, 255)):
    return Image.new("RGBA", (w, h), color)


def patch_uri(w, h, color=(0, 200, 0, 255)):
    return to_data_uri(b64_png(solid(w, h, color)), "image/png")


def _decode(b64):
    im = Image.open(io.BytesIO(base64.b64decode(b64)))
    im.load()
    return im


class FakeDetector:
    """Returns canned boxes per chunk index; records what it was sent."""

    def __init__(self, per_chunk=None, fail_on=None):
        self.per_chunk = per_chunk or {}
        self.fail_on = fail_on
        self.calls = []

    def __call__(self, b64, mime):
        idx = len(self.calls)
        self.calls.append((_decode(b64).size, mime))
        if idx == self.fail_on:
            raise GeminiError("upstream exploded")
        return [DetectedBoxPercent(**b) for b in self.per_chunk.get(idx, [])]


class FakeCleaner:
    """Answers with a solid patch the size of the crop, or fails on chosen calls."""

    def __init__(self, color=(0, 200, 0, 255), fail_on=(), size=None):
        self.color = color
        self.fail_on = set(fail_on)
        self.size = size
        self.calls = []

    def __call__(self, b64, mime):
        idx = len(self.calls)
        crop = _decode(b64)
        self.calls.append((crop.size, mime))
        if idx in self.fail_on:
            raise GeminiError("No image returned from Gemini")
        w, h = self.size or crop.size
        return patch_uri(w, h, self.color)


@pytest.fixture
def make_image():
    return solid


@pytest.fixture
def fake_detector():
    return FakeDetector


@pytest.fixture
def fake_cleaner():
    return FakeCleaner


@pytest.fixture
def png_bytes_of():
    def _png(im):
        buf = io.BytesIO()
        im.save(buf, "PNG")
        return buf.getvalue()
    return _png


@pytest.fixture(autouse=True)
def _no_api_key(monkeypatch):
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
