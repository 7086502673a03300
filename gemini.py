# gemini.py
"""Detection and cleaning collaborators backed by the Gemini REST API."""
from __future__ import annotations
from typing import Any, Dict, List, Optional
import json, logging

import requests
from pydantic import BaseModel, ValidationError

import config
from config import get_api_key

log = logging.getLogger(__name__)

DETECT_PROMPT = (
    "Analyze this manga/manhwa image and find all text, speech bubbles, and sound effects. "
    "Return their bounding boxes as percentages (0-100) of the image's width and height. "
    "Do not include the whole image, only the specific text regions."
)

CLEAN_PROMPT = (
    "Remove all text from this image. Keep the background, textures, and speech bubble borders intact. "
    "Do not add any new elements or characters. Output only the cleaned image."
)

_BOX_SCHEMA = {
    "type": "ARRAY",
    "items": {
        "type": "OBJECT",
        "properties": {
            "ymin": {"type": "NUMBER", "description": "Top edge percentage (0-100)"},
            "xmin": {"type": "NUMBER", "description": "Left edge percentage (0-100)"},
            "ymax": {"type": "NUMBER", "description": "Bottom edge percentage (0-100)"},
            "xmax": {"type": "NUMBER", "description": "Right edge percentage (0-100)"},
        },
        "required": ["ymin", "xmin", "ymax", "xmax"],
    },
}


class GeminiError(RuntimeError):
    pass


class DetectedBoxPercent(BaseModel):
    ymin: float
    xmin: float
    ymax: float
    xmax: float


def model_url(model: str) -> str:
    return f"{config.GEMINI_API_BASE}/models/{model}:generateContent"


def image_part(b64: str, mime_type: str) -> Dict[str, Any]:
    return {"inlineData": {"mimeType": mime_type, "data": b64}}


def generate_content(model: str, payload: Dict[str, Any], api_key: Optional[str] = None) -> Dict[str, Any]:
    """POST a generateContent request and return the decoded JSON body.

    Raises GeminiError on transport errors, non-OK status or a body that is
    not JSON; the upstream error.message is used when the API supplies one.
    """
    key = api_key or get_api_key()
    try:
        r = requests.post(
            model_url(model),
            params={"key": key},
            headers={"Content-Type": "application/json"},
            json=payload,
            timeout=config.GEMINI_TIMEOUT,
        )
    except requests.RequestException as ex:
        raise GeminiError(f"request to {model} failed: {ex}") from ex

    try:
        data = r.json()
    except ValueError:
        data = None

    if not r.ok:
        msg = None
        if isinstance(data, dict):
            err = data.get("error")
            msg = err.get("message") if isinstance(err, dict) else err
        raise GeminiError(str(msg) if msg else f"Gemini returned HTTP {r.status_code}")
    if not isinstance(data, dict):
        raise GeminiError("Gemini returned a non-JSON response")
    return data


def _candidate_parts(data: Dict[str, Any]) -> List[Dict[str, Any]]:
    candidates = data.get("candidates") or []
    if not candidates:
        return []
    content = candidates[0].get("content") or {}
    return content.get("parts") or []


def response_text(data: Dict[str, Any]) -> str:
    return "".join(p.get("text", "") for p in _candidate_parts(data) if isinstance(p, dict))


def parse_boxes(text: str) -> List[DetectedBoxPercent]:
    """Lenient parse of the detector's JSON. Anything unusable -> []."""
    try:
        raw = json.loads((text or "").strip() or "[]")
    except ValueError as ex:
        log.warning("[detect] failed to parse JSON: %s", ex)
        return []
    if not isinstance(raw, list):
        log.warning("[detect] expected a JSON array, got %s", type(raw).__name__)
        return []
    boxes: List[DetectedBoxPercent] = []
    for item in raw:
        try:
            boxes.append(DetectedBoxPercent.model_validate(item))
        except ValidationError:
            log.debug("[detect] skipping malformed box %r", item)
    return boxes


def detect_text_regions(b64_image: str, mime_type: str) -> List[DetectedBoxPercent]:
    payload = {
        "contents": [{"role": "user", "parts": [image_part(b64_image, mime_type), {"text": DETECT_PROMPT}]}],
        "generationConfig": {
            "responseMimeType": "application/json",
            "responseSchema": _BOX_SCHEMA,
        },
    }
    data = generate_content(config.DETECT_MODEL, payload)
    return parse_boxes(response_text(data))


def clean_text_region(b64_image: str, mime_type: str) -> str:
    """Inpainted version of the region as 'data:<mime>;base64,<data>'."""
    payload = {
        "contents": [{"role": "user", "parts": [image_part(b64_image, mime_type), {"text": CLEAN_PROMPT}]}],
    }
    data = generate_content(config.CLEAN_MODEL, payload)
    for part in _candidate_parts(data):
        inline = part.get("inlineData") if isinstance(part, dict) else None
        if inline and inline.get("data"):
            return f"data:{inline.get('mimeType') or 'image/png'};base64,{inline['data']}"
    raise GeminiError("No image returned from Gemini")
