# app.py
from __future__ import annotations
import argparse, io, logging
from typing import Any, Dict, List, Optional

from flask import Flask, request, send_file
from pydantic import BaseModel, Field, ValidationError

import config
from config import ConfigError, get_api_key, setup_logging
from editor import DETECT_FAILED_MSG, DetectionError, EditorBusy, MangaEditor, NoImageLoaded
from gemini import GeminiError, generate_content, image_part
from regions import InvalidTransition, RegionStatus
from utils import png_bytes

log = logging.getLogger(__name__)

app = Flask(__name__)
app.config['MAX_CONTENT_LENGTH'] = 256 * 1024 * 1024  # 256MB

# one in-memory editing session per process; gone on restart
EDITOR = MangaEditor()


# ---------- proxy ----------
class ContentItem(BaseModel):
    role: Optional[str] = None
    parts: List[Dict[str, Any]] = Field(default_factory=list)


class ProxyRequest(BaseModel):
    text: Optional[str] = None
    imageBase64: Optional[str] = None
    mimeType: Optional[str] = None
    history: List[ContentItem] = Field(default_factory=list)

    def to_payload(self) -> Dict[str, Any]:
        parts: List[Dict[str, Any]] = []
        if self.text:
            parts.append({"text": self.text})
        if self.imageBase64:
            parts.append(image_part(self.imageBase64, self.mimeType or "image/jpeg"))
        contents = [h.model_dump(exclude_none=True) for h in self.history]
        contents.append({"role": "user", "parts": parts})
        return {"contents": contents}


@app.route("/api/proxy", methods=["GET", "POST", "PUT", "PATCH", "DELETE"])
def api_proxy():
    if request.method != "POST":
        return {"error": "Method Not Allowed"}, 405
    try:
        api_key = get_api_key()
    except ConfigError as ex:
        return {"error": str(ex)}, 500

    try:
        body = ProxyRequest.model_validate(request.get_json(force=True, silent=True) or {})
    except ValidationError as ex:
        return {"error": f"invalid request body: {ex.errors()[0].get('msg', 'bad value')}"}, 400

    try:
        data = generate_content(config.PROXY_MODEL, body.to_payload(), api_key=api_key)
        reply = data["candidates"][0]["content"]["parts"][0]["text"]
    except GeminiError as ex:
        log.error("[proxy] Gemini API error: %s", ex)
        return {"error": str(ex)}, 500
    except (KeyError, IndexError, TypeError) as ex:
        log.error("[proxy] unexpected Gemini response: %r", ex)
        return {"error": "Unexpected response from Gemini"}, 500
    return {"reply": reply}, 200


# ---------- editor session ----------
def _state(**extra):
    out = EDITOR.state()
    out.update(extra)
    return out


@app.errorhandler(NoImageLoaded)
def _no_image(ex):
    return {"error": str(ex)}, 400


@app.errorhandler(EditorBusy)
def _busy(ex):
    return {"error": str(ex)}, 409


@app.errorhandler(InvalidTransition)
def _bad_transition(ex):
    return {"error": str(ex)}, 409


@app.get("/api/state")
def api_state():
    return _state()


@app.post("/api/upload")
def api_upload():
    f = request.files.get("file")
    if f is None or not f.filename:
        return {"error": "no file"}, 400
    try:
        EDITOR.load_image(f.stream, filename=f.filename)
    except (OSError, ValueError) as ex:
        return {"error": f"cannot read image: {ex}"}, 400
    return _state(ok=True)


@app.post("/api/clear")
def api_clear():
    EDITOR.clear()
    return _state(ok=True)


@app.post("/api/detect")
def api_detect():
    try:
        added = EDITOR.detect_all()
    except DetectionError as ex:
        return _state(error=DETECT_FAILED_MSG, added=ex.added), 502
    return _state(ok=True, added=len(added))


@app.post("/api/clean")
def api_clean():
    done = EDITOR.clean_all()
    failed = sum(1 for r in done if r.status is RegionStatus.ERROR)
    return _state(ok=True, processed=len(done), failed=failed)


@app.post("/api/regions")
def api_add_region():
    j = request.get_json(force=True, silent=True) or {}
    try:
        x, y, w, h = (float(j[k]) for k in ("x", "y", "width", "height"))
    except (KeyError, TypeError, ValueError):
        return {"error": "x, y, width, height required"}, 400
    try:
        region = EDITOR.add_region(x, y, w, h)
    except ValueError as ex:
        return {"error": str(ex)}, 400
    return _state(ok=True, region=region.to_dict())


@app.delete("/api/regions/<region_id>")
def api_remove_region(region_id: str):
    try:
        EDITOR.remove_region(region_id)
    except KeyError:
        return {"error": "region not found"}, 404
    return _state(ok=True)


@app.post("/api/drag")
def api_drag():
    j = request.get_json(force=True, silent=True) or {}
    phase = (j.get("phase") or "").strip().lower()
    if phase in ("end", "leave"):
        try:
            region = EDITOR.end_drag() if phase == "end" else EDITOR.leave_drag()
        except ValueError as ex:
            return {"error": str(ex)}, 400
        return _state(ok=True, region=region.to_dict() if region else None)
    try:
        pointer = (float(j["clientX"]), float(j["clientY"]))
        rc = j.get("rect") or {}
        rect = (float(rc["left"]), float(rc["top"]), float(rc["width"]), float(rc["height"]))
    except (KeyError, TypeError, ValueError):
        return {"error": "clientX, clientY and rect{left,top,width,height} required"}, 400
    try:
        if phase == "start":
            EDITOR.begin_drag(pointer, rect)
        elif phase == "move":
            EDITOR.update_drag(pointer, rect)
        else:
            return {"error": f"unknown phase {phase!r}"}, 400
    except ValueError as ex:
        return {"error": str(ex)}, 400
    return _state(ok=True)


def _png_response(data: bytes, download: bool):
    return send_file(io.BytesIO(data), mimetype="image/png",
                     as_attachment=download, download_name=config.EXPORT_NAME)


@app.get("/api/preview")
def api_preview():
    overlay = request.args.get("overlay", "0") == "1"
    img = EDITOR.preview() if overlay else EDITOR.composited()
    return _png_response(png_bytes(img), download=False)


@app.get("/api/download")
def api_download():
    return _png_response(EDITOR.export_png(), download=True)


# ---------- main ----------
def main():
    ap = argparse.ArgumentParser()
    ap.add_argument("--host", default="127.0.0.1")
    ap.add_argument("--port", type=int, default=5000)
    ap.add_argument("--debug", action="store_true")
    args = ap.parse_args()
    setup_logging()
    print(f"Open http://{args.host}:{args.port}")
    app.run(host=args.host, port=args.port, debug=args.debug)

if __name__ == "__main__":
    main()
