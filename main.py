# main.py
import argparse, json, pathlib, sys
from typing import Any, Dict, List

from tqdm import tqdm

import config
from config import setup_logging
from editor import DetectionError, MangaEditor
from regions import RegionStatus


def load_manual_regions(path: str) -> List[Dict[str, Any]]:
    """JSON list of {x, y, width, height} in image pixels."""
    with open(path, "r", encoding="utf-8") as f:
        items = json.load(f)
    if not isinstance(items, list):
        raise ValueError(f"{path}: expected a JSON list of regions")
    return items


def _bar_callback(bar: tqdm):
    def _cb(done: int, total: int):
        bar.total = total
        bar.update(done - bar.n)
    return _cb


def process_image(path: str, out_path: str, detect: bool = True, regions_file: str = None,
                  debug_boxes: str = None, editor: MangaEditor = None) -> MangaEditor:
    ed = editor or MangaEditor()
    ed.load_image(path, filename=pathlib.Path(path).name)
    src = ed.source
    tqdm.write(f"[open] {path} size={src.width}x{src.height}")

    if regions_file:
        for item in load_manual_regions(regions_file):
            try:
                ed.add_region(float(item["x"]), float(item["y"]), float(item["width"]), float(item["height"]))
            except (KeyError, TypeError, ValueError) as ex:
                tqdm.write(f"[WARN] skipping region {item!r}: {ex}")

    if detect:
        with tqdm(desc="Detecting", unit="chunk") as bar:
            try:
                added = ed.detect_all(on_progress=_bar_callback(bar))
                tqdm.write(f"[detect] {len(added)} regions")
            except DetectionError as ex:
                tqdm.write(f"[FAIL] {ex} ({ex.added} regions kept)")
                if not ed.regions:
                    raise

    if ed.regions:
        with tqdm(desc="Cleaning", unit="region") as bar:
            done = ed.clean_all(on_progress=_bar_callback(bar))
        failed = [r for r in done if r.status is RegionStatus.ERROR]
        tqdm.write(f"[clean] {len(done) - len(failed)} cleaned, {len(failed)} failed")
    else:
        tqdm.write("[WARN] no regions to clean")

    out = pathlib.Path(out_path)
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_bytes(ed.export_png())
    tqdm.write(f"[OK] {path} -> {out}")

    if debug_boxes:
        ed.preview().save(debug_boxes, "PNG")
    return ed


def main(argv=None):
    ap = argparse.ArgumentParser(description="Detect and erase text in a manga/webtoon image.")
    ap.add_argument("image")
    ap.add_argument("--out", default=config.EXPORT_NAME)
    ap.add_argument("--no-detect", dest="detect", action="store_false",
                    help="skip auto detection, clean only the regions from --regions")
    ap.add_argument("--regions", dest="regions_file", default=None)
    ap.add_argument("--debug-boxes", dest="debug_boxes", default=None,
                    help="also write an overlay PNG with the region outlines")
    args = ap.parse_args(argv)
    setup_logging()

    try:
        process_image(args.image, args.out, detect=args.detect,
                      regions_file=args.regions_file, debug_boxes=args.debug_boxes)
    except DetectionError:
        return 1
    return 0

if __name__ == "__main__":
    sys.exit(main())
