import argparse
import json
import logging
import os
import sys
from concurrent.futures import ThreadPoolExecutor

import cv2

from .config import CROP_FAILURE_POLICIES, DetectorConfig
from .core import decode_image, run_pipeline
from .diagnostics import CompositeDiagnostics, CsvDiagnostics
from .errors import ConfigError, MatrixLocateError, OutputWriteError

logger = logging.getLogger("matrix_locate")


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="matrix-locate",
        description="Find regions likely to contain a 2D matrix barcode.",
    )
    p.add_argument("images", nargs="+", help="input image files")
    p.add_argument("--out", default="outputs", help="directory for crops and overlays")
    p.add_argument("--row-cap", type=int, default=None, help="downscale images taller than this")
    p.add_argument("--on-crop-failure", choices=CROP_FAILURE_POLICIES, default=None)
    p.add_argument("--dump-csv", metavar="DIR", default=None, help="write intermediate matrices as CSV")
    p.add_argument("--preview", action="store_true", help="show intermediate stages with matplotlib")
    p.add_argument("--workers", type=int, default=1)
    p.add_argument("-v", "--verbose", action="store_true")
    return p


def _write_image(path: str, img) -> None:
    try:
        ok = cv2.imwrite(path, img)
    except cv2.error as e:
        raise OutputWriteError(f"Failed to write image: {path}: {e}") from e
    if not ok:
        raise OutputWriteError(f"Failed to write image: {path}")


def process_file(in_path: str, cfg: DetectorConfig, args) -> dict:
    img = decode_image(in_path)
    base = os.path.splitext(os.path.basename(in_path))[0]

    sinks = []
    if args.dump_csv:
        sinks.append(CsvDiagnostics(args.dump_csv, prefix=f"{base}_"))
    preview = None
    if args.preview:
        from .visualize import PreviewDiagnostics
        preview = PreviewDiagnostics(title=base)
        sinks.append(preview)
    diag = CompositeDiagnostics(sinks) if sinks else None

    state = run_pipeline(img, cfg, diag)
    if preview is not None:
        preview.show()

    crop_paths = []
    for i, crop in enumerate(state.crops):
        path = os.path.join(args.out, f"{base}_{i}.png")
        _write_image(path, crop)
        crop_paths.append(path)

    from .visualize import draw_candidates_on_image
    vis_path = os.path.join(args.out, f"{base}_regions.jpg")
    _write_image(vis_path, draw_candidates_on_image(state.scaled, state.regions))

    return {
        "image": in_path,
        "regions": [r.to_original().to_dict() for r in state.regions],
        "crops": crop_paths,
        "overlay": vis_path,
    }


def main(argv=None):
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="[%(levelname)s] %(name)s: %(message)s",
    )
    logging.getLogger("matplotlib").setLevel(logging.WARNING)

    try:
        cfg = DetectorConfig().with_overrides(row_cap=args.row_cap, on_crop_failure=args.on_crop_failure)
    except ConfigError as e:
        print(f"[ERROR] {e}", file=sys.stderr)
        return 2

    os.makedirs(args.out, exist_ok=True)

    def run(path):
        try:
            return process_file(path, cfg, args)
        except MatrixLocateError as e:
            logger.error("%s: %s", path, e)
            return {"image": path, "error": str(e)}

    # preview windows must stay on the main thread
    if args.preview or args.workers <= 1:
        results = [run(p) for p in args.images]
    else:
        with ThreadPoolExecutor(max_workers=args.workers) as pool:
            results = list(pool.map(run, args.images))

    print(json.dumps({"results": results}, ensure_ascii=False, indent=2))
    return 1 if any("error" in r for r in results) else 0


if __name__ == "__main__":
    sys.exit(main())
