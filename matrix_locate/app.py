from typing import Optional
from fastapi import FastAPI, File, UploadFile, Query, HTTPException
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware

from .config import DetectorConfig
from .core import decode_bytes, run_pipeline
from .errors import CandidateMaterializationError, ConfigError, ImageDecodeError, InvalidImageError

app = FastAPI(title="Matrix Barcode Locator API", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def build_config(row_cap: Optional[int], on_crop_failure: Optional[str]) -> DetectorConfig:
    try:
        return DetectorConfig().with_overrides(row_cap=row_cap, on_crop_failure=on_crop_failure)
    except ConfigError as e:
        raise HTTPException(status_code=422, detail=str(e))


@app.post("/locate")
def locate(
    file: UploadFile = File(...),
    row_cap: Optional[int] = Query(None, description="Downscale images taller than this many rows"),
    on_crop_failure: Optional[str] = Query(None, description='"abort" or "skip"'),
):
    cfg = build_config(row_cap, on_crop_failure)
    try:
        img = decode_bytes(file.file.read())
    except ImageDecodeError as e:
        raise HTTPException(status_code=400, detail=str(e))

    try:
        state = run_pipeline(img, cfg)
    except InvalidImageError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except CandidateMaterializationError as e:
        raise HTTPException(status_code=500, detail=str(e))

    h, w = img.shape[:2]
    payload = {
        "width": w,
        "height": h,
        "regions": [r.to_original().to_dict() for r in state.regions],
    }
    return JSONResponse(payload)
