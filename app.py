from __future__ import annotations
from typing import Optional, Any
from fastapi import FastAPI, File, UploadFile, Form, HTTPException, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from starlette.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from gaitrec.config.log import setup_logging
from gaitrec.config.settings import settings
from gaitrec.pipeline.io_utils import render_gait_csv
from gaitrec.pipeline.pipeline import GaitSession, record_session
from gaitrec.pipeline.pose_source import GaitRig, RigResolveError, read_pose_csv, iter_pose_samples

logger = setup_logging(settings.log_level)

app = FastAPI(
    title=settings.app_name,
    docs_url=("/docs" if settings.docs_enabled else None),
    redoc_url=("/redoc" if settings.docs_enabled else None),
    openapi_url=("/openapi.json" if settings.openapi_enabled else None),
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.allowed_origins),
    allow_credentials=settings.allow_credentials,
    allow_methods=list(settings.allowed_methods),
    allow_headers=list(settings.allowed_headers),
)

# Compression for large CSV payloads
app.add_middleware(GZipMiddleware, minimum_size=settings.gzip_min_size)

# Restrict Host headers when ALLOWED_HOSTS is set to specific values
if settings.allowed_hosts and settings.allowed_hosts != ("*",):
    app.add_middleware(TrustedHostMiddleware, allowed_hosts=list(settings.allowed_hosts))


@app.post("/api/record/")
async def record_pose_file(
    pose_file: UploadFile = File(...),
    session_name: Optional[str] = Form(None),
    min_step_ms: Optional[float] = Form(None),
    ground_height: Optional[float] = Form(None),
):
    """Replay an uploaded pose table and return the gait record as CSV text plus a summary."""
    data = await pose_file.read()
    if len(data) > int(settings.max_upload_mb) * 1024 * 1024:
        raise HTTPException(status_code=413, detail=f"Upload exceeds limit of {settings.max_upload_mb} MB")
    try:
        df = read_pose_csv(data)
    except Exception as e:
        raise HTTPException(status_code=400, detail=f"Could not parse pose CSV: {e}")

    session = GaitSession(rig=GaitRig(participant_name=session_name or ""), min_step_interval_ms=min_step_ms)
    gh = settings.ground_height if ground_height is None else float(ground_height)
    try:
        record_session(iter_pose_samples(df, ground_height=gh), session)
    except RigResolveError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except KeyError as e:
        raise HTTPException(status_code=400, detail=f"Pose CSV is missing a column: {e}")
    except ValueError as e:
        raise HTTPException(status_code=400, detail=f"Pose CSV has non-numeric values: {e}")

    frames = session.frames
    content: dict[str, Any] = {
        "frames": len(frames),
        "steps": frames[-1].step_count if frames else 0,
        "leg_length": session.leg_length,
        "csv": render_gait_csv(frames),
    }
    # buffer is per-request; drop it once rendered
    if session.aggregator is not None:
        session.aggregator.clear()
    logger.info("recorded %d frames from %s", content["frames"], getattr(pose_file, "filename", "upload"))
    return JSONResponse(content=content)


# Quiet Chrome/Edge DevTools probes (prevent 404 spam in logs)
@app.get("/.well-known/appspecific/com.chrome.devtools.json")
async def chrome_devtools_probe():
    return Response(status_code=204)


# Simple health check endpoint for local probes
@app.get("/health")
async def health():
    return JSONResponse({"status": "ok"})
