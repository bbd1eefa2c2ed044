"""
REST endpoints driving the face-scan and voice-analysis pipelines.
"""
from fastapi import APIRouter, UploadFile, File, HTTPException
from fastapi.responses import Response
import logging

from core.analysis import Analyzer
from core.config import Settings
from core.detector import DeepFaceDetector
from core.devices import LocalMediaDevices
from core.models import FaceScanState, VoiceState
from core.pipeline import FaceScanPipeline, VoiceAnalysisPipeline
from core.session import DeviceSessionManager
from core.visual import encode_jpeg

router = APIRouter()
settings = Settings()
logger = logging.getLogger(__name__)

# one session manager: camera and microphone sessions are independent kinds
session_manager = DeviceSessionManager(LocalMediaDevices(settings), settings)
face_pipeline = FaceScanPipeline(session_manager, DeepFaceDetector(settings), Analyzer(settings), settings)
voice_pipeline = VoiceAnalysisPipeline(session_manager, Analyzer(settings), settings)


async def shutdown() -> None:
    """Release every device on app teardown."""
    logger.debug("[api] shutdown: releasing devices")
    await face_pipeline.aclose()
    await voice_pipeline.aclose()
    await session_manager.close()


# ---- face ----

@router.get("/face/status", response_model=FaceScanState)
async def face_status():
    return face_pipeline.state()


@router.post("/face/model/load", response_model=FaceScanState)
async def face_load_model():
    return await face_pipeline.load_model()


@router.post("/face/camera/start", response_model=FaceScanState)
async def face_camera_start():
    logger.debug("[api] /face/camera/start")
    return await face_pipeline.start_camera()


@router.post("/face/camera/stop", response_model=FaceScanState)
async def face_camera_stop():
    logger.debug("[api] /face/camera/stop")
    return face_pipeline.stop_camera()


@router.post("/face/capture", response_model=FaceScanState)
async def face_capture():
    """
    Snapshot the live camera, detect faces, and analyze.

    Returns:
        FaceScanState: result on success, error (e.g. NoFaceDetected) otherwise.
    """
    logger.debug("[api] /face/capture")
    return await face_pipeline.capture_and_analyze()


@router.post("/face/upload", response_model=FaceScanState)
async def face_upload(file: UploadFile = File(...)):
    """
    Analyze an uploaded still image (no camera session involved).

    Args:
        file: Uploaded image file.
    """
    logger.debug(f"[api] /face/upload filename={file.filename}")
    try:
        data = await file.read()
    except Exception as e:
        logger.exception("[api] upload read failed")
        raise HTTPException(status_code=400, detail=f"Upload failed: {e}")
    if not data:
        raise HTTPException(status_code=400, detail="Upload failed: empty file")
    return await face_pipeline.analyze_upload(data)


@router.get("/face/snapshot")
async def face_snapshot():
    image = face_pipeline.snapshot
    if image is None:
        raise HTTPException(status_code=404, detail="No snapshot available")
    return Response(content=encode_jpeg(image), media_type="image/jpeg")


@router.post("/face/reset", response_model=FaceScanState)
async def face_reset():
    return face_pipeline.reset()


# ---- voice ----

@router.get("/voice/status", response_model=VoiceState)
async def voice_status():
    return voice_pipeline.state()


@router.post("/voice/start", response_model=VoiceState)
async def voice_start():
    logger.debug("[api] /voice/start")
    return await voice_pipeline.start_recording()


@router.post("/voice/stop", response_model=VoiceState)
async def voice_stop():
    """Stop recording and analyze; blocks for the analysis delay."""
    logger.debug("[api] /voice/stop")
    return await voice_pipeline.stop_recording()


@router.post("/voice/reset", response_model=VoiceState)
async def voice_reset():
    return voice_pipeline.reset()
