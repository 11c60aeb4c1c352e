# tutor/routes/tts.py
import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask

from tutor.auth.auth_utils import get_current_user_id
from tutor.config import Settings
from tutor.dependencies import get_app_settings, get_tts_client
from tutor.exceptions import UpstreamUnavailable
from tutor.schemas import TTSRequest
from tutor.services.tts_service import TTSClient

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("")
async def text_to_speech(
    data: TTSRequest,
    user_id: str = Depends(get_current_user_id),
    tts: TTSClient = Depends(get_tts_client),
    settings: Settings = Depends(get_app_settings),
):
    if not data.text:
        raise HTTPException(status_code=400, detail="text is required")

    logger.info(f"TTS for user {user_id}: {len(data.text)} chars in {data.language}")
    try:
        upstream = await tts.open_stream(data.text, settings.voice_for(data.language))
    except UpstreamUnavailable as e:
        raise HTTPException(status_code=502, detail=e.detail)

    return StreamingResponse(
        upstream.aiter_bytes(),
        media_type="audio/mpeg",
        background=BackgroundTask(upstream.aclose),
    )
