# tutor/routes/conversation.py
import json
import logging
from typing import AsyncIterator

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import StreamingResponse

from tutor.auth.auth_utils import get_current_user_id
from tutor.database.models import Message, Role
from tutor.database.store import ContextStore, SessionStore, UserStore
from tutor.dependencies import (
    get_context_store,
    get_llm_client,
    get_relay,
    get_session_store,
    get_user_store,
)
from tutor.exceptions import NotFound, TutorError, UpstreamUnavailable
from tutor.schemas import (
    ConversationHistory,
    ConversationMessage,
    ConversationStart,
    ConversationStarted,
    MessageOut,
    TranslateRequest,
)
from tutor.services.llm_client import ChatCompletionClient
from tutor.services.prompts import build_system_prompt, build_translate_prompt, normalize_level
from tutor.services.relay import ConversationRelay
from tutor.utils.catalog import is_valid_language, is_valid_topic, topic_details

logger = logging.getLogger(__name__)
router = APIRouter()

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def sse_event(event: dict) -> str:
    return f"data: {json.dumps(event)}\n\n"


@router.post("/start", status_code=status.HTTP_201_CREATED, response_model=ConversationStarted)
async def start_conversation(
    data: ConversationStart,
    user_id: str = Depends(get_current_user_id),
    users: UserStore = Depends(get_user_store),
    sessions: SessionStore = Depends(get_session_store),
    contexts: ContextStore = Depends(get_context_store),
):
    if not is_valid_language(data.language):
        raise HTTPException(status_code=400, detail="invalid language")
    if not is_valid_topic(data.topic):
        raise HTTPException(status_code=400, detail="invalid topic")
    level = normalize_level(data.level)

    try:
        user = users.get_by_id(user_id)
    except NotFound:
        raise HTTPException(status_code=404, detail="user not found")
    if not user.has_conversation_access():
        raise HTTPException(
            status_code=403,
            detail={
                "error": "Your subscription has ended. Please visit your profile to resubscribe.",
                "code": "subscription_ended",
            },
        )
    if level > 3 and not user.has_full_access():
        raise HTTPException(
            status_code=403,
            detail="Levels 4 and 5 require a full subscription. Upgrade to unlock advanced practice.",
        )

    topic_name, topic_desc = topic_details(data.topic)
    prior = contexts.get(user_id, data.language, level)
    system_prompt = build_system_prompt(data.language, level, topic_name, topic_desc, has_prior_context=bool(prior))
    session = sessions.create(user_id, data.language, data.topic, system_prompt, level=level)
    # Earlier messages give the tutor continuity across sessions
    for message in prior:
        sessions.add_message(session.id, message)

    logger.info(f"[{session.id}] Started {data.language}/{data.topic} level {level} for user {user_id}")
    return ConversationStarted(
        session_id=session.id,
        language=session.language,
        topic=session.topic,
        topic_name=topic_name,
        level=session.level,
    )


@router.post("/message")
async def send_message(
    data: ConversationMessage,
    user_id: str = Depends(get_current_user_id),
    relay: ConversationRelay = Depends(get_relay),
):
    try:
        session, outbound = relay.prepare_turn(user_id, data.session_id, data.message, data.greet)
    except TutorError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)

    async def event_stream() -> AsyncIterator[str]:
        events = relay.relay(session, outbound)
        try:
            async for event in events:
                yield sse_event(event)
        finally:
            await events.aclose()

    return StreamingResponse(event_stream(), media_type="text/event-stream", headers=SSE_HEADERS)


@router.get("/history/{session_id}", response_model=ConversationHistory)
async def get_history(
    session_id: str,
    user_id: str = Depends(get_current_user_id),
    sessions: SessionStore = Depends(get_session_store),
):
    try:
        session = sessions.get(session_id)
    except NotFound:
        raise HTTPException(status_code=404, detail="session not found")
    if session.user_id != user_id:
        raise HTTPException(status_code=403, detail="forbidden")

    topic_name, _ = topic_details(session.topic)
    messages = sessions.get_messages(session_id)
    return ConversationHistory(
        session_id=session.id,
        language=session.language,
        topic=session.topic,
        topic_name=topic_name,
        level=session.level,
        messages=[MessageOut(role=m.role.value, content=m.content) for m in messages],
    )


@router.post("/translate")
async def translate(
    data: TranslateRequest,
    user_id: str = Depends(get_current_user_id),
    llm: ChatCompletionClient = Depends(get_llm_client),
):
    if not data.text.strip():
        raise HTTPException(status_code=400, detail="text cannot be empty")

    prompt = build_translate_prompt(data.language, data.text)
    try:
        translation = await llm.complete([Message(Role.USER, prompt)], temperature=0.1, max_tokens=512)
    except UpstreamUnavailable as e:
        raise HTTPException(status_code=503, detail=e.detail)
    return {"translation": translation}
