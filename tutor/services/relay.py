# tutor/services/relay.py
"""
Streaming conversation relay.

A turn goes idle -> awaiting-upstream -> streaming -> completed | failed:

1. the session is resolved and ownership checked,
2. the outbound message list is the stored transcript plus either a hidden
   greeting instruction or the caller's message (persisted first),
3. the model's visible deltas are forwarded one event each and accumulated,
4. on completion the full reply is appended to the transcript.

No store lock is held while waiting on the model. A failed or cancelled turn
never persists a partial assistant message.
"""
import asyncio
import logging
from typing import AsyncIterator, List, Optional, Tuple

import anyio

from tutor.database.models import Message, Role, Session
from tutor.database.store import ContextStore, SessionStore
from tutor.exceptions import BadRequest, Forbidden, UpstreamUnavailable
from tutor.services.llm_client import ChatCompletionClient
from tutor.services.prompts import build_greet_prompt

logger = logging.getLogger(__name__)

TEMPERATURE = 0.75
# Reasoning models spend hundreds of tokens before any visible content
MAX_TOKENS = 4096


class ConversationRelay:
    def __init__(self, sessions: SessionStore, llm: ChatCompletionClient, contexts: Optional[ContextStore] = None):
        self.sessions = sessions
        self.llm = llm
        self.contexts = contexts

    def prepare_turn(self, user_id: str, session_id: str, message: str = "", greet: bool = False) -> Tuple[Session, List[Message]]:
        """Validates the turn and returns the session with the outbound message list.

        Raises NotFound, Forbidden or BadRequest before anything is streamed.
        """
        session = self.sessions.get(session_id)
        if session.user_id != user_id:
            raise Forbidden("forbidden")

        outbound = list(session.messages)
        if greet:
            # Not stored: the student never sees this instruction
            outbound.append(Message(Role.USER, build_greet_prompt(session.language, session.level)))
        else:
            if not message or not message.strip():
                raise BadRequest("message cannot be empty")
            user_msg = Message(Role.USER, message)
            self.sessions.add_message(session.id, user_msg)
            outbound.append(user_msg)
        return session, outbound

    async def relay(self, session: Session, outbound: List[Message]) -> AsyncIterator[dict]:
        """Yields {"content"} events, then {"done": True}; or a single {"error"} event."""
        parts: List[str] = []
        upstream = self.llm.stream_chat(outbound, temperature=TEMPERATURE, max_tokens=MAX_TOKENS)
        try:
            async for content in upstream:
                parts.append(content)
                yield {"content": content}
        except UpstreamUnavailable as e:
            logger.warning(f"[{session.id}] Upstream failure: {e.detail}")
            yield {"error": e.detail}
            return
        except (asyncio.CancelledError, GeneratorExit):
            logger.info(f"[{session.id}] Caller went away mid-stream, dropping {len(''.join(parts))} chars")
            raise
        except Exception as e:
            logger.error(f"[{session.id}] Unexpected relay error: {e}", exc_info=True)
            yield {"error": "internal error"}
            return
        finally:
            # Closes the upstream HTTP response when the caller disconnects;
            # shielded so a repeated cancellation cannot interrupt the close
            with anyio.CancelScope(shield=True):
                await upstream.aclose()

        full_response = "".join(parts)
        if full_response:
            self.sessions.add_message(session.id, Message(Role.ASSISTANT, full_response))
            self._remember(session.id)
        else:
            logger.warning(
                f"[{session.id}] Empty response (level {session.level}, lang {session.language}); "
                "model may need higher max_tokens"
            )
        yield {"done": True}

    def _remember(self, session_id: str) -> None:
        if self.contexts is None:
            return
        session = self.sessions.get(session_id)
        self.contexts.save(session.user_id, session.language, session.level, session.messages)
