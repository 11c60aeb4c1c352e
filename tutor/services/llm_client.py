# tutor/services/llm_client.py
# Client for an OpenAI-compatible chat-completion endpoint.
import json
import logging
from typing import AsyncIterator, List, Optional

import httpx

from tutor.database.models import Message
from tutor.exceptions import UpstreamUnavailable

logger = logging.getLogger(__name__)

STREAM_TIMEOUT = 90.0
COMPLETION_TIMEOUT = 30.0


class ChatCompletionClient:
    def __init__(self, base_url: str, api_key: str, model: str, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.base_url = base_url.rstrip("/")
        self.model = model
        self._client = httpx.AsyncClient(
            headers={"Authorization": f"Bearer {api_key}"},
            transport=transport,
        )

    def _payload(self, messages: List[Message], stream: bool, temperature: float, max_tokens: int) -> dict:
        return {
            "model": self.model,
            "messages": [m.to_dict() for m in messages],
            "stream": stream,
            "max_tokens": max_tokens,
            "temperature": temperature,
        }

    async def stream_chat(self, messages: List[Message], temperature: float, max_tokens: int) -> AsyncIterator[str]:
        """
        Yields the visible text of each streamed delta.

        Reasoning models stream `reasoning` / `reasoning_content` deltas before any
        content; those carry no `content` and are skipped. Lines that are not
        `data:` events, or whose JSON cannot be parsed, are ignored.
        Raises UpstreamUnavailable on connection errors, non-200 status or a broken stream.
        """
        payload = self._payload(messages, True, temperature, max_tokens)
        try:
            async with self._client.stream(
                "POST", f"{self.base_url}/chat/completions", json=payload, timeout=STREAM_TIMEOUT
            ) as response:
                if response.status_code != 200:
                    body = await response.aread()
                    logger.error(f"LLM error {response.status_code}: {body.decode(errors='replace')}")
                    raise UpstreamUnavailable("AI service error")

                async for line in response.aiter_lines():
                    if not line.startswith("data: "):
                        continue
                    data = line[len("data: "):]
                    if data.strip() == "[DONE]":
                        break
                    content = _delta_content(data)
                    if content:
                        yield content
        except httpx.HTTPError as e:
            logger.error(f"LLM request failed: {e}")
            raise UpstreamUnavailable("AI service unavailable") from e

    async def complete(self, messages: List[Message], temperature: float, max_tokens: int) -> str:
        payload = self._payload(messages, False, temperature, max_tokens)
        try:
            response = await self._client.post(
                f"{self.base_url}/chat/completions", json=payload, timeout=COMPLETION_TIMEOUT
            )
        except httpx.HTTPError as e:
            logger.error(f"LLM request failed: {e}")
            raise UpstreamUnavailable("AI service unavailable") from e

        if response.status_code != 200:
            logger.error(f"LLM error {response.status_code}: {response.text}")
            raise UpstreamUnavailable("AI service error")
        try:
            return response.json()["choices"][0]["message"]["content"].strip()
        except (ValueError, KeyError, IndexError, TypeError, AttributeError) as e:
            raise UpstreamUnavailable("failed to parse AI response") from e

    async def aclose(self) -> None:
        await self._client.aclose()


def _delta_content(data: str) -> str:
    try:
        chunk = json.loads(data)
    except json.JSONDecodeError:
        return ""
    choices = chunk.get("choices") if isinstance(chunk, dict) else None
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        return ""
    delta = choices[0].get("delta")
    if not isinstance(delta, dict):
        return ""
    content = delta.get("content")
    return content if isinstance(content, str) else ""
