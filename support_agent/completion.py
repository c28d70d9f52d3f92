"""
Chat completion client.
Blocking and streamed generation against an OpenAI-compatible API.
"""
from typing import AsyncGenerator, Dict, List, Optional, Sequence, Union

import httpx
import openai
from openai import AsyncOpenAI

from .errors import UpstreamError
from .logging_config import logger
from .schemas import ChatMessage, CompletionOptions

PromptMessage = Union[ChatMessage, Dict[str, str]]


class CompletionClient:
    def __init__(
        self,
        client: AsyncOpenAI,
        default_model: str,
        default_temperature: float = 0.7,
        default_max_tokens: int = 1024,
    ):
        self._client = client
        self.default_model = default_model
        self.default_temperature = default_temperature
        self.default_max_tokens = default_max_tokens

    def _request_args(
        self, messages: Sequence[PromptMessage], options: Optional[CompletionOptions]
    ) -> Dict:
        options = options or CompletionOptions()
        return {
            "model": options.model or self.default_model,
            "messages": _as_dicts(messages),
            "temperature": (
                options.temperature if options.temperature is not None else self.default_temperature
            ),
            "max_tokens": options.max_tokens or self.default_max_tokens,
        }

    async def complete(
        self, messages: Sequence[PromptMessage], options: Optional[CompletionOptions] = None
    ) -> str:
        """Generate a full response and return its text."""
        args = self._request_args(messages, options)
        try:
            response = await self._client.chat.completions.create(**args)
        except openai.OpenAIError as e:
            logger.error("Completion request failed", model=args["model"], exc_info=e)
            raise UpstreamError(f"Completion request failed: {type(e).__name__}") from e

        if not response.choices:
            raise UpstreamError("Completion response contained no choices")
        return response.choices[0].message.content or ""

    async def stream_complete(
        self, messages: Sequence[PromptMessage], options: Optional[CompletionOptions] = None
    ) -> AsyncGenerator[str, None]:
        """
        Open a streamed completion.

        The request is sent before this coroutine returns, so connection and
        auth failures raise here. The returned iterator yields text fragments
        and raises UpstreamError if the stream breaks; closing it early closes
        the upstream response.
        """
        args = self._request_args(messages, options)
        try:
            stream = await self._client.chat.completions.create(stream=True, **args)
        except openai.OpenAIError as e:
            logger.error("Streaming completion request failed", model=args["model"], exc_info=e)
            raise UpstreamError(f"Completion request failed: {type(e).__name__}") from e

        logger.info("Opened completion stream", model=args["model"])
        return _iter_fragments(stream, args["model"])


async def _iter_fragments(stream, model: str) -> AsyncGenerator[str, None]:
    try:
        async for chunk in stream:
            if not chunk.choices:
                continue
            delta = chunk.choices[0].delta.content or ""
            if delta:
                yield delta
    except (openai.OpenAIError, httpx.HTTPError) as e:
        logger.error("Completion stream failed", model=model, exc_info=e)
        raise UpstreamError(f"Completion stream failed: {type(e).__name__}") from e
    finally:
        await stream.close()


def _as_dicts(messages: Sequence[PromptMessage]) -> List[Dict[str, str]]:
    return [m.model_dump() if isinstance(m, ChatMessage) else dict(m) for m in messages]
