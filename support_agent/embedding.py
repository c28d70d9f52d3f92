from typing import List

import openai
from openai import AsyncOpenAI

from .errors import UpstreamError
from .logging_config import logger


class EmbeddingClient:
    """Hosted embedding API wrapper. Every call goes upstream; nothing is cached."""

    def __init__(self, client: AsyncOpenAI, model: str):
        self._client = client
        self.model = model

    async def embed(self, text: str) -> List[float]:
        try:
            response = await self._client.embeddings.create(model=self.model, input=text)
        except openai.OpenAIError as e:
            logger.error("Embedding request failed", model=self.model, exc_info=e)
            raise UpstreamError(f"Embedding request failed: {type(e).__name__}") from e

        if not response.data:
            raise UpstreamError("Embedding response contained no vectors")
        return list(response.data[0].embedding)
