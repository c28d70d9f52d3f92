"""Test doubles for the upstream embedding and completion clients."""
from typing import List, Optional

from support_agent.errors import UpstreamError

DIMENSIONS = 8


def fake_vector(text: str) -> List[float]:
    """Deterministic bag-of-characters embedding."""
    vec = [0.001] * DIMENSIONS
    for ch in text.lower():
        vec[ord(ch) % DIMENSIONS] += 1.0
    return vec


class FakeEmbedder:
    def __init__(self, fail_on_call: Optional[int] = None):
        self.calls: List[str] = []
        self.fail_on_call = fail_on_call

    async def embed(self, text: str) -> List[float]:
        self.calls.append(text)
        if self.fail_on_call is not None and len(self.calls) == self.fail_on_call:
            raise UpstreamError("embedding service unavailable")
        return fake_vector(text)


class FakeCompletion:
    """Streams canned fragments; optionally breaks after `fail_after` of them."""

    def __init__(self, fragments=("Hello", ", how can ", "I help?"), fail_after=None, fail_on_open=False):
        self.fragments = list(fragments)
        self.fail_after = fail_after
        self.fail_on_open = fail_on_open
        self.prompts = []
        self.options_seen = []
        self.closed = False

    async def stream_complete(self, messages, options=None):
        if self.fail_on_open:
            raise UpstreamError("completion unavailable")
        self.prompts.append(list(messages))
        self.options_seen.append(options)
        return self._stream()

    async def _stream(self):
        try:
            for i, fragment in enumerate(self.fragments):
                if self.fail_after is not None and i == self.fail_after:
                    raise UpstreamError("stream broke")
                yield fragment
        finally:
            self.closed = True
