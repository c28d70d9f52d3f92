"""
Error types shared by services and routes.
"""


class SupportAgentError(Exception):
    """Base class for errors raised by the support agent."""


class UpstreamError(SupportAgentError):
    """An embedding, completion or vector index call failed.

    The message is meant for logs; routes replace it with a generic one
    before it reaches a client.
    """
