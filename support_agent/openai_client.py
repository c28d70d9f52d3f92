from openai import AsyncOpenAI

from .config import Settings


def build_client(settings: Settings) -> AsyncOpenAI:
    """
    Create the OpenRouter client shared by embedding and completion calls.

    OpenRouter speaks the OpenAI API; the attribution headers identify this
    app on openrouter.ai. Retries are disabled so failures surface immediately.
    """
    if not settings.openrouter_api_key:
        raise RuntimeError("OPENROUTER_API_KEY is not set. Put it in env or .env (server-side only).")

    return AsyncOpenAI(
        api_key=settings.openrouter_api_key,
        base_url=settings.openrouter_base_url,
        timeout=settings.request_timeout_seconds,
        max_retries=0,
        default_headers={
            "HTTP-Referer": settings.app_url,
            "X-Title": settings.app_title,
        },
    )
