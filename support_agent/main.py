"""
Main FastAPI application entry point.
Responsibilities: App setup, router registration, startup/shutdown hooks.
"""
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .config import Settings
from .context import AppContext
from .logging_config import logger, setup_logging
from .routes import chat, documents


def create_app(context: Optional[AppContext] = None, settings: Optional[Settings] = None) -> FastAPI:
    """
    Build the API application.

    Args:
        context: Pre-built context (tests inject fakes here); when omitted one
            is wired from settings at startup
        settings: Configuration; read from the environment when omitted
    """
    settings = settings or (context.settings if context else Settings.from_env())
    setup_logging(log_level=settings.log_level, json_logs=settings.json_logs)

    app = FastAPI(title="AI Support Agent", version="0.5.0")
    app.state.context = context

    app.include_router(chat.router)
    app.include_router(documents.router)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        logger.warning("Rejected malformed request", path=request.url.path, errors=exc.errors())
        return JSONResponse(status_code=400, content={"detail": "Invalid request body"})

    @app.on_event("startup")
    async def startup_event():
        """Wire external clients and create storage on startup."""
        if app.state.context is None:
            app.state.context = AppContext.from_settings(settings)
        logger.info("Starting support agent", vector_backend=type(app.state.context.index).__name__)
        await app.state.context.startup()
        logger.info("Support agent ready")

    @app.on_event("shutdown")
    async def shutdown_event():
        """Release clients and connections on shutdown."""
        logger.info("Application shutting down")
        if app.state.context is not None:
            await app.state.context.shutdown()

    @app.get("/health")
    async def health():
        return {"status": "healthy", "vectors": await app.state.context.index.count()}

    return app


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(create_app(), host="0.0.0.0", port=8000)
