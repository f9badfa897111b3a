import time
import uuid
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from flashforge.apis.flashcards.main import router as flashcards_router
from flashforge.core.config import settings
from flashforge.core.logging import get_logger, set_request_id, setup_logging
from flashforge.modules.flashcards.main import FlashcardPipeline

logger = get_logger(__name__)


def create_app(pipeline: Optional[FlashcardPipeline] = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # A missing LLM key fails here, at startup, not per request.
        owned = pipeline or FlashcardPipeline.from_settings(settings)
        app.state.pipeline = owned
        logger.info(
            "Flashcard pipeline ready (limit=%d/%ss)",
            owned.gate.limit,
            owned.gate.window_seconds,
        )
        try:
            yield
        finally:
            owned.close()
            app.state.pipeline = None

    app = FastAPI(
        title=settings.app.name, version=settings.app.version, lifespan=lifespan
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.app.origins or ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def request_context(request: Request, call_next):
        # reuse an upstream X-Request-ID when present
        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex[:16]
        set_request_id(request_id)
        start = time.perf_counter()
        response = await call_next(request)
        duration_ms = int((time.perf_counter() - start) * 1000)
        logger.info(
            "%s %s -> %d (%dms)",
            request.method,
            request.url.path,
            response.status_code,
            duration_ms,
        )
        response.headers["X-Request-ID"] = request_id
        return response

    @app.exception_handler(RequestValidationError)
    async def invalid_body(request: Request, exc: RequestValidationError):
        # Unparseable JSON bodies get the same 400 as shape failures.
        return JSONResponse(
            status_code=400,
            content={"error": "Invalid input", "details": jsonable_encoder(exc.errors())},
        )

    app.include_router(flashcards_router)

    @app.get("/")
    async def root():
        return {
            "status": "ok",
            "app": settings.app.name,
            "version": settings.app.version,
        }

    @app.get(f"/{settings.app.version}/ping")
    async def ping():
        return {"message": settings.app.ping_message}

    return app


app = create_app()


if __name__ == "__main__":
    setup_logging()
    try:
        uvicorn.run(
            "main:app",
            host="0.0.0.0",
            port=settings.app.port,
            reload=not settings.app.is_production,
        )
    except Exception as e:
        logger.error("An error occurred when starting the server: %s", e)
