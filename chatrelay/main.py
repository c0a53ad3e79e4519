from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from chatrelay.db.database import SessionLocal, init_db
from chatrelay.errors import RelayError
from chatrelay.models.schemas import ErrorResponse
from chatrelay.routers.chat import router as chat_router
from chatrelay.routers.files import router as files_router
from chatrelay.services.file_store import FileStore
from chatrelay.services.file_sweeper import FileSweeper
from chatrelay.config import settings
import asyncio
import logging

# Configure logging
logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info(f"Starting chat relay (model={settings.OPENAI_MODEL}, uploads={settings.UPLOAD_DIRECTORY})")
    init_db()
    logger.info("Database initialized successfully")

    sweeper = FileSweeper(SessionLocal, FileStore(settings.UPLOAD_DIRECTORY), settings.FILE_MAX_AGE_SECONDS)
    sweep_task = asyncio.create_task(sweeper.run_periodic_cleanup(settings.FILE_SWEEP_INTERVAL_SECONDS))
    try:
        yield
    finally:
        # Shutdown
        sweep_task.cancel()
        try:
            await sweep_task
        except asyncio.CancelledError:
            pass
        logger.info("Chat relay stopped")


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(RelayError)
    async def handle_relay_error(request: Request, error: RelayError):
        if error.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {error.message}")
        else:
            logger.warning(f"{request.method} {request.url.path} rejected: {error.message}")
        body = ErrorResponse(error=error.message, details=error.details)
        return JSONResponse(status_code=error.status_code, content=body.model_dump(exclude_none=True))

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, error: RequestValidationError):
        logger.warning(f"Validation error on {request.url.path}: {error.errors()}")
        fields = [".".join(str(part) for part in e["loc"] if part != "body") for e in error.errors()]
        body = ErrorResponse(error="Invalid request data", details={"fields": fields})
        return JSONResponse(status_code=400, content=body.model_dump(exclude_none=True))

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, error: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        body = ErrorResponse(error="Internal server error")
        return JSONResponse(status_code=500, content=body.model_dump(exclude_none=True))


def create_app() -> FastAPI:
    app = FastAPI(
        title="Chat Relay",
        description="Chat relay to an OpenAI-compatible API with persisted history and file attachments",
        version="1.0.0",
        lifespan=lifespan
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.BACKEND_CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_error_handlers(app)

    @app.get("/")
    async def root():
        return {
            "message": "Chat Relay API",
            "version": "1.0.0",
            "endpoints": {
                "chat": "/chat",
                "history": "/history?chatId=",
                "chats": "/chats?userId=",
                "reset": "/reset",
                "deleteChat": "/deleteChat",
                "upload": "/upload",
                "uploadDocument": "/upload-document",
                "files": "/files/{fileId}",
                "docs": "/docs"
            }
        }

    @app.get("/health")
    async def health_check():
        return {"status": "healthy", "message": "Chat relay is running"}

    app.include_router(chat_router)
    app.include_router(files_router)
    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
