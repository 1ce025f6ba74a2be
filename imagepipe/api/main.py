from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import os
import logging
import traceback

from imagepipe import __version__
from imagepipe.api.routers import health, tasks, templates
from imagepipe.config import config_service
from imagepipe.utils.logging_config import setup_logging

logger = logging.getLogger(__name__)


# Lifespan context manager
@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    setup_logging("api")
    logger.info("Starting imagepipe API...")

    await config_service.load_config()
    app.state.config = config_service
    logger.info(f"Configuration loaded: {config_service.get_all()}")

    yield

    # Shutdown
    logger.info("imagepipe API shutdown complete")


app = FastAPI(
    title="imagepipe API",
    description="Image pipeline task building, validation and estimation",
    version=__version__,
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=os.getenv("CORS_ORIGINS", "http://localhost:3000").split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler to log all unhandled errors"""
    logger.error(f"Unhandled exception on {request.method} {request.url.path}: {str(exc)}")
    logger.error(f"Traceback: {traceback.format_exc()}")
    return JSONResponse(
        status_code=500,
        content={"detail": f"Internal server error: {str(exc)}"}
    )


# Include API routers
app.include_router(health.router, prefix="/health", tags=["health"])
app.include_router(tasks.router, prefix="/api/tasks", tags=["tasks"])
app.include_router(templates.router, prefix="/api/templates", tags=["templates"])


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "imagepipe.api.main:app",
        host=os.getenv("API_HOST", "0.0.0.0"),
        port=int(os.getenv("API_PORT", "8000")),
    )
