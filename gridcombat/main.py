"""FastAPI application entry point."""
from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from gridcombat import __version__
from gridcombat.api.routes import encounters
from gridcombat.config import get_settings
from gridcombat.database.engine import close_db, init_db
from gridcombat.middleware.error_handler import setup_error_handlers

logger = logging.getLogger(__name__)

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events - startup and shutdown."""
    await init_db()
    logger.info("Database initialized")

    yield  # Application runs here

    await close_db()
    logger.info("Database connections closed")


app = FastAPI(
    title="Grid Combat Engine",
    description="Turn-based tactical combat on a square grid",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

setup_error_handlers(app, debug=settings.DEBUG)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "version": __version__, "debug_mode": settings.DEBUG}


app.include_router(encounters.router, prefix="/api/encounters", tags=["encounters"])


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("gridcombat.main:app", host=settings.HOST, port=settings.PORT, reload=settings.DEBUG)
