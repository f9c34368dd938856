"""FastAPI application entry point."""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from lorekeeper import __version__
from lorekeeper.api.routes import notes, usage
from lorekeeper.core.config import settings


app = FastAPI(
    title="Lorekeeper",
    description="Campaign note reference matching and quota-gated entity extraction",
    version=__version__,
)

# CORS middleware for frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(notes.router, prefix="/api", tags=["Notes"])
app.include_router(usage.router, prefix="/api", tags=["Usage"])


@app.get("/")
async def root():
    """Health check endpoint."""
    return {
        "status": "ok",
        "service": "Lorekeeper",
        "version": __version__,
    }


@app.get("/health")
async def health():
    """Detailed health check."""
    return {
        "status": "healthy",
        "components": {
            "api": "ok",
            "openai": "configured" if settings.openai_api_key else "missing",
        },
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "lorekeeper.api.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
        log_level="debug" if settings.debug else "info",
    )
