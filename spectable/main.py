"""FastAPI application entry point."""

from contextlib import asynccontextmanager

from fastapi import FastAPI

from spectable.api import lookup, storefront, templates, webhooks
from spectable.config import get_settings

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle application startup and shutdown events."""
    # Startup: the lookup index is rebuilt on demand, nothing to warm up
    yield


app = FastAPI(
    title="Specification Table API",
    description="Template resolution for product specification tables",
    version="0.1.0",
    lifespan=lifespan,
)

# Register routers
app.include_router(storefront.router)
app.include_router(templates.router)
app.include_router(lookup.router)
app.include_router(webhooks.router)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "environment": settings.environment}
