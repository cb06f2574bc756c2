import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from deepview.config import warn_missing_gateway_key

logger = logging.getLogger(__name__)
from deepview.routes import chat, conversations, health
from deepview.providers.registry import provider_registry
from deepview.database import init_db

# Warn about a missing gateway key before the app starts
warn_missing_gateway_key()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle events"""
    # Initialize database
    await init_db()

    # Startup: Initialize providers from settings
    await provider_registry.initialize()

    yield

    # Shutdown: Cleanup resources
    await provider_registry.cleanup()


app = FastAPI(
    title="DeepView Backend API",
    description="Streaming multimodal chat API with video generation fallback",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS middleware (nginx handles external access, but useful for dev)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(health.router, prefix="/api", tags=["health"])
app.include_router(chat.router, prefix="/api", tags=["chat"])
app.include_router(conversations.router, prefix="/api", tags=["conversations"])
