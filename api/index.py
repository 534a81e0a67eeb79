"""
cartsync - Main FastAPI Application

Single entry point for the cart API.
"""
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from cartsync.routers import cart_router
from cartsync.routers.deps import close_session_registry


# ==================== FASTAPI APP ====================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler"""
    # Startup
    yield
    # Shutdown
    await close_session_registry()


app = FastAPI(
    title="cartsync",
    description="Storefront checkout synchronization API",
    version="1.0.0",
    lifespan=lifespan
)

# CORS for the storefront frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=[o for o in os.environ.get("CORS_ORIGINS", "*").split(",") if o],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(cart_router, prefix="/api")


# ==================== HEALTH CHECK ====================

@app.get("/api/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "ok", "service": "cartsync"}
