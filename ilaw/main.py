# FastAPI entry point; wires the e-learning routers and creates tables on startup
# ilaw/main.py
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import os
import sys

# Add project root to sys.path to allow for absolute imports
project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if project_root not in sys.path:
    sys.path.insert(0, project_root)

from ilaw.endpoints import (
    badges as badges_router,
    books as books_router,
    progress as progress_router,
    quiz_attempts as quiz_attempts_router,
    stats as stats_router,
    users as users_router,
)
from ilaw.utils.config import settings
from ilaw.utils.db import engine, init_models
from ilaw.utils.logger import logger

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manages application startup and shutdown events.
    """
    logger.info("Ilaw API starting up...")

    await init_models()

    logger.info(f"Quiz sessions are grouped with a {settings.session_gap_sec}s gap")
    logger.info("Startup complete.")
    yield
    logger.info("Ilaw API shutting down...")
    await engine.dispose()

# --- FastAPI App Initialization ---
app = FastAPI(
    title="Ilaw API",
    description="API for a school e-learning platform: books, quizzes, progress and badges.",
    version="0.1.0",
    lifespan=lifespan
)

# --- CORS Middleware ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in settings.frontend_origin.split(",") if o.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# --- API Routers ---
app.include_router(users_router.router, prefix="/users")
app.include_router(quiz_attempts_router.router, prefix="/quiz-attempts", tags=["Quiz Attempts"])
# The remaining routers spell out their own paths since they span several resources
app.include_router(books_router.router)
app.include_router(progress_router.router)
app.include_router(badges_router.router)
app.include_router(stats_router.router)

# --- Root Endpoint ---
@app.get("/")
async def root():
    return {"message": "Welcome to the Ilaw e-learning API"}

@app.get("/health")
async def health():
    return {"status": "ok"}
