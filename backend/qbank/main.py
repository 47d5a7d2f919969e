# Load environment variables FIRST before any other imports
from dotenv import load_dotenv
load_dotenv()

import os
import logging
import sentry_sdk
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from qbank.config import GenerationSettings
from qbank.database import engine, Base
from qbank.models import models  # noqa: F401  registers tables on Base
from qbank.routers import generation, questions
from qbank.services.background_tasks import GenerationRuntime

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Initialize Sentry for error monitoring
sentry_dsn = os.getenv("SENTRY_DSN")
if sentry_dsn:
    sentry_sdk.init(
        dsn=sentry_dsn,
        traces_sample_rate=0.1,  # 10% of transactions for performance monitoring
        environment=os.getenv("ENVIRONMENT", "development"),
    )

# Create database tables
Base.metadata.create_all(bind=engine)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler - runs on startup and shutdown."""
    runtime = getattr(app.state, "generation", None)
    if runtime is None:
        runtime = GenerationRuntime(GenerationSettings.from_env())
        app.state.generation = runtime

    try:
        runtime.start()
    except Exception as e:
        # Don't crash on scheduler start failure - admin API can still work
        logger.error("Generation runtime failed to start: %s", e)

    yield  # Application runs here

    # SHUTDOWN
    logger.info("Shutting down generation schedulers...")
    await runtime.stop()


app = FastAPI(
    title="Nursing QBank API",
    description="Question generation backend for NCLEX, TEAS and HESI practice.",
    version="1.0.0",
    lifespan=lifespan,
)

ALLOWED_ORIGINS = [
    "http://localhost:3000",
    "http://localhost:5173",
]

# Allow additional origins from environment (for preview deploys)
extra_origins = os.getenv("CORS_ALLOWED_ORIGINS", "")
if extra_origins:
    ALLOWED_ORIGINS.extend([o.strip() for o in extra_origins.split(",") if o.strip()])

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "X-User-Id", "Accept"],
)

# Include routers
app.include_router(generation.router)  # Subject tracker + ad-hoc jobs
app.include_router(questions.router)  # Question bank admin


@app.get("/")
def root():
    return {
        "message": "Nursing QBank API",
        "version": "1.0.0",
        "docs": "/docs"
    }


@app.get("/health")
def health_check():
    return {"status": "healthy"}
