"""FastAPI entrypoint for the agentchat backend."""

from __future__ import annotations

import logging
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

# Load environment variables from .env file
load_dotenv(Path(__file__).parent.parent / ".env")

from .database import init_db
from .deps import get_registry
from .errors import AgentChatError
from .routers import agents_router, api_connections_router, catalog_router, chat_router

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="AgentChat API",
    description="Chat with agents backed by your own OpenAI and Anthropic keys",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(agents_router)
app.include_router(chat_router)
app.include_router(catalog_router)
app.include_router(api_connections_router)


@app.exception_handler(AgentChatError)
async def agentchat_error_handler(request: Request, exc: AgentChatError) -> JSONResponse:
    """Render typed pipeline errors with their own status code and message."""
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(f"{exc.code} on {request.url.path}: {exc}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.user_message, "code": exc.code},
    )


@app.on_event("startup")
async def startup_event() -> None:
    """Initialize database and provider registry on startup."""
    logger.info("Starting AgentChat API...")
    registry = get_registry()
    logger.info(f"Registered providers: {', '.join(registry.provider_ids)}")
    try:
        await init_db()
        logger.info("Database initialized")
    except Exception as e:
        logger.warning(f"Database initialization failed: {e}")
        logger.warning("Running without database - some features will be unavailable")


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy"}
