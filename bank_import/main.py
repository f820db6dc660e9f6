"""
Bank Import - FastAPI Backend
Main entry point. Registers the import router and initializes the database.
"""

import os
import logging
from pathlib import Path
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# Load .env from ~/BankImport/.env first (deployed service),
# then fall back to CWD/.env (development).
# Second call is a no-op for vars already set by the first.
load_dotenv(dotenv_path=Path.home() / "BankImport" / ".env")
load_dotenv()

from .database import init_db
from .routers import import_statement
from .services.statement_import import failure_payload

VERSION = "0.1.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Run on startup: create tables."""
    init_db()
    logger.info("Database ready")
    yield


app = FastAPI(
    title="Bank Import",
    description="Bank statement ingestion, deduplication and rule-based categorization",
    version=VERSION,
    lifespan=lifespan,
)

# CORS: allow the bookkeeping web client to call the API
app.add_middleware(
    CORSMiddleware,
    allow_origins=os.getenv(
        "BANK_IMPORT_CORS_ORIGINS", "http://localhost:3000,http://localhost:5173"
    ).split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Malformed bodies get the import failure shape instead of FastAPI's 422
@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    first = exc.errors()[0] if exc.errors() else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    detail = first.get("msg", "invalid body")
    message = f"Invalid request: {location}: {detail}" if location else f"Invalid request: {detail}"
    logger.warning(f"{request.url.path}: {message}")
    return JSONResponse(status_code=400, content=failure_payload(message))


# Register routers
app.include_router(import_statement.router, prefix="/api/import", tags=["Statement Import"])


@app.get("/health")
def health_check():
    """Health check endpoint for load balancers and the web client."""
    return {"status": "ok", "version": VERSION}
