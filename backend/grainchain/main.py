"""
GrainChain - FastAPI application entry point.
CORS enabled; health check at GET /health; DB initialized on startup;
ledger errors reported as {"error": code, "detail": message}.
"""
import logging
import os
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from grainchain.db import init_db
from grainchain.errors import LedgerError
from grainchain.api.routes import router as api_router

logging.basicConfig(level=os.environ.get("LOG_LEVEL", "INFO").upper())
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize DB and any startup resources."""
    init_db()
    yield


app = FastAPI(
    title="GrainChain",
    description="Wheat supply chain ledgers: processor orders, farmer offers, retailer catalog and customer sales.",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in os.environ.get("CORS_ORIGINS", "*").split(",")],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(LedgerError)
async def ledger_error_handler(request: Request, exc: LedgerError):
    logger.info("ledger_call_rejected", extra={"path": request.url.path, "code": exc.code})
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


app.include_router(api_router, prefix="/api", tags=["api"])


@app.get("/health")
def health():
    """Health check for load balancers and readiness probes."""
    return {"status": "ok"}
