"""
Solar Quote API v1.0
FastAPI backend for solar quotation project configuration: field derivation,
backup estimates, subsidy and quotation totals. Stateless; no database.
"""
import logging

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Load .env before settings are read
load_dotenv()

from solarquote.config import get_settings
from solarquote.services.logging_config import setup_logging
from solarquote.services.middleware import RequestTimingMiddleware
from solarquote.api.project_routes import router as project_router
from solarquote.api.quotation_routes import router as quotation_router

settings = get_settings()
setup_logging(level=settings["log_level"], json_output=settings["json_logs"])
logger = logging.getLogger("solarquote-api")

if not settings["default_property_type"]:
    logger.info("Optional env var not set: DEFAULT_PROPERTY_TYPE (subsidy falls back to residential)")

app = FastAPI(
    title="Solar Quote API",
    version="1.0.0",
    description="Project configuration derivation and quotation totals for solar installations",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings["cors_origins"],
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Accept", "X-Requested-With", "X-Request-ID"],
)
# Request timing + X-Request-ID must be outermost so it wraps all other middleware
app.add_middleware(RequestTimingMiddleware)

app.include_router(project_router)
app.include_router(quotation_router)


@app.get("/health")
async def health_check():
    return {
        "status": "active",
        "version": "1.0.0",
        "advance_payment_pct": settings["advance_payment_pct"],
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("solarquote.main:app", host="0.0.0.0", port=8000, reload=False)
