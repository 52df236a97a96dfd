"""
TasteCRM - FastAPI Backend
Session-gated REST API for CSV import, Cultural DNA enrichment, segmentation,
analytics, collateral generation and exports.

Run: uvicorn tastecrm.api.app:app --reload --port 8000
"""

import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.sessions import SessionMiddleware

from tastecrm import config
from tastecrm.api.auth import require_user
from tastecrm.api.routers import analytics, auth, data, exports, flows, profiles, segments, settings, strategy
from tastecrm.db import connection, models
from tastecrm.db.init_db import init_db
from tastecrm.flows.correlation_client import get_correlation_client
from tastecrm.logging_config import setup_logging

logger = logging.getLogger("tastecrm.api")


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    init_db(connection.DB_PATH)
    for problem in config.validate():
        logger.warning("Config: %s", problem)
    yield


app = FastAPI(
    title="TasteCRM",
    description="Cultural intelligence CRM: customer import, Cultural DNA, segments and campaign collateral.",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(SessionMiddleware, secret_key=config.SESSION_SECRET, same_site="lax")


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    fields = ", ".join(".".join(str(p) for p in err["loc"] if p != "body") or "body"
                       for err in exc.errors())
    return JSONResponse(status_code=400, content={"detail": f"Invalid or missing input: {fields}"})


# ─── ROUTERS ─────────────────────────────────────────────────
app.include_router(auth.router)
app.include_router(flows.router)
app.include_router(profiles.router)
app.include_router(segments.router)
app.include_router(exports.router)
app.include_router(analytics.router)
app.include_router(strategy.router)
app.include_router(settings.router)
app.include_router(data.router)


@app.get("/api/health")
def health():
    return {"status": "ok"}


@app.get("/api/health/details", dependencies=[Depends(require_user)])
def health_details():
    return {
        "status": "ok",
        "collections": models.collection_counts(),
        "correlationApi": get_correlation_client().auth_mode or "not configured",
        "model": config.OLLAMA_MODEL,
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("tastecrm.api.app:app", host=config.API_HOST, port=config.API_PORT)
