import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from backend.fincore import config
from backend.fincore.api.routes.analysis import router as analysis_router
from backend.fincore.api.routes.anomalies import router as anomalies_router
from backend.fincore.api.routes.forecasts import router as forecasts_router
from backend.fincore.db import init_db


logger = logging.getLogger(__name__)


def _cors_origins() -> list[str]:
    origins = config.cors_origins()
    if not any(origin in origins for origin in ("http://localhost:5173", "http://127.0.0.1:5173")):
        logger.warning("CORS allowlist does not include local dev origins: %s", origins)
    return origins


@asynccontextmanager
async def lifespan(app: FastAPI):
    # handlers belong to the runner; only the package level comes from LOG_LEVEL
    logging.getLogger("backend.fincore").setLevel(config.log_level())
    if config.create_tables_on_startup():
        logger.info("creating missing tables")
        init_db()
    yield


app = FastAPI(title="Fincore Analytics API", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(forecasts_router)
app.include_router(anomalies_router)
app.include_router(analysis_router)


@app.get("/health", tags=["system"])
def health() -> dict:
    return {"status": "ok"}
