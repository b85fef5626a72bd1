from contextlib import asynccontextmanager
import logging
import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import OperationalError

from .db import get_db
from .inventory.warehouses import ensure_operational_warehouses
from .routers import health, inventory


logger = logging.getLogger(__name__)

CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:5173,http://127.0.0.1:5173").split(",")
    if origin.strip()
]


@asynccontextmanager
async def lifespan(app: FastAPI):
    db_factory = app.dependency_overrides.get(get_db, get_db)
    sessions = db_factory()
    try:
        ensure_operational_warehouses(next(sessions))
    except OperationalError as exc:
        logger.warning("Skipping operational warehouse provisioning; run migrations first: %s", exc)
    finally:
        sessions.close()
    yield


app = FastAPI(title="Stock Ledger API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(inventory.router)


@app.get("/")
def root():
    return {"status": "ok"}
