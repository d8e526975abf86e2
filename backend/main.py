from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import os
import logging
from dotenv import load_dotenv, find_dotenv
from api.teach_me import router as teach_me_router
from api.metrics_endpoints import router as metrics_router
from config.teach_me import TeachMeSettings
from core.db import ensure_schema

load_dotenv(find_dotenv(), override=True)

# Configure basic logging for the app; allow override via LOG_LEVEL env
log_level = os.getenv("LOG_LEVEL", "INFO").upper()
logging.basicConfig(level=getattr(logging, log_level, logging.INFO), format="%(asctime)s %(levelname)s %(name)s %(message)s")

app = FastAPI(title="Teach Me Backend")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(teach_me_router)
app.include_router(metrics_router)


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.on_event("startup")
def on_startup():
    # in-memory sessions need no schema
    if TeachMeSettings.from_env().store_backend != "postgres":
        return
    try:
        ensure_schema()
    except Exception:
        logging.exception("Error ensuring schema on startup")
