import logging
import os
from datetime import datetime

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.database import init_db
from app.routes import fixtures, players, public, runtime, tournaments

load_dotenv()

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Knockout Tournament API")

STARTED_AT = datetime.utcnow()

_cors_origins = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]
_extra = os.getenv("CORS_ORIGINS", "")
if _extra:
    _cors_origins.extend(o.strip() for o in _extra.split(",") if o.strip())

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(tournaments.router, prefix="/api", tags=["tournaments"])
app.include_router(players.router, prefix="/api", tags=["players"])
app.include_router(fixtures.router, prefix="/api", tags=["fixtures"])
# Live scoring + knockout advancement
app.include_router(runtime.router, prefix="/api", tags=["runtime"])
# Public read-only endpoints (no auth)
app.include_router(public.router, prefix="/api", tags=["public"])


@app.on_event("startup")
def on_startup():
    init_db()  # Use centralized init_db() which imports models and creates tables
    logger.info("Registered %d routes", len(app.routes))


@app.get("/")
def root():
    return {"message": "Knockout Tournament API"}


@app.get("/api/health")
def health_check():
    return {"status": "ok", "started_at": STARTED_AT.isoformat()}
