import logging
import os
import time

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from sqlalchemy import text

from app.routers import auth, optin, whatsapp, wallet, tournament, admin_auth
from app.core.config import settings
from app.core.database import Base, engine
from app.core.deps import build_otp_service
from app.core.errors import ServiceError
from app.core.redis import RedisClient
from app.models import user, wallet as wallet_model, tournament as tournament_model  # noqa: F401

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

STARTED_AT = time.time()


def init_database() -> None:
    """Create tables and prove the connection. Failure here is fatal."""
    Base.metadata.create_all(bind=engine)
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))


@asynccontextmanager
async def lifespan(_app: FastAPI):
    """Startup and shutdown events"""
    print("\n" + "=" * 50)
    print("  Starting Tournament API...")
    print("=" * 50)
    print(f"  Environment: {settings.APP_ENV}")
    print("-" * 50)

    try:
        init_database()
        print("  [OK]   Database")
    except Exception as e:
        print(f"  [FAIL] Database  - {e}")
        logger.critical("Database connection failed at startup: %s", e)
        raise

    if settings.STORE_BACKEND == "redis":
        try:
            RedisClient.get_client()
            print(f"  [OK]   Redis     ({settings.REDIS_HOST}:{settings.REDIS_PORT})")
        except Exception as e:
            print(f"  [FAIL] Redis     - {e}")
            raise
    else:
        print("  [OK]   OTP store (in-memory)")

    missing = settings.missing_provider_settings
    if missing:
        print(f"  [WARN] Missing   - {', '.join(missing)}")
        logger.warning("Missing provider settings, some functionality may be disabled: %s", missing)
    else:
        print(f"  [OK]   WhatsApp  ({settings.GUPSHUP_APP_NAME})")

    # Tests pre-seed app.state.otp_service with deterministic collaborators
    otp_service = getattr(_app.state, "otp_service", None) or build_otp_service(settings)
    otp_service.start()
    _app.state.otp_service = otp_service

    print("-" * 50)
    print("  Tournament API is ready!")
    print("=" * 50 + "\n")
    yield

    print("\nShutting down Tournament API...")
    await _app.state.otp_service.stop()
    if settings.STORE_BACKEND == "redis":
        RedisClient.close()


is_production = settings.APP_ENV == "production"

app = FastAPI(
    title="Tournament API",
    lifespan=lifespan,
    docs_url=None if is_production else "/docs",
    redoc_url=None if is_production else "/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Requested-With"],
)


@app.exception_handler(ServiceError)
async def service_error_handler(_request: Request, exc: ServiceError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.get("/")
def root():
    return {
        "message": "Tournament API is live",
        "version": "1.0.0",
        "endpoints": ["/health", "/api/v1/auth", "/api/v1/wallet", "/api/v1/tournaments", "/api/v1/optin"],
    }


@app.get("/health")
def health_check():
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        database = "Connected"
    except Exception as e:
        logger.warning("Health check database probe failed: %s", e)
        database = "Disconnected"

    redis_status = "Not used"
    if settings.STORE_BACKEND == "redis":
        redis_status = "Connected" if RedisClient.is_available() else "Disconnected"

    return {
        "status": "OK",
        "uptime": round(time.time() - STARTED_AT, 1),
        "pid": os.getpid(),
        "environment": settings.APP_ENV,
        "database": database,
        "services": {
            "gupshup_api_key": "Configured" if settings.GUPSHUP_API_KEY else "Missing",
            "gupshup_sender": "Configured" if settings.GUPSHUP_SENDER else "Missing",
            "gupshup_template": settings.GUPSHUP_TEMPLATE_NAME,
            "store_backend": settings.STORE_BACKEND,
            "redis": redis_status,
        },
    }


app.include_router(auth.router)
app.include_router(optin.router)
app.include_router(whatsapp.router)
app.include_router(wallet.router)
app.include_router(tournament.router)
app.include_router(admin_auth.router)
