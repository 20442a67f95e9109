import time
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from kamistream.api.routes import router
from kamistream.config.settings import settings
from kamistream.services.orchestrator import episode_orchestrator
from kamistream.utils.database import setup_database, teardown_database
from kamistream.utils.http_client import http_client
from kamistream.utils.logger import setup_logger, engine_logger, api_logger


# ===========================
# Logger Setup
# ===========================
setup_logger(settings.LOG_LEVEL, settings.LOG_FILE)


# ===========================
# Custom Middleware
# ===========================
class LoguruMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start_time = time.time()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
        except Exception as e:
            api_logger.error(f"Exception: {type(e).__name__}")
            raise
        finally:
            process_time = time.time() - start_time
            if request.url.path != "/health":
                api_logger.debug(f"{request.method} {request.url.path} - {status_code} - {process_time:.2f}s")
        return response


# ===========================
# Application Lifecycle
# ===========================
@asynccontextmanager
async def lifespan(app: FastAPI):
    await setup_database()

    yield

    for media_id in list(episode_orchestrator.sessions):
        await episode_orchestrator.close(media_id)

    await http_client.close()
    await teardown_database()


# ===========================
# FastAPI Application Setup
# ===========================
app = FastAPI(
    title=settings.ADDON_NAME,
    version=settings.VERSION,
    lifespan=lifespan
)

app.add_middleware(LoguruMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router)


# ===========================
# Application Entry Point
# ===========================
if __name__ == "__main__":

    if not settings.CONSUMET_API_URL:
        engine_logger.error("No provider API configured (CONSUMET_API_URL)!")
        engine_logger.error("Only AniList metadata will be available")

    engine_logger.info(f"Starting {settings.ADDON_NAME} v{settings.VERSION}")
    engine_logger.info(f"Server: http://localhost:{settings.PORT}/")
    engine_logger.info(f"Providers: {', '.join(settings.PROVIDER_PRIORITY)} (default {settings.DEFAULT_PROVIDER})")
    engine_logger.info(f"AniList token: {'configured' if settings.ANILIST_TOKEN else 'missing'}")
    engine_logger.info(f"Database: {settings.DATABASE_TYPE} v{settings.DATABASE_VERSION}")
    engine_logger.info(f"Proxy: {'enabled' if settings.PROXY_URL else 'disabled'}")
    engine_logger.info(f"Log level: {settings.LOG_LEVEL}")

    uvicorn.run(
        app,
        host="0.0.0.0",
        port=settings.PORT,
        log_config=None
    )
