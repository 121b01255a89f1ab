import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from fin_engine.api.routes import analytics
from fin_engine.core.config import settings
from fin_engine.core.exceptions import EngineError
from fin_engine.core.logging import configure_logging
from fin_engine.db.database import engine, init_db

logger = logging.getLogger(__name__)


class LoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        logger.info("Incoming request: %s %s", request.method, request.url.path)
        try:
            response = await call_next(request)
            logger.info("Response: %s %s -> %d", request.method, request.url.path, response.status_code)
            return response
        except Exception as e:
            logger.exception("Request failed: %s %s -> %s", request.method, request.url.path, e)
            raise


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(settings.LOG_LEVEL)
    init_db(engine)
    yield


app = FastAPI(title="Branch Finance Engine API", version="0.1.0", lifespan=lifespan)

app.add_middleware(LoggingMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(EngineError)
async def engine_error_handler(request: Request, exc: EngineError):
    logger.warning("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


app.include_router(analytics.router, prefix="/api/analytics", tags=["analytics"])


@app.get("/")
def root():
    return {"status": "ok", "version": "0.1.0"}
