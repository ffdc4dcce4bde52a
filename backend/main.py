import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from redis.exceptions import RedisError
from sqlalchemy.exc import SQLAlchemyError

from core import errors
from core.config import settings
from core.errors import InventoryError, ItemNotFound
from core.redis_client import close_redis, get_redis
from db.database import async_session_maker, create_db_and_tables, engine
from routers.inventory import router as inventory_router
from schemas.inventory import ApiResponse
from services.events import BackgroundEventPublisher, InMemoryEventPublisher, RedisStreamEventPublisher
from services.inventory import InventoryService
from services.stock_cache import InMemoryStockCache, RedisStockCache
from services.stock_store import SqlAlchemyStockStore

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger("inventory")


def build_inventory_service() -> tuple[InventoryService, BackgroundEventPublisher]:
    if settings.cache_backend == "memory":
        cache = InMemoryStockCache()
    else:
        cache = RedisStockCache(get_redis(), key_prefix=settings.inventory_key_prefix)

    if settings.event_backend == "memory":
        transport = InMemoryEventPublisher()
    else:
        transport = RedisStreamEventPublisher(
            get_redis(),
            stream=settings.event_stream,
            maxlen=settings.event_stream_maxlen,
            retries=settings.event_publish_retries,
        )
    publisher = BackgroundEventPublisher(transport, max_queue_size=settings.event_queue_size)

    store = SqlAlchemyStockStore(async_session_maker)
    return InventoryService(cache, store, publisher), publisher


@asynccontextmanager
async def lifespan(app: FastAPI):
    await create_db_and_tables()
    service, publisher = build_inventory_service()
    publisher.start()
    app.state.inventory_service = service
    logger.info("Inventory service ready (cache=%s, events=%s)", settings.cache_backend, settings.event_backend)
    yield
    await publisher.stop()
    await close_redis()
    await engine.dispose()


app = FastAPI(
    title="Inventory API",
    description="Per-item stock: cache-first reads, atomic decrements, StockDecreased events",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _envelope(status_code: int, code: str, message: str, detail: dict | None = None) -> JSONResponse:
    body = ApiResponse.fail(code, message, detail)
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


@app.exception_handler(InventoryError)
async def inventory_error_handler(request: Request, exc: InventoryError):
    if isinstance(exc, ItemNotFound):
        status_code = status.HTTP_404_NOT_FOUND
    else:
        status_code = status.HTTP_400_BAD_REQUEST
    return _envelope(status_code, exc.code, exc.message, exc.context())


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    fields = [".".join(str(p) for p in e.get("loc", ())) for e in exc.errors()]
    return _envelope(
        status.HTTP_400_BAD_REQUEST,
        errors.INVALID_REQUEST,
        errors.ERROR_INVALID_REQUEST,
        {"fields": fields},
    )


@app.exception_handler(RedisError)
@app.exception_handler(SQLAlchemyError)
async def backend_error_handler(request: Request, exc: Exception):
    logger.error("Backend failure on %s %s", request.method, request.url.path, exc_info=exc)
    return _envelope(
        status.HTTP_503_SERVICE_UNAVAILABLE,
        errors.SERVICE_UNAVAILABLE,
        errors.ERROR_SERVICE_UNAVAILABLE,
    )


@app.get("/health", tags=["health"])
async def health():
    return {"status": "ok"}


app.include_router(inventory_router, prefix="/api/v1/inventory", tags=["inventory"])

if __name__ == "__main__":
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
