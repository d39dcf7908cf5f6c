from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from storefront.config import settings
from storefront.db import close_pool, get_pool, init_schema
from storefront.errors import OrderError
from storefront.metrics import get_metrics_bytes, get_metrics_content_type, queue_messages_in_flight, queue_messages_waiting
from storefront.queue import NOTIFICATION_QUEUE_KEY
from storefront.redis_client import close_redis, get_redis, queue_length
from storefront.routes import admin, orders
from storefront.sqs_client import get_sqs_queue


@asynccontextmanager
async def lifespan(app: FastAPI):
    await get_redis()
    await init_schema(await get_pool())
    yield
    await close_pool()
    await close_redis()


app = FastAPI(title="Storefront Orders", lifespan=lifespan)
app.include_router(orders.router)
app.include_router(admin.router)


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "message": message})


@app.exception_handler(OrderError)
async def order_error_handler(request: Request, exc: OrderError) -> JSONResponse:
    return _error(exc.status_code, exc.message)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Bad request bodies are InvalidArgument (400), e.g. an unknown status value."""
    details = []
    for err in exc.errors():
        field = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
        details.append(f"{field}: {err.get('msg')}" if field else str(err.get("msg")))
    return _error(400, "; ".join(details) or "Invalid request")


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return _error(exc.status_code, str(exc.detail))


@app.get("/health")
async def health() -> dict:
    return {"status": "ok"}


@app.get("/metrics")
async def metrics() -> Response:
    """Prometheus scrape endpoint: order transitions, notification queue depth."""
    try:
        if settings.sqs_queue_url:
            waiting, in_flight = await get_sqs_queue().depth()
            queue_messages_in_flight.set(in_flight)
        else:
            waiting = await queue_length(NOTIFICATION_QUEUE_KEY)
        queue_messages_waiting.set(waiting)
    except Exception:
        pass
    return Response(
        content=get_metrics_bytes(),
        media_type=get_metrics_content_type(),
    )
