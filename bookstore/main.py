from uuid import uuid4

import structlog
from fastapi import FastAPI, Request, Response
from prometheus_fastapi_instrumentator import Instrumentator

from bookstore.api import books, errors, orders
from bookstore.core.config import settings
from bookstore.core.logging import add_context, clear_context, configure_logging
from bookstore.services.notifications import Ntfy
from bookstore.store import build_store
from bookstore.version import VERSION

logger = structlog.get_logger(__name__)

instrumentator = Instrumentator()

app = FastAPI(title="Bookstore Service", version=VERSION)
app.state.store = None
app.state.notifier = None

instrumentator.instrument(app).expose(app, include_in_schema=False, endpoint="/metrics", should_gzip=True)

errors.register(app)


@app.middleware("http")
async def request_context(request: Request, call_next):
    add_context(request_id=uuid4().hex, path=request.url.path, method=request.method)
    try:
        return await call_next(request)
    finally:
        clear_context()


@app.get("/ping", status_code=204)
def ping():
    return Response(status_code=204)

@app.get("/health")
def health():
    return {"status": "ok"}

@app.get("/v1/_info")
def info():
    return {"service": "bookstore", "version": VERSION}


@app.on_event("startup")
def startup_event():
    configure_logging()
    if app.state.store is None:
        app.state.store = build_store(settings)
    if app.state.notifier is None:
        app.state.notifier = Ntfy(
            settings.NOTIFICATIONS_BASE_URL,
            enabled=settings.ENABLE_NOTIFICATIONS,
            timeout=settings.NOTIFICATIONS_TIMEOUT_SECONDS,
        )
    logger.info("Bookstore started", store=settings.STORE_BACKEND, environment=settings.ENVIRONMENT)
    for route in app.routes:
        if hasattr(route, "methods") and hasattr(route, "path"):
            logger.debug("Route registered", methods=sorted(route.methods), path=route.path)

@app.on_event("shutdown")
def shutdown_event():
    if app.state.store is not None:
        app.state.store.close()


app.include_router(books.router, prefix="/v1/books", tags=["books"])
app.include_router(orders.router, prefix="/v1/orders", tags=["orders"])
