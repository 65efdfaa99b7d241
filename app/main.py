from fastapi import FastAPI
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.responses import Response

from app.api.storage import router as storage_router
from app.errors import register_error_handlers
from app.logging import configure_logging

configure_logging()

app = FastAPI(title="Media Lifecycle API")
register_error_handlers(app)

app.include_router(storage_router)


@app.get("/health")
def health_check():
    return {"status": "ok"}


@app.get("/metrics")
def metrics():
    data = generate_latest()
    return Response(content=data, media_type=CONTENT_TYPE_LATEST)
