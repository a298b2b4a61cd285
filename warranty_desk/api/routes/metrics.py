from fastapi import APIRouter
from fastapi.responses import PlainTextResponse

from warranty_desk.metrics import PrometheusExporter, metrics_registry

router = APIRouter(tags=["observability"])


@router.get("/metrics", response_class=PlainTextResponse, summary="Prometheus scrape endpoint")
async def metrics() -> PlainTextResponse:
    exporter = PrometheusExporter(metrics_registry)
    return PlainTextResponse(exporter.export(), media_type=exporter.content_type)
