import random
import socket

from fastapi import APIRouter, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from ..core.clock import utcnow
from ..settings import bloodwave_settings

router = APIRouter()


@router.get("/healthz")
async def healthz() -> dict[str, str]:
    settings = bloodwave_settings()
    return {"status": "ok", "service": settings.service_name}


@router.get("/ping")
async def ping() -> dict[str, object]:
    """Liveness probe used by game clients to check reachability."""
    return {
        "ok": True,
        "message": "Bloodwave API is alive",
        "utc": utcnow().isoformat(),
        "server": socket.gethostname(),
        "random": random.randint(1, 999_999),
    }


@router.get("/metrics")
async def metrics() -> Response:
    data = generate_latest()
    return Response(content=data, media_type=CONTENT_TYPE_LATEST)
