import time
from datetime import datetime, timezone

from flask import Blueprint, current_app

from utils.responses import success

health_bp = Blueprint("health", __name__)

_STARTED = time.monotonic()


@health_bp.get("/health")
def health():
    return success(data={
        "status": "OK",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "uptime": round(time.monotonic() - _STARTED, 3),
        "environment": current_app.config.get("ENVIRONMENT", "development"),
    })
