# app/routers/health.py
"""
System health check endpoint.
Returns status of backend + DB, and whether the geocoder is reachable when enabled.
"""

import requests
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from sqlalchemy import text
from app.database import get_db
from app.config import settings
from datetime import datetime

router = APIRouter()


@router.get("/health", summary="System health check")
def health_check(db: Session = Depends(get_db)):
    result = {
        "status": "ok",
        "timestamp": datetime.utcnow().isoformat(),
        "backend": "ok",
        "database": "unknown",
        "geocoder": "disabled",
    }

    try:
        db.execute(text("SELECT 1"))
        result["database"] = "ok"
    except Exception as e:
        result["database"] = f"error: {str(e)}"
        result["status"] = "degraded"

    # Geocoding is optional enrichment, so an outage never degrades the status
    if settings.GEOCODING_ENABLED:
        try:
            resp = requests.get(
                f"{settings.GEOCODER_URL.rstrip('/')}/status",
                headers={"User-Agent": settings.GEOCODER_USER_AGENT},
                timeout=3,
            )
            result["geocoder"] = "ok" if resp.status_code == 200 else f"http_{resp.status_code}"
        except requests.exceptions.ConnectionError:
            result["geocoder"] = "unreachable"
        except requests.exceptions.RequestException as e:
            result["geocoder"] = f"error: {str(e)}"

    return result
