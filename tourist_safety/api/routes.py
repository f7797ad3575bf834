# Run:
# uvicorn tourist_safety.api.routes:app --host 0.0.0.0 --port 8000
# or: python -m tourist_safety.api.routes
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from pymongo.errors import PyMongoError

from ..config import (
    ACTIVE_TOURIST_WINDOW_MINUTES,
    API_HOST,
    API_PORT,
    CLUSTER_RADIUS_METERS,
    ENABLE_SCHEDULER,
    HISTORY_LIMIT,
    LOG_FORMAT,
    LOG_LEVEL,
)
from ..core.clustering import cluster_positions, latest_per_tourist
from ..core.dashboard import score_band, score_distribution, summarize_alerts, with_risk_level
from ..core.exceptions import InvalidInputError, TouristNotFoundError
from ..core.processing import check_geofence, process_location_update, recompute_safety_score
from ..core.scoring import INITIAL_SCORE, risk_level_for_score
from ..db.store import get_store
from ..schemas.location_schema import GeofenceCheckRequest, LocationUpdateRequest
from ..schemas.schemas import AnomalyKind, Coordinate, RiskLevel, Severity
from ..utils.scheduler import start_scheduler

logging.basicConfig(level=LOG_LEVEL, format=LOG_FORMAT)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app):
    scheduler = start_scheduler() if ENABLE_SCHEDULER else None
    yield
    if scheduler is not None:
        scheduler.shutdown(wait=False)


app = FastAPI(title="Tourist Safety Engine", lifespan=lifespan)


@app.exception_handler(InvalidInputError)
async def invalid_input_handler(request: Request, exc: InvalidInputError):
    return JSONResponse(status_code=400, content={"success": False, "message": str(exc)})


@app.exception_handler(TouristNotFoundError)
async def not_found_handler(request: Request, exc: TouristNotFoundError):
    return JSONResponse(status_code=404, content={"success": False, "message": "Tourist not found"})


@app.exception_handler(PyMongoError)
async def storage_error_handler(request: Request, exc: PyMongoError):
    logger.error(f"[✗] Storage error on {request.url.path}: {exc}")
    return JSONResponse(status_code=500, content={"success": False, "message": "Storage error", "error": str(exc)})


# ---------- location ----------

@app.post("/location/update")
def update_location(payload: LocationUpdateRequest, store=Depends(get_store)):
    result = process_location_update(
        store, payload.dtid, payload.latitude, payload.longitude,
        altitude=payload.altitude, accuracy=payload.accuracy, timestamp=payload.timestamp,
    )
    return {"success": True, "message": "Location updated successfully", "data": result}


@app.get("/location/{dtid}/latest")
def latest_location(dtid: str, store=Depends(get_store)):
    location = store.get_latest_location(dtid)
    if location is None:
        raise HTTPException(status_code=404, detail="No location data found for this tourist")
    return {"success": True, "data": location}


@app.get("/location/{dtid}/history")
def location_history(
    dtid: str,
    limit: int = Query(HISTORY_LIMIT, ge=1),
    since: Optional[datetime] = Query(None, alias="from"),
    until: Optional[datetime] = Query(None, alias="to"),
    store=Depends(get_store),
):
    locations = store.get_location_history(dtid, limit=limit, since=since, until=until)
    return {"success": True, "data": {"locations": locations, "count": len(locations)}}


# ---------- geofence ----------

@app.post("/geofence/check")
def geofence_check(payload: GeofenceCheckRequest, store=Depends(get_store)):
    point = Coordinate(latitude=payload.latitude, longitude=payload.longitude)
    return {"success": True, "data": check_geofence(store, payload.dtid, point)}


@app.get("/geofence/zones")
def restricted_zones(store=Depends(get_store)):
    zones = sorted(store.get_active_zones(), key=lambda zone: zone.risk_level.rank, reverse=True)
    return {"success": True, "data": zones}


# ---------- safety score ----------

@app.get("/safety-score/{dtid}")
def safety_score(dtid: str, store=Depends(get_store)):
    if not store.tourist_exists(dtid):
        raise TouristNotFoundError(dtid)

    record, active = recompute_safety_score(store, dtid)
    latest = store.get_latest_location(dtid)
    return {
        "success": True,
        "data": {
            "dtid": dtid,
            "current_score": record.current_score,
            "risk_level": risk_level_for_score(record.current_score).value,
            "factors": record.factors,
            "last_updated": record.last_updated,
            "active_anomalies_count": len(active),
            "last_location_update": latest.timestamp if latest else None,
            "score_history": {
                "initial_score": INITIAL_SCORE,
                "current_score": record.current_score,
                "score_change": record.current_score - INITIAL_SCORE,
            },
        },
    }


@app.get("/safety-score")
def all_safety_scores(
    risk_level: Optional[RiskLevel] = None,
    limit: int = Query(50, ge=1),
    store=Depends(get_store),
):
    low, high = score_band(risk_level) if risk_level else (None, None)
    records = store.get_safety_scores(min_score=low, max_score=high, limit=limit)
    return {"success": True, "data": [with_risk_level(record) for record in records]}


# ---------- dashboard ----------

@app.get("/dashboard/clusters")
def tourist_clusters(radius: float = Query(CLUSTER_RADIUS_METERS, gt=0), store=Depends(get_store)):
    positions = latest_per_tourist(store.get_recent_locations())
    clusters = cluster_positions(positions, radius_meters=radius)
    return {
        "success": True,
        "data": {
            "clusters": clusters,
            "total_tourists": len(positions),
            "cluster_count": len(clusters),
            "clustering_radius_m": radius,
        },
    }


@app.get("/dashboard/alerts")
def active_alerts(
    severity: Optional[Severity] = None,
    limit: int = Query(100, ge=1),
    store=Depends(get_store),
):
    anomalies = store.get_active_anomalies(severity=severity, limit=limit)
    breaches = store.get_active_anomalies(kind=AnomalyKind.GEOFENCE_BREACH)
    return {"success": True, "data": summarize_alerts(anomalies, store.get_safety_scores(), breaches)}


@app.get("/dashboard/stats")
def dashboard_stats(store=Depends(get_store)):
    now = datetime.now(timezone.utc)
    active_since = now - timedelta(minutes=ACTIVE_TOURIST_WINDOW_MINUTES)
    scores = [record.current_score for record in store.get_safety_scores()]
    return {
        "success": True,
        "data": {
            "overview": {
                "total_tourists": store.count_tourists(),
                "active_tourists": store.count_active_tourists(active_since),
                "active_anomalies": store.count_active_anomalies(),
                "restricted_zones": store.count_active_zones(),
            },
            "safety_score_distribution": score_distribution(scores),
            "last_updated": now,
        },
    }


def serve(host=API_HOST, port=API_PORT):
    import uvicorn  # installed with the "serve" extra

    uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    serve()
