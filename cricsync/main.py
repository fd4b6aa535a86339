"""
Cricsync - FastAPI Admin Application

Provides the admin REST API for the Cricbuzz sync control plane: pause
window, job dashboards, emergency toggles and log maintenance.
"""

import time
import uuid
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware

from . import config
from .jobs.queue import JobQueue, build_job
from .jobs.registry import JOBS, is_known_job
from .models.admin import DispatchRequest, EmergencyToggle, LogRetentionUpdate
from .models.pause_window import PauseWindowUpdate
from .services.admin_settings import AdminSettingsService
from .services.pause_window import PauseWindowService
from .services.run_summary import build_summary, clamp_days, list_job_runs, map_run
from .storage import get_storage

RUNS_PER_PAGE = 25

# Initialize services
pause_window = PauseWindowService()
admin_settings = AdminSettingsService()
job_queue = JobQueue()


def _require_job(job: str) -> None:
    if not is_known_job(job):
        raise HTTPException(status_code=404, detail=f"Unknown job: {job}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    print("[*] Checking storage...")
    storage = get_storage()
    if storage.health_check():
        print("[+] Storage is healthy")
    else:
        print("[!] Storage health check failed")

    settings = pause_window.current()
    print(
        f"[*] Pause window: {settings.start_time}-{settings.end_time} {settings.timezone}"
        f" ({'enabled' if settings.enabled else 'disabled'})"
    )
    print("[*] App is ready.")

    yield

    print("[*] Shutting down...")
    job_queue.shutdown(wait=False)


# Initialize FastAPI app with lifespan
app = FastAPI(
    title="Cricsync",
    description="Admin API for the Cricbuzz sync control plane",
    version="1.0.0",
    lifespan=lifespan
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ============================================================================
# PAUSE WINDOW
# ============================================================================

@app.get("/api/pause-window")
async def get_pause_window():
    """Current pause window settings and whether sync work is paused."""
    try:
        return pause_window.status()
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@app.put("/api/pause-window")
async def update_pause_window(payload: PauseWindowUpdate):
    """Store a new pause window and drop the cached copy."""
    try:
        pause_window.update(payload)
        return pause_window.status()
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


# ============================================================================
# JOB DASHBOARD
# ============================================================================

@app.get("/api/jobs")
async def get_jobs(days: int = Query(1, description="Window in days (1-30)")):
    """Summary card for every registered job."""
    window = clamp_days(days)
    try:
        storage = get_storage()
        return {
            "days": window,
            "jobs": {job_key: build_summary(storage, job_key, window) for job_key in JOBS},
        }
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@app.get("/api/jobs/{job}")
async def get_job(
    job: str,
    days: int = Query(7, description="Window in days (1-30)"),
    search: Optional[str] = Query(None, description="Run id or message filter"),
    page: int = Query(1, ge=1, description="Page of runs")
):
    """Summary and paginated run table for one job."""
    _require_job(job)
    window = clamp_days(days)
    try:
        storage = get_storage()
        runs = list_job_runs(
            storage,
            job,
            search=search,
            limit=RUNS_PER_PAGE,
            offset=(page - 1) * RUNS_PER_PAGE
        )
        return {
            "summary": build_summary(storage, job, window),
            "runs": runs,
            "page": page,
            "per_page": RUNS_PER_PAGE,
            "search": search,
        }
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@app.get("/api/jobs/{job}/runs/{run_id}")
async def get_job_run(job: str, run_id: str):
    """Every event and outbound request of one run."""
    _require_job(job)
    try:
        storage = get_storage()
        events = storage.get_run_events(job, run_id)
        api_requests = storage.get_api_request_logs(run_id) if events else []
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))

    if not events:
        raise HTTPException(status_code=404, detail=f"Run not found: {run_id}")

    return {
        "job": JOBS[job],
        "run": map_run(events, job),
        "events": events,
        "api_requests": api_requests,
    }


@app.post("/api/jobs/{job}/dispatch")
async def dispatch_job(job: str, payload: Optional[DispatchRequest] = None):
    """Queue a job run with a fresh run id."""
    _require_job(job)
    try:
        run_id = str(uuid.uuid4())
        match_ids = payload.match_ids if payload else None
        job_queue.dispatch(build_job(job, match_ids=match_ids, run_id=run_id))
        return {
            "status": "queued",
            "job": job,
            "run_id": run_id,
        }
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


# ============================================================================
# EMERGENCY CONTROLS
# ============================================================================

@app.get("/api/emergency")
async def get_emergency():
    """Enabled flag of every job."""
    try:
        toggles = admin_settings.cron_toggles()
        return {
            "jobs": [
                {"key": job_key, **meta, "enabled": toggles[job_key]}
                for job_key, meta in JOBS.items()
            ]
        }
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@app.post("/api/emergency/toggle")
async def toggle_job(payload: EmergencyToggle):
    """Enable or disable one job."""
    _require_job(payload.job)
    try:
        admin_settings.set_cron_enabled(payload.job, payload.enabled)
        return {
            "status": "ok",
            "job": payload.job,
            "enabled": admin_settings.is_cron_enabled(payload.job),
        }
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


# ============================================================================
# MAINTENANCE
# ============================================================================

@app.get("/api/maintenance")
async def get_maintenance():
    """Retention settings and table sizes."""
    try:
        return {
            "log_retention_days": admin_settings.log_retention_days(),
            "log_retention_minutes": admin_settings.log_retention_minutes(),
            "stats": get_storage().get_stats(),
            "recent_failures": job_queue.failures(),
        }
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@app.put("/api/maintenance/log-retention")
async def update_log_retention(payload: LogRetentionUpdate):
    """Change how many days of logs the cleanup job keeps."""
    try:
        days = admin_settings.update_log_retention_days(payload.days)
        return {"status": "ok", "log_retention_days": days}
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


# ============================================================================
# MISC
# ============================================================================

@app.get("/server-time")
async def server_time():
    """Server clock in epoch milliseconds."""
    return {"serverTime": int(time.time() * 1000)}


@app.get("/health")
async def health():
    """Health check endpoint."""
    storage = get_storage()
    return {
        "status": "ok",
        "storage": storage.health_check(),
        "paused": pause_window.is_paused(),
        "seconds_until_resume": pause_window.seconds_until_resume(),
    }


# Run with: uvicorn cricsync.main:app --reload
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=config.HOST, port=config.PORT)
