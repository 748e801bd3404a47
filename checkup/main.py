import logging
from functools import lru_cache

from fastapi import FastAPI, HTTPException, Query

from checkup.api_schemas import (
    CheckRunResponse,
    ConfigResponse,
    HealthResponse,
    ResultBatchResponse,
)
from checkup.checks.results import all_healthy
from checkup.errors import CheckerFailures, ConfigurationError
from checkup.persistence import SQLiteStorage
from checkup.registry import build_checkup, load_config, storage_path

logger = logging.getLogger(__name__)


@lru_cache(maxsize=4)
def get_storage(db_path: str) -> SQLiteStorage:
    return SQLiteStorage(db_path=db_path)


app = FastAPI(
    title="Checkup",
    version="1.0.0",
    description=(
        "Read-only view of the configured checkers and stored checkup "
        "results, plus an on-demand check pass."
    ),
)


def _load_config():
    try:
        return load_config()
    except (FileNotFoundError, ConfigurationError) as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc


@app.get(
    "/health",
    response_model=HealthResponse,
    tags=["system"],
    summary="Health Check",
    description="Liveness endpoint used by probes and orchestration.",
)
def health():
    return {"status": "ok"}


@app.get(
    "/api/config",
    response_model=ConfigResponse,
    tags=["system"],
    summary="Configured Checkers",
    description="Checkers with defaults applied. Notifier credentials are not returned.",
)
def config():
    cfg = _load_config()
    return {
        "checkers": [c.model_dump() for c in cfg.checkers],
        "count": len(cfg.checkers),
        "storage": cfg.storage.provider if cfg.storage else None,
        "notifier": cfg.notifier.name if cfg.notifier else None,
    }


@app.get(
    "/api/results",
    response_model=list[ResultBatchResponse],
    tags=["results"],
    summary="Recent Result Batches",
    description="Stored checkup runs, newest first.",
)
def results(
    limit: int = Query(default=10, ge=1, le=500, description="Max number of batches to return")
):
    storage = get_storage(storage_path(_load_config()))
    return [
        {
            "batch_id": batch["batch_id"],
            "ts": batch["ts"],
            "healthy": batch["healthy"],
            "results": [r.to_dict() for r in batch["results"]],
        }
        for batch in storage.load_recent(limit)
    ]


@app.post(
    "/api/check",
    response_model=CheckRunResponse,
    tags=["results"],
    summary="Run Checkup",
    description="Runs every configured checker once. Nothing is stored or notified.",
)
def check():
    cfg = _load_config()
    checkup = build_checkup(cfg.model_copy(update={"storage": None, "notifier": None}))
    try:
        batch = checkup.check()
    except ConfigurationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except CheckerFailures as exc:
        logger.error("Check run failed: %s", exc)
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    return {"healthy": all_healthy(batch), "results": [r.to_dict() for r in batch]}
