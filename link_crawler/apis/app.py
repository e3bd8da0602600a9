from __future__ import annotations

from typing import Any, Dict, Optional
import logging

try:
    from fastapi import FastAPI, HTTPException
    from pydantic import BaseModel, Field
except Exception as exc:  # pragma: no cover - optional dependency
    raise RuntimeError(
        "FastAPI not installed. Install with `pip install fastapi pydantic uvicorn` "
        "or avoid using the API server."
    ) from exc

from ..bootstrap import run_crawl
from ..config import CrawlConfig
from ..errors import ConfigError, DependencyError, InvalidSeed, StateUnavailable
from ..version import __version__

logger = logging.getLogger(__name__)

app = FastAPI(title="link_crawler API", version=__version__)


class CrawlRequest(BaseModel):
    start_url: str
    max_depth: Optional[int] = Field(default=None, ge=0)
    worker_count: Optional[int] = Field(default=None, ge=1)
    same_host: Optional[bool] = None
    force_recrawl: Optional[bool] = None


@app.get("/health")
async def health() -> Dict[str, str]:
    return {"status": "ok"}


def build_config(req: CrawlRequest) -> CrawlConfig:
    cfg = CrawlConfig.from_env()
    overrides = req.model_dump(exclude_none=True)
    cfg.apply(overrides)
    cfg.validate()
    return cfg


@app.post("/crawl")
async def crawl(req: CrawlRequest) -> Dict[str, Any]:
    try:
        cfg = build_config(req)
    except ConfigError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc

    try:
        report = await run_crawl(cfg)
    except InvalidSeed as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except ConfigError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    except (DependencyError, StateUnavailable) as exc:
        logger.warning("Crawl of %s could not start: %s", cfg.start_url, exc)
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    return report.to_dict()
