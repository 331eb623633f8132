"""
FastAPI application for the web front-end's server-side helpers.

Only link parsing needs a server (browsers cannot follow cross-origin redirects), but
distance and the city list are exposed too so the front-end shares one rule set.
"""

from __future__ import annotations

import os

from fastapi import FastAPI
from starlette.middleware.cors import CORSMiddleware

from tadamon.core.logging import configure_logging

from .routes import router

_LOCAL_ORIGIN_RE = r"^https?://(localhost|127\.0\.0\.1)(:\d+)?$"


def _cors_options() -> dict | None:
    """CORS from env: `TADAMON_CORS_ORIGINS` (comma list) or localhost unless `TADAMON_CORS_ALLOW_LOCAL=0`."""
    origins = [o.strip() for o in os.getenv("TADAMON_CORS_ORIGINS", "").split(",") if o.strip()]
    if origins:
        return {"allow_origins": origins}
    if os.getenv("TADAMON_CORS_ALLOW_LOCAL", "1").strip().lower() in {"0", "false", "no", "n"}:
        return None
    return {"allow_origin_regex": _LOCAL_ORIGIN_RE}


configure_logging()

app = FastAPI(title="Tadamon API", version="0.1.0")

cors = _cors_options()
if cors is not None:
    app.add_middleware(CORSMiddleware, allow_methods=["GET", "POST"], allow_headers=["*"], **cors)

app.include_router(router)
