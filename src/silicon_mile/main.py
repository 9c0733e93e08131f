#!/usr/bin/env python3
"""Silicon Mile 5K - Event Registration and Admin Reporting"""

from typing import Optional

import uvicorn
from fastapi import FastAPI
from starlette.middleware.sessions import SessionMiddleware
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware

from silicon_mile.auth.models import SessionUser
from silicon_mile.config import config
from silicon_mile.logging_config import get_logger, setup_logging
from silicon_mile.routers.admin import router as admin_router
from silicon_mile.routers.auth import router as auth_router
from silicon_mile.routers.dashboard import router as dashboard_router
from silicon_mile.routers.health import health
from silicon_mile.services.identity_gateway import SessionEvent, identity_gateway

# Configure logging (INFO -> stdout, WARNING/ERROR -> stderr)
setup_logging()
logger = get_logger(__name__)


app = FastAPI(
    title="Silicon Mile 5K",
    description="Event registration for The Silicon Mile 5K and admin reporting of all submissions",
    version="1.0.0",
    docs_url=None,
    redoc_url=None,
)

# Trust proxy headers so request.url.scheme reflects the original HTTPS protocol
app.add_middleware(ProxyHeadersMiddleware, trusted_hosts="*")

session_secret_key = config["session_secret_key"]
if not session_secret_key or len(session_secret_key) < 32:
    raise RuntimeError(
        "SESSION_SECRET_KEY must be set to a secure random string (>=32 characters)."
    )

# Signed cookie session; SameSite=lax keeps it off cross-site form posts
app.add_middleware(
    SessionMiddleware,
    secret_key=session_secret_key,
    max_age=1800,  # 30 minutes
    https_only=config["session_https_only"],
    same_site="lax",
)


def _log_session_change(event: SessionEvent, user: Optional[SessionUser]) -> None:
    logger.info(f"{event.value}: {user.id if user else 'anonymous'}")


identity_gateway.on_session_change(_log_session_change)

app.include_router(health)
app.include_router(auth_router)
app.include_router(dashboard_router)
app.include_router(admin_router)


if __name__ == "__main__":
    port = config.get("port")
    logger.info(f"Starting Silicon Mile registration on 0.0.0.0:{port}")
    logger.info(f"Health check available at /health")

    try:
        uvicorn.run(
            app, host="0.0.0.0", port=port, log_level=config["log_level"].lower()
        )
    except Exception as e:
        logger.error(f"Failed to start server: {e}")
        raise
