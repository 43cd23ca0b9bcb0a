from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ward_monitor.core.config import settings
from ward_monitor.core.logging import setup_logging
from ward_monitor.core.middleware import RequestContextMiddleware
from ward_monitor.modules.alerts.router import router as alerts_router
from ward_monitor.modules.alerts.service import monitor_service
from ward_monitor.modules.roster.router import router as roster_router

setup_logging()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # Startup
    monitor_service.start(settings.MONITOR_INTERVAL_SECONDS)
    app.state.monitor = monitor_service

    yield

    # Shutdown: in-flight passes are abandoned; monitor state is in-memory only
    await monitor_service.stop()


app = FastAPI(
    title=settings.PROJECT_NAME,
    description="""
    ## Ward Monitor API

    Clinical deterioration monitoring over a live patient roster:
    * **Roster**: push full roster swaps or single-patient updates
    * **Alerts**: threshold, trend and lab alerts with per-parameter rate limiting
    * **Acknowledgment**: acknowledge one alert or all of them
    * **Push**: Server-Sent Events and WebSocket feeds of new alerts
    """,
    version="0.1.0",
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    lifespan=lifespan,
)

if settings.BACKEND_CORS_ORIGINS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[str(origin) for origin in settings.BACKEND_CORS_ORIGINS],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

app.add_middleware(RequestContextMiddleware)

app.include_router(roster_router, prefix=f"{settings.API_V1_STR}/roster", tags=["roster"])
app.include_router(alerts_router, prefix=f"{settings.API_V1_STR}/alerts", tags=["alerts"])


@app.get("/health")
def health_check() -> dict[str, str | bool]:
    return {"status": "ok", "monitoring": monitor_service.running}
