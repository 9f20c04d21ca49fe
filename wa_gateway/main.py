import os

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from wa_gateway.config import settings
from wa_gateway.dependencies import get_gateway
from wa_gateway.logging_config import get_logger, setup_logging
from wa_gateway.routers import message, trigger
from wa_gateway.schemas.api import ApiResponse
from wa_gateway.services.gateway_service import Gateway, build_gateway

setup_logging(settings.log_level)

app = FastAPI(
    title="WhatsApp Gateway",
    description="Supervised chat-session gateway with trigger replies and report webhooks",
    version="0.1.0",
)
app.state.gateway = None

cors_origins = [origin.strip() for origin in settings.cors_allow_origins.split(",") if origin.strip()]
if not cors_origins:
    cors_origins = ["*"]

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(message.router, prefix=settings.api_prefix)
app.include_router(trigger.router, prefix=settings.api_prefix)

logger = get_logger("main")


def _is_gateway_enabled() -> bool:
    return not os.environ.get("PYTEST_CURRENT_TEST")


@app.on_event("startup")
async def start_gateway() -> None:
    if not _is_gateway_enabled():
        return
    if app.state.gateway is None:
        app.state.gateway = build_gateway(settings)
    await app.state.gateway.initialize()


@app.on_event("shutdown")
async def stop_gateway() -> None:
    gateway = app.state.gateway
    if gateway is None:
        return
    await gateway.shutdown()
    app.state.gateway = None


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/status", response_model=ApiResponse)
def service_status(gateway: Gateway = Depends(get_gateway)):
    return ApiResponse(success=True, message="Service status retrieved", data=gateway.get_service_status())
