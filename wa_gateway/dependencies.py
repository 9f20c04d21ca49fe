from fastapi import HTTPException, Request, status

from wa_gateway.services.gateway_service import Gateway


def get_gateway(request: Request) -> Gateway:
    """The gateway started by the application, stored on ``app.state``."""
    gateway = getattr(request.app.state, "gateway", None)
    if gateway is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Gateway is not running")
    return gateway
